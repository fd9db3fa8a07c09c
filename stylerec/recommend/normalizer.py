"""Map heterogeneous candidates onto canonical recommendation records."""

import logging
import re
from typing import Any, Iterable, Optional, Union

from stylerec.config import settings
from stylerec.recommend.types import (
    SOURCE_BRAND_OVERLAP,
    SOURCE_CORPUS_SIMILARITY,
    SOURCE_DISCOVERY,
    SOURCE_GENERATIVE,
    CandidateProduct,
    RecommendationRecord,
)

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_BRAND = "Unknown Brand"
DEFAULT_PRICE = "0"

GENERATIVE_FALLBACK_REASON = "Recommended based on your saved items"
DISCOVERY_FALLBACK_REASON = "Similar to items you've saved"
BRAND_OVERLAP_FALLBACK_REASON = "Popular with shoppers who share your style"

# Substrings that mark made-up or stock image URLs
PLACEHOLDER_IMAGE_MARKERS = (
    "example.com",
    "example.org",
    "example.net",
    "placeholder",
    "1234567890",
)

URL_KEYS = ("url", "link", "product_link")
BRAND_KEYS = ("source", "brand")
IMAGE_KEYS = ("thumbnail", "image_url", "image")
PRICE_KEYS = ("price", "extracted_price")

_NON_PRICE_CHARS = re.compile(r"[^0-9.]")


def _clean(value: Any) -> Optional[str]:
    """Stringify scalars and strip whitespace; anything else counts as absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def first_present(data: dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    """Value of the first key that holds a non-empty scalar."""
    for key in keys:
        value = _clean(data.get(key))
        if value:
            return value
    return None


def sanitize_price(value: Union[str, int, float, None]) -> str:
    """
    Keep only digits and decimal points.

    Absent prices, and prices with no digits left after stripping, become "0".
    """
    text = _clean(value)
    if text is None:
        return DEFAULT_PRICE
    return _NON_PRICE_CHARS.sub("", text) or DEFAULT_PRICE


def is_valid_image_url(value: Any) -> bool:
    """True for a non-empty http(s) URL that is not a known placeholder."""
    text = _clean(value)
    if not text:
        return False
    lowered = text.lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    return not any(marker in lowered for marker in PLACEHOLDER_IMAGE_MARKERS)


def similarity_reason(score: float) -> str:
    """Format a cosine score as a percentage match."""
    clamped = min(max(float(score), 0.0), 1.0)
    return f"{round(clamped * 100)}% style match"


def brand_overlap_reason(brands: list[str]) -> str:
    if not brands:
        return BRAND_OVERLAP_FALLBACK_REASON
    return f"Based on your interest in {', '.join(brands[:3])}"


class RecommendationNormalizer:
    """
    Deterministic, side-effect-free mapping from CandidateProduct to
    RecommendationRecord.

    Entries without a url or a title are dropped, and the output is capped
    at ``max_results`` entries after dropping.
    """

    def __init__(self, max_results: Optional[int] = None):
        self.max_results = max_results or settings.max_recommendations

    def _reason(self, candidate: CandidateProduct) -> str:
        data = candidate.data
        if candidate.source == SOURCE_CORPUS_SIMILARITY and candidate.score is not None:
            return similarity_reason(candidate.score)
        if candidate.source == SOURCE_BRAND_OVERLAP:
            return brand_overlap_reason(candidate.matched_brands)
        if candidate.source == SOURCE_DISCOVERY:
            return first_present(data, ("reason", "category")) or DISCOVERY_FALLBACK_REASON
        return _clean(data.get("reason")) or GENERATIVE_FALLBACK_REASON

    def normalize_one(
        self,
        candidate: Union[CandidateProduct, dict[str, Any]],
        user_id: str = "",
    ) -> Optional[RecommendationRecord]:
        """
        Map one candidate.

        Returns:
            RecommendationRecord, or None if the candidate has no usable url
        """
        if isinstance(candidate, dict):
            candidate = CandidateProduct(source=SOURCE_GENERATIVE, data=candidate)
        data = candidate.data if isinstance(candidate.data, dict) else {}

        url = first_present(data, URL_KEYS)
        title = _clean(data.get("title")) or UNKNOWN_PRODUCT
        if not url:
            return None

        image = first_present(data, IMAGE_KEYS)
        score = None
        if candidate.source == SOURCE_CORPUS_SIMILARITY and candidate.score is not None:
            score = round(float(candidate.score), 4)

        return RecommendationRecord(
            user_id=user_id,
            url=url,
            title=title,
            brand=first_present(data, BRAND_KEYS) or UNKNOWN_BRAND,
            price=sanitize_price(first_present(data, PRICE_KEYS)),
            image_url=image if is_valid_image_url(image) else None,
            reason=self._reason(candidate),
            similarity_score=score,
        )

    def normalize(
        self,
        candidates: Iterable[Union[CandidateProduct, dict[str, Any]]],
        user_id: str = "",
    ) -> list[RecommendationRecord]:
        """
        Normalize candidates in order.

        Args:
            candidates: CandidateProduct objects, or raw dicts treated as
                generative output
            user_id: Owner stamped on every record

        Returns:
            At most ``max_results`` records
        """
        records: list[RecommendationRecord] = []
        dropped = 0
        for candidate in candidates:
            record = self.normalize_one(candidate, user_id)
            if record is None:
                dropped += 1
                continue
            records.append(record)
            if len(records) >= self.max_results:
                break

        if dropped:
            logger.debug(f"Dropped {dropped} candidates without a url")
        return records
