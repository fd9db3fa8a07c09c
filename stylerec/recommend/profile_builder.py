"""Build a style profile from a user's saved items."""

import logging
from collections import Counter
from typing import Any, Optional, Sequence

import numpy as np

from stylerec.config import settings
from stylerec.recommend.types import SavedItem, StyleProfile

logger = logging.getLogger(__name__)

SUMMARY_SEPARATOR = " | "
TOP_BRAND_COUNT = 3


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def format_price(price: Any) -> Optional[str]:
    """Render a price for display, adding a dollar sign to bare numbers."""
    text = _clean(price)
    if text is None:
        return None
    return f"${text}" if text[0].isdigit() else text


def render_item(item: SavedItem) -> str:
    """Render one item as ``brand title price``, skipping absent parts."""
    segments = [_clean(item.brand), _clean(item.title), format_price(item.price)]
    return " ".join(s for s in segments if s)


def prompt_line(item: SavedItem) -> str:
    """Render one item as a bullet line for the generation prompt."""
    title = _clean(item.title) or "Untitled"
    brand = _clean(item.brand) or "Unknown brand"
    price = (_clean(item.price) or "N/A").lstrip("$")
    return f"- {title} ({brand}) - ${price}"


def top_brands(items: Sequence[SavedItem], limit: int = TOP_BRAND_COUNT) -> list[str]:
    """
    Distinct brands across items, most frequent first.

    Brands compare case-insensitively; ties keep first-appearance order and
    the first spelling seen is the one returned.
    """
    counts: Counter[str] = Counter()
    spelling: dict[str, str] = {}
    for item in items:
        brand = _clean(item.brand)
        if not brand:
            continue
        key = brand.casefold()
        counts[key] += 1
        spelling.setdefault(key, brand)

    # Counter.most_common is stable for equal counts (insertion order)
    return [spelling[key] for key, _ in counts.most_common(limit)]


class ProfileBuilder:
    """
    Turns saved items into a StyleProfile.

    ``build`` is a pure transform. ``embed`` is the one external call and
    is only made when a similarity-ranking source needs the vector.
    """

    def __init__(self, embedding_service=None, max_items: Optional[int] = None):
        self.embedding_service = embedding_service
        self.max_items = max_items or settings.profile_max_items

    def build(self, saved_items: Sequence[SavedItem]) -> StyleProfile:
        """
        Summarize saved items.

        Args:
            saved_items: Non-empty list of the user's saved items, newest first

        Returns:
            StyleProfile without an embedding
        """
        items = list(saved_items)[: self.max_items]

        rendered = [render_item(item) for item in items]
        text = SUMMARY_SEPARATOR.join(r for r in rendered if r)
        if not text:
            # Nothing scraped yet; the URLs are the only description we have
            text = SUMMARY_SEPARATOR.join(item.url for item in items if item.url)

        representative_url = next((item.url for item in items if _clean(item.url)), None)

        return StyleProfile(
            text=text,
            item_lines=[prompt_line(item) for item in items],
            brands=top_brands(items),
            representative_url=representative_url,
        )

    async def embed(self, profile: StyleProfile) -> np.ndarray:
        """
        Compute and attach the profile embedding.

        Raises:
            EmbeddingServiceError: If the embedding capability fails
        """
        if profile.embedding is None:
            if self.embedding_service is None:
                raise RuntimeError("ProfileBuilder has no embedding service")
            profile.embedding = await self.embedding_service.generate_embedding(profile.text)
            logger.debug(f"Profile embedding computed ({len(profile.embedding)} dims)")
        return profile.embedding
