"""Domain records passed between pipeline stages."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np


@dataclass
class SavedItem:
    """A product link bookmarked by a user, joined with its scraped metadata."""

    id: int
    user_id: str
    url: str
    link_id: Optional[int] = None
    title: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[Union[str, float, int]] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    embedding: Optional[list[float]] = None


@dataclass
class StyleProfile:
    """Per-request summary of a user's saved items."""

    text: str
    item_lines: list[str] = field(default_factory=list)
    brands: list[str] = field(default_factory=list)  # distinct, most frequent first
    representative_url: Optional[str] = None
    embedding: Optional[np.ndarray] = None


@dataclass
class CandidateProduct:
    """Unvalidated product suggestion as produced by a candidate source."""

    source: str  # one of the SOURCE_* names below
    data: dict[str, Any]
    score: Optional[float] = None
    matched_brands: list[str] = field(default_factory=list)


@dataclass
class RecommendationRecord:
    """Canonical recommendation, as persisted and returned."""

    user_id: str
    url: str
    title: str
    brand: str
    price: str
    image_url: Optional[str]
    reason: str
    feedback: Optional[str] = None
    is_saved: bool = False
    similarity_score: Optional[float] = None

    def to_row(self) -> dict[str, Any]:
        """Column values for the recommendations table."""
        return {
            "user_id": self.user_id,
            "url": self.url,
            "title": self.title,
            "brand": self.brand,
            "price": self.price,
            "image_url": self.image_url,
            "reason": self.reason,
            "feedback": self.feedback,
            "is_saved": self.is_saved,
        }

    def to_view(self) -> dict[str, Any]:
        """Public response shape."""
        view = {
            "url": self.url,
            "title": self.title,
            "brand": self.brand,
            "price": self.price,
            "image_url": self.image_url,
            "reason": self.reason,
        }
        if self.similarity_score is not None:
            view["similarity_score"] = self.similarity_score
        return view


# Candidate source names, also used as CandidateProduct.source
SOURCE_CORPUS_SIMILARITY = "corpus_similarity"
SOURCE_BRAND_OVERLAP = "brand_overlap"
SOURCE_GENERATIVE = "generative"
SOURCE_DISCOVERY = "discovery"
