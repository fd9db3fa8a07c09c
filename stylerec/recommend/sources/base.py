"""Candidate source interface."""

from abc import ABC, abstractmethod
from typing import Any, Sequence

from stylerec.recommend.types import CandidateProduct, SavedItem, StyleProfile


class CandidateSource(ABC):
    """
    A strategy producing candidate products for a style profile.

    Implementations return an empty list when they have nothing to offer,
    raise CandidateSourceTransientFailure when a fallback could still help,
    and CandidateSourceFatalFailure when it could not.
    """

    name: str = ""

    @abstractmethod
    async def fetch(
        self,
        profile: StyleProfile,
        saved_items: Sequence[SavedItem],
        user_id: str,
    ) -> list[CandidateProduct]:
        ...


def item_payload(item: SavedItem) -> dict[str, Any]:
    """Candidate data for a corpus item."""
    return {
        "url": item.url,
        "title": item.title,
        "brand": item.brand,
        "price": item.price,
        "thumbnail": item.thumbnail,
    }
