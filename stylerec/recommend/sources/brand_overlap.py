"""Suggest corpus items from the brands a user saves most."""

import logging
from typing import Optional, Sequence

from stylerec.config import settings
from stylerec.recommend.sources.base import CandidateSource, item_payload
from stylerec.recommend.types import (
    SOURCE_BRAND_OVERLAP,
    CandidateProduct,
    SavedItem,
    StyleProfile,
)

logger = logging.getLogger(__name__)


class BrandOverlapSource(CandidateSource):
    """
    Corpus items whose brand is one of the user's top brands.

    Needs no embeddings, so it works on a freshly scraped corpus. Results are
    ordered by brand rank, then by corpus order.
    """

    name = SOURCE_BRAND_OVERLAP

    def __init__(self, store, corpus_limit: Optional[int] = None, brand_count: int = 3):
        self.store = store
        self.corpus_limit = corpus_limit or settings.corpus_limit
        self.brand_count = brand_count

    async def fetch(
        self,
        profile: StyleProfile,
        saved_items: Sequence[SavedItem],
        user_id: str,
    ) -> list[CandidateProduct]:
        brands = profile.brands[: self.brand_count]
        if not brands:
            return []

        brand_rank = {brand.casefold(): i for i, brand in enumerate(brands)}
        corpus = await self.store.load_corpus(user_id, limit=self.corpus_limit, require_embedding=False)
        own_urls = {item.url for item in saved_items}

        matches = []
        for position, item in enumerate(corpus):
            key = (item.brand or "").strip().casefold()
            if key in brand_rank and item.url not in own_urls:
                matches.append((brand_rank[key], position, item))
        matches.sort(key=lambda m: (m[0], m[1]))

        logger.debug(f"{len(matches)} corpus items match brands {brands}")
        return [
            CandidateProduct(source=self.name, data=item_payload(item), matched_brands=list(brands))
            for _, _, item in matches
        ]
