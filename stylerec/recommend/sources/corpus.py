"""Rank other users' saved items by embedding similarity."""

import logging
from typing import Optional, Sequence

from stylerec.ai.embedding_service import EmbeddingServiceError
from stylerec.config import settings
from stylerec.recommend.errors import CandidateSourceFatalFailure, CandidateSourceTransientFailure
from stylerec.recommend.profile_builder import ProfileBuilder
from stylerec.recommend.similarity import rank
from stylerec.recommend.sources.base import CandidateSource, item_payload
from stylerec.recommend.types import (
    SOURCE_CORPUS_SIMILARITY,
    CandidateProduct,
    SavedItem,
    StyleProfile,
)

logger = logging.getLogger(__name__)


class CorpusSimilaritySource(CandidateSource):
    """
    Similarity ranking over the embedded corpus.

    Returns nothing while the corpus holds fewer than ``min_corpus_size``
    vectors of the profile's dimension; the profile is only embedded once
    the corpus is known to be large enough. When ``dimension`` is set, vectors
    of any other length are ignored.
    """

    name = SOURCE_CORPUS_SIMILARITY

    def __init__(
        self,
        store,
        profile_builder: ProfileBuilder,
        corpus_limit: Optional[int] = None,
        min_corpus_size: Optional[int] = None,
        top_k: Optional[int] = None,
        dimension: Optional[int] = None,
    ):
        self.store = store
        self.profile_builder = profile_builder
        self.corpus_limit = corpus_limit or settings.corpus_limit
        self.min_corpus_size = min_corpus_size if min_corpus_size is not None else settings.corpus_min_size
        self.top_k = top_k or settings.max_recommendations
        self.dimension = dimension

    async def _profile_embedding(self, profile: StyleProfile):
        try:
            return await self.profile_builder.embed(profile)
        except EmbeddingServiceError as e:
            if e.transient:
                raise CandidateSourceTransientFailure(self.name, f"embedding unavailable: {e}") from e
            raise CandidateSourceFatalFailure(self.name, f"embedding failed: {e}") from e

    async def fetch(
        self,
        profile: StyleProfile,
        saved_items: Sequence[SavedItem],
        user_id: str,
    ) -> list[CandidateProduct]:
        corpus = await self.store.load_corpus(user_id, limit=self.corpus_limit, require_embedding=True)
        own_urls = {item.url for item in saved_items}
        corpus = [
            item
            for item in corpus
            if item.embedding
            and item.url not in own_urls
            and (self.dimension is None or len(item.embedding) == self.dimension)
        ]

        if len(corpus) < self.min_corpus_size:
            logger.info(
                f"Corpus too small for similarity ranking ({len(corpus)} < {self.min_corpus_size})"
            )
            return []

        query = await self._profile_embedding(profile)
        dimension = len(query)
        eligible = [
            (item.link_id, item.embedding, item)
            for item in corpus
            if len(item.embedding) == dimension
        ]
        skipped = len(corpus) - len(eligible)
        if skipped:
            logger.warning(f"Skipped {skipped} corpus vectors with dimension != {dimension}")
        if len(eligible) < self.min_corpus_size:
            logger.info(f"Only {len(eligible)} corpus vectors match dimension {dimension}")
            return []

        ranked = rank(query, eligible, self.top_k)
        logger.debug(f"Ranked {len(eligible)} corpus items, kept {len(ranked)}")
        return [
            CandidateProduct(source=self.name, data=item_payload(item), score=score)
            for item, score in ranked
        ]
