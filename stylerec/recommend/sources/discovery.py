"""Candidates from the external product discovery service."""

import logging
from typing import Optional, Sequence

from stylerec.config import settings
from stylerec.discovery.client import DiscoveryRequestError
from stylerec.recommend.sources.base import CandidateSource
from stylerec.recommend.types import SOURCE_DISCOVERY, CandidateProduct, SavedItem, StyleProfile

logger = logging.getLogger(__name__)

QUERY_MAX_CHARS = 256


class DiscoverySource(CandidateSource):
    """
    Search by the representative URL first, then once more by text.

    A failed attempt is retried exactly once with the other query form. If
    both fail, or the client is not configured, the source yields nothing.
    """

    name = SOURCE_DISCOVERY

    def __init__(self, client, max_results: Optional[int] = None):
        self.client = client
        self.max_results = max_results or settings.discovery_max_results

    def _attempts(self, profile: StyleProfile) -> list[tuple[str, dict[str, str]]]:
        attempts = []
        if profile.representative_url:
            attempts.append(("url", {"url": profile.representative_url}))
        if profile.text:
            attempts.append(("text", {"query": profile.text[:QUERY_MAX_CHARS]}))
        return attempts[:2]

    async def fetch(
        self,
        profile: StyleProfile,
        saved_items: Sequence[SavedItem],
        user_id: str,
    ) -> list[CandidateProduct]:
        if not self.client.enabled:
            logger.info("Discovery service not configured, skipping")
            return []

        for query_form, params in self._attempts(profile):
            try:
                results = await self.client.search(max_results=self.max_results, **params)
            except DiscoveryRequestError as e:
                logger.warning(f"Discovery {query_form} search failed: {e}")
                continue
            return [CandidateProduct(source=self.name, data=result) for result in results]

        return []
