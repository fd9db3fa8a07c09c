"""Recommendation pipeline orchestration."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from stylerec import metrics
from stylerec.config import settings
from stylerec.logging_config import get_logger
from stylerec.recommend.errors import (
    CandidateSourceFatalFailure,
    CandidateSourceTransientFailure,
    InvalidRequestError,
    UpstreamDataError,
)
from stylerec.recommend.normalizer import RecommendationNormalizer
from stylerec.recommend.profile_builder import ProfileBuilder
from stylerec.recommend.sources.base import CandidateSource
from stylerec.recommend.sources.brand_overlap import BrandOverlapSource
from stylerec.recommend.sources.corpus import CorpusSimilaritySource
from stylerec.recommend.sources.discovery import DiscoverySource
from stylerec.recommend.sources.generative import GenerativeSource
from stylerec.recommend.types import (
    SOURCE_BRAND_OVERLAP,
    SOURCE_CORPUS_SIMILARITY,
    SOURCE_DISCOVERY,
    SOURCE_GENERATIVE,
    CandidateProduct,
    RecommendationRecord,
)


class PipelineState(str, Enum):
    """Steps of a single recommendation request."""

    LOADING_ITEMS = "loading_items"
    BUILDING_PROFILE = "building_profile"
    SELECTING_SOURCE = "selecting_source"
    FETCHING_CANDIDATES = "fetching_candidates"
    FALLBACK = "fallback"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    RESPONDING = "responding"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    recommendations: list[RecommendationRecord] = field(default_factory=list)
    source: Optional[str] = None
    attempted_sources: list[str] = field(default_factory=list)
    persisted: bool = False
    states: list[PipelineState] = field(default_factory=list)

    def to_response(self) -> dict:
        return {"recommendations": [r.to_view() for r in self.recommendations]}


class RecommendationPipeline:
    """
    Runs LoadingItems -> BuildingProfile -> SelectingSource ->
    FetchingCandidates -> Normalizing -> Persisting -> Responding.

    Sources are tried in order. A transient failure or an empty result moves
    on to the next source, at most ``max_fallback_hops`` times. A fatal
    source failure or a failed read aborts the request; a failed write is
    logged and the computed recommendations are still returned.
    """

    def __init__(
        self,
        store,
        profile_builder: ProfileBuilder,
        sources: Sequence[CandidateSource],
        normalizer: Optional[RecommendationNormalizer] = None,
        max_fallback_hops: Optional[int] = None,
        saved_items_limit: Optional[int] = None,
    ):
        self.store = store
        self.profile_builder = profile_builder
        self.sources = list(sources)
        self.normalizer = normalizer or RecommendationNormalizer()
        self.max_fallback_hops = (
            max_fallback_hops if max_fallback_hops is not None else settings.max_fallback_hops
        )
        self.saved_items_limit = saved_items_limit or settings.saved_items_limit

    async def run(self, user_id: Optional[str]) -> PipelineResult:
        """
        Generate, persist and return recommendations for a user.

        Raises:
            InvalidRequestError: If user_id is missing or blank
            UpstreamDataError: If saved items cannot be loaded
            CandidateSourceFatalFailure: If a source fails unrecoverably
        """
        if not isinstance(user_id, str) or not user_id.strip():
            metrics.recommendation_requests_total.labels(status="invalid").inc()
            raise InvalidRequestError("User ID is required")

        log = get_logger(__name__, user_id=user_id)
        result = PipelineResult()
        start = time.monotonic()

        try:
            await self._run(user_id, result, log)
        except Exception:
            self._transition(result, PipelineState.FAILED, log)
            metrics.recommendation_requests_total.labels(status="error").inc()
            raise
        finally:
            metrics.recommendation_pipeline_duration_seconds.observe(time.monotonic() - start)

        status = "success" if result.recommendations else "empty"
        metrics.recommendation_requests_total.labels(status=status).inc()
        metrics.recommendations_returned.observe(len(result.recommendations))
        log.info(
            f"Returning {len(result.recommendations)} recommendations "
            f"(source={result.source}, attempted={result.attempted_sources})"
        )
        return result

    def _transition(self, result: PipelineResult, state: PipelineState, log):
        result.states.append(state)
        log.debug(f"Pipeline state -> {state.value}")

    async def _run(self, user_id: str, result: PipelineResult, log):
        self._transition(result, PipelineState.LOADING_ITEMS, log)
        saved_items = await self.store.load_saved_items(user_id, limit=self.saved_items_limit)
        if not saved_items:
            log.info("No saved items, nothing to recommend")
            self._transition(result, PipelineState.RESPONDING, log)
            return

        self._transition(result, PipelineState.BUILDING_PROFILE, log)
        profile = self.profile_builder.build(saved_items)

        self._transition(result, PipelineState.SELECTING_SOURCE, log)
        chain = self.sources[: self.max_fallback_hops + 1]

        candidates: list[CandidateProduct] = []
        for position, source in enumerate(chain):
            if position == 0:
                self._transition(result, PipelineState.FETCHING_CANDIDATES, log)
            else:
                self._transition(result, PipelineState.FALLBACK, log)
                metrics.recommendation_fallbacks_total.labels(
                    from_source=chain[position - 1].name, to_source=source.name
                ).inc()

            result.attempted_sources.append(source.name)
            source_log = log.bind(source=source.name)
            try:
                candidates = await source.fetch(profile, saved_items, user_id)
            except CandidateSourceTransientFailure as e:
                metrics.candidate_source_attempts_total.labels(source=source.name, outcome="transient").inc()
                source_log.warning(f"Source {source.name} failed transiently: {e.reason}")
                continue
            except CandidateSourceFatalFailure as e:
                metrics.candidate_source_attempts_total.labels(source=source.name, outcome="fatal").inc()
                source_log.error(f"Source {source.name} failed: {e.reason}")
                raise

            if candidates:
                metrics.candidate_source_attempts_total.labels(source=source.name, outcome="success").inc()
                result.source = source.name
                break
            metrics.candidate_source_attempts_total.labels(source=source.name, outcome="empty").inc()
            source_log.info(f"Source {source.name} produced no candidates")

        self._transition(result, PipelineState.NORMALIZING, log)
        result.recommendations = self.normalizer.normalize(candidates, user_id)

        if result.recommendations:
            self._transition(result, PipelineState.PERSISTING, log)
            try:
                await self.store.save_recommendations(result.recommendations)
                result.persisted = True
            except UpstreamDataError as e:
                metrics.recommendation_persist_failures_total.inc()
                log.error(f"Failed to persist recommendations: {e}")

        self._transition(result, PipelineState.RESPONDING, log)


def build_sources(
    store,
    profile_builder: ProfileBuilder,
    llm,
    discovery_client,
    source_order: Optional[Sequence[str]] = None,
) -> list[CandidateSource]:
    """
    Instantiate candidate sources in the configured order.

    Raises:
        ValueError: On an unknown source name
    """
    factories = {
        SOURCE_CORPUS_SIMILARITY: lambda: CorpusSimilaritySource(
            store, profile_builder, dimension=settings.embedding_dimension
        ),
        SOURCE_BRAND_OVERLAP: lambda: BrandOverlapSource(store),
        SOURCE_GENERATIVE: lambda: GenerativeSource(llm),
        SOURCE_DISCOVERY: lambda: DiscoverySource(discovery_client),
    }
    sources = []
    for name in source_order if source_order is not None else settings.source_order:
        if name not in factories:
            raise ValueError(f"Unknown candidate source: {name}")
        sources.append(factories[name]())
    return sources


def build_pipeline(
    store,
    embedding_service,
    llm,
    discovery_client,
    source_order: Optional[Sequence[str]] = None,
) -> RecommendationPipeline:
    """Wire a pipeline from settings and the given collaborators."""
    profile_builder = ProfileBuilder(embedding_service)
    sources = build_sources(store, profile_builder, llm, discovery_client, source_order)
    return RecommendationPipeline(store, profile_builder, sources)
