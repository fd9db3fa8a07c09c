"""Tests for pipeline orchestration and fallback."""

import pytest

from stylerec.recommend.errors import (
    CandidateSourceFatalFailure,
    CandidateSourceTransientFailure,
    InvalidRequestError,
    UpstreamDataError,
)
from stylerec.recommend.normalizer import RecommendationNormalizer
from stylerec.recommend.pipeline import (
    PipelineState,
    RecommendationPipeline,
    build_pipeline,
    build_sources,
)
from stylerec.recommend.profile_builder import ProfileBuilder
from stylerec.recommend.sources.base import CandidateSource
from stylerec.recommend.types import CandidateProduct, SavedItem


class StubStore:
    def __init__(self, items=None, fail_load=False, fail_save=False):
        self.items = items or []
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.saved = []

    async def load_saved_items(self, user_id, limit=20):
        if self.fail_load:
            raise UpstreamDataError("load saved items", "connection refused")
        return list(self.items)

    async def save_recommendations(self, records):
        if self.fail_save:
            raise UpstreamDataError("insert recommendations", "disk full")
        self.saved.extend(records)
        return len(records)


class StubSource(CandidateSource):
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result or []
        self.error = error
        self.calls = 0

    async def fetch(self, profile, saved_items, user_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [CandidateProduct(source=self.name, data=dict(d)) for d in self.result]


ITEMS = [
    SavedItem(id=1, user_id="u1", url="https://shop.test/1", title="Scarf", brand="Cos", price="49"),
    SavedItem(id=2, user_id="u1", url="https://shop.test/2", title="Boots", brand="Ganni"),
]
PRODUCTS = [{"url": f"https://shop.test/p{i}", "title": f"Product {i}"} for i in range(3)]


def make_pipeline(store, sources, hops=1):
    return RecommendationPipeline(
        store,
        ProfileBuilder(max_items=10),
        sources,
        RecommendationNormalizer(max_results=8),
        max_fallback_hops=hops,
    )


@pytest.mark.parametrize("user_id", [None, "", "   ", 42])
async def test_missing_user_id_fails_fast(user_id):
    store = StubStore(ITEMS)
    source = StubSource("generative", PRODUCTS)

    with pytest.raises(InvalidRequestError, match="User ID is required"):
        await make_pipeline(store, [source]).run(user_id)
    assert source.calls == 0


async def test_no_saved_items_short_circuits():
    source = StubSource("generative", PRODUCTS)
    result = await make_pipeline(StubStore([]), [source]).run("u1")

    assert result.recommendations == []
    assert result.to_response() == {"recommendations": []}
    assert result.states == [PipelineState.LOADING_ITEMS, PipelineState.RESPONDING]
    assert source.calls == 0


async def test_first_source_success_is_persisted():
    store = StubStore(ITEMS)
    first = StubSource("generative", PRODUCTS)
    second = StubSource("discovery", PRODUCTS)

    result = await make_pipeline(store, [first, second]).run("u1")

    assert [r.url for r in result.recommendations] == [p["url"] for p in PRODUCTS]
    assert result.source == "generative"
    assert result.persisted is True
    assert store.saved == result.recommendations
    assert second.calls == 0
    assert result.states == [
        PipelineState.LOADING_ITEMS,
        PipelineState.BUILDING_PROFILE,
        PipelineState.SELECTING_SOURCE,
        PipelineState.FETCHING_CANDIDATES,
        PipelineState.NORMALIZING,
        PipelineState.PERSISTING,
        PipelineState.RESPONDING,
    ]


async def test_empty_source_falls_back():
    first = StubSource("corpus_similarity", [])
    second = StubSource("generative", PRODUCTS)

    result = await make_pipeline(StubStore(ITEMS), [first, second]).run("u1")

    assert result.source == "generative"
    assert result.attempted_sources == ["corpus_similarity", "generative"]
    assert PipelineState.FALLBACK in result.states


async def test_transient_failure_falls_back():
    first = StubSource("generative", error=CandidateSourceTransientFailure("generative", "bad json"))
    second = StubSource("discovery", PRODUCTS)

    result = await make_pipeline(StubStore(ITEMS), [first, second]).run("u1")
    assert len(result.recommendations) == 3
    assert result.source == "discovery"


async def test_at_most_one_fallback_hop():
    first = StubSource("corpus_similarity", [])
    second = StubSource("generative", error=CandidateSourceTransientFailure("generative", "bad json"))
    third = StubSource("discovery", PRODUCTS)

    result = await make_pipeline(StubStore(ITEMS), [first, second, third]).run("u1")

    assert result.recommendations == []
    assert result.source is None
    assert third.calls == 0
    assert result.states[-1] == PipelineState.RESPONDING


async def test_more_hops_when_configured():
    first = StubSource("corpus_similarity", [])
    second = StubSource("generative", [])
    third = StubSource("discovery", PRODUCTS)

    result = await make_pipeline(StubStore(ITEMS), [first, second, third], hops=2).run("u1")
    assert result.source == "discovery"


async def test_fatal_failure_propagates():
    first = StubSource("corpus_similarity", error=CandidateSourceFatalFailure("corpus_similarity", "401"))
    second = StubSource("generative", PRODUCTS)
    pipeline = make_pipeline(StubStore(ITEMS), [first, second])

    with pytest.raises(CandidateSourceFatalFailure):
        await pipeline.run("u1")
    assert second.calls == 0


async def test_load_failure_propagates():
    with pytest.raises(UpstreamDataError):
        await make_pipeline(StubStore(fail_load=True), [StubSource("generative", PRODUCTS)]).run("u1")


async def test_persist_failure_still_returns_recommendations():
    store = StubStore(ITEMS, fail_save=True)
    result = await make_pipeline(store, [StubSource("generative", PRODUCTS)]).run("u1")

    assert len(result.recommendations) == 3
    assert result.persisted is False
    assert result.states[-1] == PipelineState.RESPONDING


async def test_invalid_candidates_are_not_persisted():
    store = StubStore(ITEMS)
    source = StubSource("generative", [{"title": "No url"}, {}])

    result = await make_pipeline(store, [source]).run("u1")
    assert result.recommendations == []
    assert store.saved == []
    assert PipelineState.PERSISTING not in result.states


def test_build_sources_follows_configured_order(fake_embeddings, fake_llm, fake_discovery):
    store = StubStore()
    builder = ProfileBuilder(fake_embeddings)
    sources = build_sources(
        store, builder, fake_llm, fake_discovery, ["generative", "brand_overlap", "discovery"]
    )
    assert [s.name for s in sources] == ["generative", "brand_overlap", "discovery"]

    with pytest.raises(ValueError, match="Unknown candidate source"):
        build_sources(store, builder, fake_llm, fake_discovery, ["telepathy"])


def test_build_pipeline_defaults(fake_embeddings, fake_llm, fake_discovery):
    pipeline = build_pipeline(StubStore(), fake_embeddings, fake_llm, fake_discovery)
    assert [s.name for s in pipeline.sources] == ["corpus_similarity", "generative", "discovery"]
    assert pipeline.max_fallback_hops == 1
