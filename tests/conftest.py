"""Shared fixtures: a throwaway SQLite database and in-memory AI/discovery fakes."""

from datetime import datetime, timedelta
from typing import Optional

import numpy as np
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stylerec.ai.llm_service import LLMService
from stylerec.db.models import Base, Link, SavedLink
from stylerec.db.row_store import RowStore
from stylerec.discovery.client import DiscoveryRequestError


class FakeEmbeddingService:
    """Returns a fixed vector, or raises ``error`` when set."""

    def __init__(self, vector=(1.0, 0.0, 0.0)):
        self.vector = vector
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def generate_embedding(self, text: str, use_cache: bool = True) -> np.ndarray:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return np.asarray(self.vector, dtype=np.float32)


class FakeLLM:
    """Parses ``raw`` the way the real service does, or raises ``error``."""

    def __init__(self, raw: str = '{"recommendations": []}'):
        self.raw = raw
        self.error: Optional[Exception] = None
        self.prompts: list[str] = []

    async def generate(self, system_prompt, user_prompt, response_schema=None):
        self.prompts.append(user_prompt)
        if self.error is not None:
            raise self.error
        return LLMService.parse_json_object(self.raw)


class FakeDiscovery:
    """Serves ``results``; query forms listed in ``failing`` raise instead."""

    def __init__(self, results=None, enabled: bool = True):
        self.results = results or []
        self.enabled = enabled
        self.failing: set[str] = set()
        self.calls: list[dict] = []

    async def search(self, *, query=None, url=None, max_results=None):
        form = "url" if url else "text"
        self.calls.append({"form": form, "query": query, "url": url, "max_results": max_results})
        if form in self.failing:
            raise DiscoveryRequestError(f"{form} search returned 502", status_code=502)
        return list(self.results)


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return RowStore(db_session)


@pytest.fixture
def seed(db_session):
    """Save a link for a user, creating the link row on first use."""
    clock = {"now": datetime(2026, 1, 1)}

    async def _seed(user_id: str, url: str, **link_fields) -> Link:
        result = await db_session.execute(select(Link).where(Link.url == url))
        link = result.scalar_one_or_none()
        if link is None:
            link = Link(url=url, **link_fields)
            db_session.add(link)
            await db_session.flush()

        # Strictly increasing timestamps keep "newest first" deterministic
        clock["now"] += timedelta(seconds=1)
        db_session.add(SavedLink(user_id=user_id, link_id=link.id, created_at=clock["now"]))
        await db_session.commit()
        return link

    return _seed


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingService()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_discovery():
    return FakeDiscovery()
