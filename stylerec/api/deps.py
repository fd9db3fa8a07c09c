"""FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stylerec.ai.embedding_service import EmbeddingService, embedding_service
from stylerec.ai.llm_service import LLMService, llm_service
from stylerec.db.row_store import RowStore
from stylerec.db.session import get_db
from stylerec.discovery.client import DiscoveryClient, discovery_client
from stylerec.recommend.pipeline import RecommendationPipeline, build_pipeline


async def get_database() -> AsyncSession:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


async def get_row_store(db: AsyncSession = Depends(get_database)) -> RowStore:
    return RowStore(db)


def get_embedding_service() -> EmbeddingService:
    return embedding_service


def get_llm_service() -> LLMService:
    return llm_service


def get_discovery_client() -> DiscoveryClient:
    return discovery_client


async def get_pipeline(
    store: RowStore = Depends(get_row_store),
    embeddings: EmbeddingService = Depends(get_embedding_service),
    llm: LLMService = Depends(get_llm_service),
    discovery: DiscoveryClient = Depends(get_discovery_client),
) -> RecommendationPipeline:
    """Pipeline wired to the request's database session."""
    return build_pipeline(store, embeddings, llm, discovery)
