"""Embedding generation service for saved-item and style-profile text."""

import asyncio
import hashlib
import logging
from typing import Any, List, Optional

import numpy as np
import openai

from stylerec import metrics
from stylerec.ai.openai_client import get_openai_client, is_transient_error
from stylerec.config import settings

logger = logging.getLogger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_LOCAL = "sentence-transformers"


class EmbeddingServiceError(RuntimeError):
    """Raised when an embedding cannot be produced."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class EmbeddingService:
    """
    Service for generating text embeddings.

    Supports two providers:
    - OpenAI embeddings API (text-embedding-3-small, 1536-D)
    - Local sentence transformers (all-mpnet-base-v2), loaded on first use

    Features:
    - Batch embedding generation
    - In-memory cache keyed by model and text hash
    - Bounded call time; timeouts are reported as transient failures
    """

    def __init__(self, provider: Optional[str] = None):
        self._provider = provider
        self._local_model: Optional[Any] = None
        self._cache: dict[str, np.ndarray] = {}

    @property
    def provider(self) -> str:
        return self._provider or settings.embedding_provider

    @property
    def model_name(self) -> str:
        if self.provider == PROVIDER_LOCAL:
            return settings.local_embedding_model
        return settings.embedding_model

    def _load_local_model(self) -> Any:
        """Load the sentence transformer model on first use."""
        if self._local_model is not None:
            return self._local_model

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise EmbeddingServiceError(
                "sentence-transformers is not installed; "
                "install the 'local' extra or use the openai provider"
            ) from e

        try:
            logger.info(f"Loading embedding model: {settings.local_embedding_model}")
            self._local_model = SentenceTransformer(settings.local_embedding_model)
            logger.info(f"Successfully loaded model: {settings.local_embedding_model}")
        except Exception as e:
            raise EmbeddingServiceError(
                f"Failed to load model {settings.local_embedding_model}: {e}"
            ) from e
        return self._local_model

    def _get_cache_key(self, text: str) -> str:
        """Generate cache key for text."""
        text_hash = hashlib.sha256(text.encode('utf-8')).hexdigest()
        return f"{self.model_name}:{text_hash}"

    async def _embed_openai(self, texts: List[str]) -> List[np.ndarray]:
        try:
            client = get_openai_client()
        except ValueError as e:
            raise EmbeddingServiceError(str(e), transient=False) from e

        try:
            response = await client.embeddings.create(
                model=settings.embedding_model,
                input=texts,
                timeout=settings.embedding_timeout_seconds,
            )
        except openai.OpenAIError as e:
            transient = is_transient_error(e)
            metrics.embedding_requests_total.labels(provider=self.provider, status="error").inc()
            logger.warning(f"Embedding request failed (transient={transient}): {e}")
            raise EmbeddingServiceError(f"Embedding request failed: {e}", transient=transient) from e

        rows = sorted(response.data, key=lambda row: row.index)
        return [np.asarray(row.embedding, dtype=np.float32) for row in rows]

    async def _embed_local(self, texts: List[str]) -> List[np.ndarray]:
        model = self._load_local_model()
        try:
            vectors = await asyncio.wait_for(
                asyncio.to_thread(
                    model.encode,
                    texts,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                    batch_size=settings.embedding_batch_size,
                ),
                timeout=settings.embedding_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            metrics.embedding_requests_total.labels(provider=self.provider, status="error").inc()
            raise EmbeddingServiceError("Local embedding timed out", transient=True) from e
        return [np.asarray(v, dtype=np.float32) for v in vectors]

    async def _embed(self, texts: List[str]) -> List[np.ndarray]:
        if self.provider == PROVIDER_LOCAL:
            vectors = await self._embed_local(texts)
        elif self.provider == PROVIDER_OPENAI:
            vectors = await self._embed_openai(texts)
        else:
            raise EmbeddingServiceError(f"Unknown embedding provider: {self.provider}")
        metrics.embedding_requests_total.labels(provider=self.provider, status="success").inc()
        return vectors

    async def generate_embedding(self, text: str, use_cache: bool = True) -> np.ndarray:
        """
        Generate embedding for a single text.

        Args:
            text: Text to embed
            use_cache: Whether to use cache

        Returns:
            Embedding vector

        Raises:
            ValueError: If text is empty
            EmbeddingServiceError: If the provider call fails
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        cache_enabled = use_cache and settings.embedding_cache_enabled
        if cache_enabled:
            cache_key = self._get_cache_key(text)
            if cache_key in self._cache:
                logger.debug(f"Cache hit for embedding: {cache_key[:16]}...")
                return self._cache[cache_key]

        embedding = (await self._embed([text]))[0]

        if cache_enabled:
            self._cache[self._get_cache_key(text)] = embedding

        return embedding

    async def generate_embeddings_batch(
        self,
        texts: List[str],
        use_cache: bool = True,
        batch_size: Optional[int] = None,
    ) -> List[Optional[np.ndarray]]:
        """
        Generate embeddings for a batch of texts.

        Args:
            texts: List of texts to embed
            use_cache: Whether to use cache
            batch_size: Batch size (defaults to settings.embedding_batch_size)

        Returns:
            List aligned with texts; None where the text was empty
        """
        if not texts:
            return []

        batch_size = batch_size or settings.embedding_batch_size
        cache_enabled = use_cache and settings.embedding_cache_enabled

        results: dict[int, np.ndarray] = {}
        pending: list[tuple[int, str]] = []
        for idx, text in enumerate(texts):
            if not text or not text.strip():
                continue
            if cache_enabled:
                cached = self._cache.get(self._get_cache_key(text))
                if cached is not None:
                    results[idx] = cached
                    continue
            pending.append((idx, text))

        for start in range(0, len(pending), batch_size):
            chunk = pending[start:start + batch_size]
            logger.debug(f"Generating embeddings for {len(chunk)} texts (batch size: {batch_size})")
            vectors = await self._embed([text for _, text in chunk])
            for (idx, text), vector in zip(chunk, vectors, strict=True):
                results[idx] = vector
                if cache_enabled:
                    self._cache[self._get_cache_key(text)] = vector

        return [results.get(i) for i in range(len(texts))]

    def clear_cache(self):
        """Clear the embedding cache."""
        self._cache.clear()
        logger.info("Embedding cache cleared")

    def get_cache_size(self) -> int:
        """Get the number of cached embeddings."""
        return len(self._cache)


# Global embedding service instance
embedding_service = EmbeddingService()
