"""Embedding generation route."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from stylerec.ai.embedding_service import EmbeddingService, EmbeddingServiceError
from stylerec.api.deps import get_embedding_service, get_row_store
from stylerec.api.routes.recommendations import error_response
from stylerec.db.row_store import RowStore
from stylerec.recommend.errors import UpstreamDataError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["embeddings"])


class GenerateEmbeddingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    link_id: Optional[int] = Field(default=None, alias="linkId")
    title: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None

    def embedding_text(self) -> str:
        parts = [self.title, self.brand, self.description]
        return " ".join(p.strip() for p in parts if p and p.strip())


@router.post("/generate-embedding")
async def generate_embedding(
    request: Optional[GenerateEmbeddingRequest] = None,
    store: RowStore = Depends(get_row_store),
    embeddings: EmbeddingService = Depends(get_embedding_service),
):
    """Compute and store the embedding for one link."""
    if request is None or request.link_id is None:
        return error_response(400, "Link ID is required")

    text = request.embedding_text()
    if not text:
        return error_response(400, "No text available to embed")

    try:
        vector = await embeddings.generate_embedding(text)
    except EmbeddingServiceError as e:
        logger.error(f"Embedding failed for link {request.link_id}: {e}", extra={"link_id": request.link_id})
        return error_response(500, "Failed to generate embedding", str(e))

    try:
        updated = await store.set_link_embedding(request.link_id, vector.tolist())
    except UpstreamDataError as e:
        logger.error(f"Failed to store embedding for link {request.link_id}: {e}", extra={"link_id": request.link_id})
        return error_response(500, "Failed to store embedding", str(e))

    if not updated:
        return error_response(404, "Link not found")

    logger.info(f"Stored {len(vector)}-dim embedding for link {request.link_id}", extra={"link_id": request.link_id})
    return {"success": True}
