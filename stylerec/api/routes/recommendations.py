"""Recommendation routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from stylerec.api.deps import get_pipeline, get_row_store
from stylerec.db.row_store import RowStore
from stylerec.recommend.errors import (
    CandidateSourceFatalFailure,
    InvalidRequestError,
    UpstreamDataError,
)
from stylerec.recommend.pipeline import RecommendationPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


class RecommendationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")


class RecommendationView(BaseModel):
    url: str
    title: str
    brand: str
    price: str
    image_url: Optional[str]
    reason: str
    similarity_score: Optional[float] = None


class RecommendationsResponse(BaseModel):
    recommendations: list[RecommendationView]


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@router.post("", response_model=RecommendationsResponse)
async def generate_recommendations(
    request: Optional[RecommendationRequest] = None,
    pipeline: RecommendationPipeline = Depends(get_pipeline),
):
    """Generate recommendations from the user's saved items."""
    user_id = request.user_id if request else None
    try:
        result = await pipeline.run(user_id)
    except InvalidRequestError as e:
        return error_response(400, str(e))
    except UpstreamDataError as e:
        logger.error(f"Store failure generating recommendations for {user_id}: {e}")
        return error_response(500, "Failed to load saved items", str(e))
    except CandidateSourceFatalFailure as e:
        logger.error(f"Candidate source failure for {user_id}: {e}")
        return error_response(500, "Failed to generate recommendations", str(e))

    return JSONResponse(content=result.to_response())


@router.get("/{user_id}", response_model=RecommendationsResponse)
async def list_recommendations(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    store: RowStore = Depends(get_row_store),
):
    """Previously generated recommendations, newest first."""
    try:
        records = await store.list_recommendations(user_id, limit=limit)
    except UpstreamDataError as e:
        logger.error(f"Failed to list recommendations for {user_id}: {e}")
        return error_response(500, "Failed to load recommendations", str(e))
    return JSONResponse(content={"recommendations": [r.to_view() for r in records]})
