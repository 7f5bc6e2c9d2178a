from fastapi import APIRouter, Depends, HTTPException, status

from service.core.exception_handler import common_exception_handler
from service.log import get_logger
from service.scoring.handler import ScoringHandler, get_handler
from service.scoring.schema import (
    BatchScoreRequest,
    BatchScoreResponse,
    HealthResponse,
    ScoreRequest,
    ScoreResponse,
    SemanticRequest,
    SemanticResponse,
)

logger = get_logger(__name__)

SCORING_PREFIX = "/v1/scoring"

router = APIRouter(prefix=SCORING_PREFIX, tags=["scoring"])


@router.post(
    "/score",
    response_model=ScoreResponse,
    response_model_exclude_none=True,
    summary="Score a generated image against its target",
)
@common_exception_handler
async def score(request: ScoreRequest, handler: ScoringHandler = Depends(get_handler)) -> ScoreResponse:
    return await handler.score(request)


@router.post(
    "/batch",
    response_model=BatchScoreResponse,
    response_model_exclude_none=True,
    summary="Score multiple image pairs",
)
@common_exception_handler
async def score_batch(request: BatchScoreRequest, handler: ScoringHandler = Depends(get_handler)) -> BatchScoreResponse:
    if not request.scorings:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Batch request must contain at least one image pair")

    return await handler.score_batch(request)


@router.post(
    "/semantic",
    response_model=SemanticResponse,
    summary="Direct CLIP comparison of two images",
)
@common_exception_handler
async def compare_semantic(
    request: SemanticRequest, handler: ScoringHandler = Depends(get_handler)
) -> SemanticResponse:
    return await handler.compare_semantic(request)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
@common_exception_handler
async def health_check(handler: ScoringHandler = Depends(get_handler)) -> HealthResponse:
    return await handler.health_check()
