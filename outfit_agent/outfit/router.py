import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status

from outfit_agent.embedding.exceptions import (
    ConfigurationError,
    ExternalAPIError,
    VectorDBError,
)
from outfit_agent.outfit.composer import OutfitComposer, get_outfit_composer
from outfit_agent.outfit.explainer import OutfitExplainer, get_outfit_explainer
from outfit_agent.outfit.repository import ProductRepository, get_product_repository
from outfit_agent.outfit.schemas import (
    ExplainResponse,
    OutfitRequest,
    OutfitResponse,
    SearchRequest,
    SearchResponse,
    Slot,
)

router = APIRouter(prefix="/v1", tags=["outfit"])
logger = logging.getLogger(__name__)

DEMO_BUDGET_GBP = 120.0
DEMO_CART_SLOTS = [Slot.TOP]


def _upstream_http_error(err: Exception) -> HTTPException:
    if isinstance(err, ConfigurationError):
        logger.error("Configuration error: %s", err)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Server misconfigured: {err}",
        )
    if isinstance(err, ExternalAPIError):
        logger.error("External service error (%s): %s", err.service, err.message)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"External service error ({err.service}): {err.message}",
        )
    if isinstance(err, VectorDBError):
        logger.error("Vector database error: %s", err)
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Vector database error: {err.message}",
        )
    logger.exception("Unexpected error: %s", err)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Outfit recommendation failed.",
    )


@router.post(
    "/complete-outfit", response_model=OutfitResponse, status_code=status.HTTP_200_OK
)
async def complete_outfit(
    request: OutfitRequest,
    composer: Annotated[OutfitComposer, Depends(get_outfit_composer)],
) -> OutfitResponse:
    logger.info(
        "Received complete-outfit request: mission=%s, budget=%s, minEco=%s, cart=%s",
        request.mission.value,
        request.budget_gbp,
        request.min_eco_score,
        [s.value for s in request.cart_slots],
    )

    try:
        return await composer.complete_outfit(request)
    except Exception as err:
        raise _upstream_http_error(err) from err


@router.post("/demo", response_model=OutfitResponse, status_code=status.HTTP_200_OK)
async def demo_outfit(
    composer: Annotated[OutfitComposer, Depends(get_outfit_composer)],
    request: Annotated[OutfitRequest | None, Body()] = None,
) -> OutfitResponse:
    """Complete an outfit with demo defaults for every field left empty."""
    request = request or OutfitRequest()
    updates: dict = {}
    if request.budget_gbp is None:
        updates["budget_gbp"] = DEMO_BUDGET_GBP
    if not request.cart_slots:
        updates["cart_slots"] = list(DEMO_CART_SLOTS)
    if updates:
        request = request.model_copy(update=updates)

    try:
        return await composer.complete_outfit(request)
    except Exception as err:
        raise _upstream_http_error(err) from err


@router.post(
    "/explain-outfit", response_model=ExplainResponse, status_code=status.HTTP_200_OK
)
async def explain_outfit(
    response: OutfitResponse,
    explainer: Annotated[OutfitExplainer, Depends(get_outfit_explainer)],
) -> ExplainResponse:
    bullets = await explainer.explain(response)
    logger.info("Explained outfit with %d bullets", len(bullets))
    return ExplainResponse(bullets=bullets)


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search_products(
    request: SearchRequest,
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
) -> SearchResponse:
    try:
        hits = await repository.search(
            query_text=request.query,
            limit=request.limit,
            max_price=request.max_price_gbp,
            min_eco=request.min_eco_score,
            slot=request.slot,
        )
    except Exception as err:
        raise _upstream_http_error(err) from err

    return SearchResponse(hits=hits)
