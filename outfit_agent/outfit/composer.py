import asyncio
import logging
from functools import lru_cache

from outfit_agent.outfit.budget import allocate_budget
from outfit_agent.outfit.repository import (
    ProductRepository,
    build_query_text,
    get_product_repository,
)
from outfit_agent.outfit.schemas import (
    DEFAULT_LIMIT_PER_SLOT,
    Hit,
    OutfitRequest,
    OutfitResponse,
    Slot,
    SlotResult,
)
from outfit_agent.outfit.slots import missing_slots, required_slots

logger = logging.getLogger(__name__)


def format_budget_ceiling(slot_budget: float | None) -> str:
    if slot_budget is None:
        return "slotBudget=unlimited"
    return f"slotBudget<=£{slot_budget:.2f}"


def format_eco_floor(min_eco: int | None) -> str:
    return f"minEco={min_eco if min_eco is not None else 'any'}"


def no_results_reason(slot: Slot, slot_budget: float | None, min_eco: int | None) -> str:
    return (
        f"No products satisfy constraints for slot={slot.value} "
        f"({format_budget_ceiling(slot_budget)}, {format_eco_floor(min_eco)})."
    )


def hit_reason(slot: Slot, hit: Hit, slot_budget: float | None) -> str:
    if slot_budget is None:
        fit = "no slot budget set"
    else:
        fit = f"within slot budget £{slot_budget:.2f}"
    return (
        f"Matches slot={slot.value}. Eco={hit.eco_score}. "
        f"Price=£{hit.price_gbp:.2f} {fit}."
    )


class OutfitComposer:
    """Finds products for every slot the cart is missing."""

    def __init__(self, repository: ProductRepository | None = None) -> None:
        self._repository = repository

    def _get_repository(self) -> ProductRepository:
        if self._repository is None:
            self._repository = get_product_repository()
        return self._repository

    async def complete_outfit(self, request: OutfitRequest) -> OutfitResponse:
        limit = request.limit_per_slot
        if limit <= 0:
            limit = DEFAULT_LIMIT_PER_SLOT

        required = required_slots(request.mission)
        missing = missing_slots(required, request.cart_slots)

        logger.info(
            "Completing outfit: mission=%s, cart=%s, missing=%s",
            request.mission.value,
            [s.value for s in request.cart_slots],
            [s.value for s in missing],
        )

        if not missing:
            return OutfitResponse(missing_slots=[], results=[])

        slot_budget = allocate_budget(request.budget_gbp, len(missing))

        hits_per_slot = await self._search_all(request, missing, limit, slot_budget)

        results = [
            self._build_slot_result(slot, hits, slot_budget, request.min_eco_score)
            for slot, hits in zip(missing, hits_per_slot)
        ]

        return OutfitResponse(missing_slots=missing, results=results)

    async def _search_all(
        self,
        request: OutfitRequest,
        missing: list[Slot],
        limit: int,
        slot_budget: float | None,
    ) -> list[list[Hit]]:
        """One concurrent search per slot, results in ``missing`` order.

        The first failure cancels the searches still in flight and is
        re-raised as is.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._search_slot(request, slot, limit, slot_budget)
                    )
                    for slot in missing
                ]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None

        return [task.result() for task in tasks]

    async def _search_slot(
        self,
        request: OutfitRequest,
        slot: Slot,
        limit: int,
        slot_budget: float | None,
    ) -> list[Hit]:
        return await self._get_repository().search(
            query_text=build_query_text(request.mission, slot),
            limit=limit,
            max_price=slot_budget,
            min_eco=request.min_eco_score,
            slot=slot,
        )

    @staticmethod
    def _build_slot_result(
        slot: Slot,
        hits: list[Hit] | None,
        slot_budget: float | None,
        min_eco: int | None,
    ) -> SlotResult:
        if not hits:
            logger.info("No hits for slot=%s", slot.value)
            return SlotResult(
                slot=slot,
                hits=[],
                reason=no_results_reason(slot, slot_budget, min_eco),
            )

        annotated = [
            hit.model_copy(update={"reason": hit_reason(slot, hit, slot_budget)})
            for hit in hits
        ]
        return SlotResult(slot=slot, hits=annotated)


@lru_cache
def get_outfit_composer() -> OutfitComposer:
    return OutfitComposer()
