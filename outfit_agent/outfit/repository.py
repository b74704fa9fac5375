import logging
import math
from functools import lru_cache

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.models import ScoredPoint

from outfit_agent.config import Settings, get_settings
from outfit_agent.core.database import get_qdrant_client
from outfit_agent.embedding.exceptions import ExternalAPIError, VectorDBError
from outfit_agent.embedding.service import EmbeddingService, get_embedding_service
from outfit_agent.outfit.schemas import Hit, Mission, Slot

logger = logging.getLogger(__name__)


def build_query_text(mission: Mission, slot: Slot) -> str:
    return f"{mission.value} {slot.value}"


def similarity_score(distance: float) -> float:
    """Display score in (0, 100], strictly decreasing in distance."""
    return math.exp(-distance) * 100


class ProductRepository:
    """Nearest-neighbour product search over the Qdrant product collection.

    Distances are Euclidean (the collection is created with
    ``Distance.EUCLID``), so Qdrant's score is the distance itself and results
    come back closest first. Equal distances are ordered by product id within
    the page Qdrant returns; when tied points straddle ``limit``, Qdrant's own
    ordering decides which of them make the page.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService | None = None,
        qdrant_client: AsyncQdrantClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._embedding_service = embedding_service
        self._qdrant_client = qdrant_client
        self.settings = settings or get_settings()

    async def _get_embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            self._embedding_service = get_embedding_service()
        return self._embedding_service

    async def _get_qdrant(self) -> AsyncQdrantClient:
        # init_vector_store() replaces the shared client on each start
        if self._qdrant_client is None:
            return await get_qdrant_client()
        return self._qdrant_client

    async def search(
        self,
        query_text: str,
        limit: int,
        max_price: float | None = None,
        min_eco: int | None = None,
        slot: Slot | None = None,
    ) -> list[Hit]:
        embedding_service = await self._get_embedding_service()
        qdrant = await self._get_qdrant()

        query_vector = await embedding_service.get_embedding(query_text)
        if not query_vector:
            raise ExternalAPIError("Embedding", "empty vector returned")

        query_filter = self._build_filter(max_price, min_eco, slot)

        try:
            response = await qdrant.query_points(
                collection_name=self.settings.qdrant_collection_name,
                query=query_vector,
                query_filter=query_filter,
                limit=limit,
                with_payload=True,
                timeout=self.settings.qdrant_timeout,
            )
        except Exception as err:
            logger.exception("Qdrant query failed: %s", err)
            raise VectorDBError("query", str(err)) from err

        points = sorted(response.points, key=self._sort_key)
        hits = [self._to_hit(point) for point in points]

        logger.info(
            "Search completed: query=%r, slot=%s, maxPrice=%s, minEco=%s, found=%d",
            query_text,
            slot.value if slot else "any",
            max_price,
            min_eco,
            len(hits),
        )

        return hits

    @staticmethod
    def _build_filter(
        max_price: float | None,
        min_eco: int | None,
        slot: Slot | None,
    ) -> qdrant_models.Filter | None:
        must_conditions: list[qdrant_models.Condition] = []

        if slot is not None:
            must_conditions.append(
                qdrant_models.FieldCondition(
                    key="slot",
                    match=qdrant_models.MatchValue(value=slot.value),
                )
            )

        if min_eco is not None and min_eco > 0:
            must_conditions.append(
                qdrant_models.FieldCondition(
                    key="eco_score",
                    range=qdrant_models.Range(gte=min_eco),
                )
            )

        if max_price is not None and max_price > 0:
            must_conditions.append(
                qdrant_models.FieldCondition(
                    key="price_gbp",
                    range=qdrant_models.Range(lte=max_price),
                )
            )

        if not must_conditions:
            return None
        return qdrant_models.Filter(must=must_conditions)

    @staticmethod
    def _sort_key(point: ScoredPoint) -> tuple[float, str]:
        payload = point.payload or {}
        return point.score, str(payload.get("product_id", point.id))

    @staticmethod
    def _to_hit(point: ScoredPoint) -> Hit:
        payload = point.payload or {}
        distance = max(float(point.score), 0.0)
        return Hit(
            product_id=str(payload.get("product_id", point.id)),
            slot=Slot.parse_optional(payload.get("slot")),
            title=payload.get("title") or "",
            thumbnail=payload.get("thumbnail") or "",
            eco_score=int(payload.get("eco_score") or 0),
            price_gbp=float(payload.get("price_gbp") or 0.0),
            distance=round(distance, 2),
            similarity=similarity_score(distance),
        )


@lru_cache
def get_product_repository() -> ProductRepository:
    return ProductRepository()
