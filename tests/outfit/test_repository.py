import math
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.models import QueryResponse, ScoredPoint

from outfit_agent.embedding.exceptions import ExternalAPIError, VectorDBError
from outfit_agent.outfit.repository import (
    ProductRepository,
    build_query_text,
    similarity_score,
)
from outfit_agent.outfit.schemas import Mission, Slot


def _point(point_id: int, distance: float, **payload: object) -> ScoredPoint:
    return ScoredPoint(id=point_id, version=1, score=distance, payload=payload)


@pytest.fixture
def mock_embedding_service() -> MagicMock:
    service = MagicMock()
    service.get_embedding = AsyncMock(return_value=[0.1] * 1536)
    return service


@pytest.fixture
def mock_qdrant_client() -> MagicMock:
    client = MagicMock()
    client.query_points = AsyncMock(return_value=QueryResponse(points=[]))
    return client


@pytest.fixture
def mock_settings() -> MagicMock:
    settings = MagicMock()
    settings.qdrant_collection_name = "test_products"
    settings.qdrant_timeout = 5
    return settings


@pytest.fixture
def repository(
    mock_embedding_service: MagicMock,
    mock_qdrant_client: MagicMock,
    mock_settings: MagicMock,
) -> ProductRepository:
    return ProductRepository(
        embedding_service=mock_embedding_service,
        qdrant_client=mock_qdrant_client,
        settings=mock_settings,
    )


class TestSearch:
    @pytest.mark.asyncio
    async def test_embeds_query_and_queries_collection(
        self,
        repository: ProductRepository,
        mock_embedding_service: MagicMock,
        mock_qdrant_client: MagicMock,
    ) -> None:
        hits = await repository.search("smart_casual bottom", limit=3, slot=Slot.BOTTOM)

        assert hits == []
        mock_embedding_service.get_embedding.assert_awaited_once_with("smart_casual bottom")
        kwargs = mock_qdrant_client.query_points.call_args.kwargs
        assert kwargs["collection_name"] == "test_products"
        assert kwargs["limit"] == 3
        assert kwargs["timeout"] == 5
        assert kwargs["with_payload"] is True

    @pytest.mark.asyncio
    async def test_builds_all_filters(
        self,
        repository: ProductRepository,
        mock_qdrant_client: MagicMock,
    ) -> None:
        await repository.search(
            "business_casual shoes", limit=2, max_price=45.0, min_eco=50, slot=Slot.SHOES
        )

        query_filter = mock_qdrant_client.query_points.call_args.kwargs["query_filter"]
        conditions = {c.key: c for c in query_filter.must}
        assert conditions["slot"].match == qdrant_models.MatchValue(value="shoes")
        assert conditions["eco_score"].range == qdrant_models.Range(gte=50)
        assert conditions["price_gbp"].range == qdrant_models.Range(lte=45.0)

    @pytest.mark.asyncio
    async def test_unconstrained_search_has_no_filter(
        self,
        repository: ProductRepository,
        mock_qdrant_client: MagicMock,
    ) -> None:
        await repository.search("linen shirt", limit=5, max_price=None, min_eco=0)

        assert mock_qdrant_client.query_points.call_args.kwargs["query_filter"] is None

    @pytest.mark.asyncio
    async def test_hits_sorted_by_distance_then_product_id(
        self,
        repository: ProductRepository,
        mock_qdrant_client: MagicMock,
    ) -> None:
        mock_qdrant_client.query_points = AsyncMock(
            return_value=QueryResponse(
                points=[
                    _point(3, 0.9, product_id="prod_c", slot="bottom"),
                    _point(2, 0.4, product_id="prod_b", slot="bottom"),
                    _point(1, 0.4, product_id="prod_a", slot="bottom"),
                ]
            )
        )

        hits = await repository.search("smart_casual bottom", limit=3)

        assert [h.product_id for h in hits] == ["prod_a", "prod_b", "prod_c"]
        assert [h.distance for h in hits] == sorted(h.distance for h in hits)
        assert hits[0].similarity == hits[1].similarity > hits[2].similarity

    @pytest.mark.asyncio
    async def test_embedding_failure_aborts(
        self,
        repository: ProductRepository,
        mock_embedding_service: MagicMock,
        mock_qdrant_client: MagicMock,
    ) -> None:
        mock_embedding_service.get_embedding.side_effect = ExternalAPIError("OpenAI", "boom")

        with pytest.raises(ExternalAPIError):
            await repository.search("smart_casual top", limit=3)

        mock_qdrant_client.query_points.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_embedding_aborts(
        self,
        repository: ProductRepository,
        mock_embedding_service: MagicMock,
    ) -> None:
        mock_embedding_service.get_embedding.return_value = []

        with pytest.raises(ExternalAPIError, match="empty vector"):
            await repository.search("smart_casual top", limit=3)

    @pytest.mark.asyncio
    async def test_store_failure_raises_vector_db_error(
        self,
        repository: ProductRepository,
        mock_qdrant_client: MagicMock,
    ) -> None:
        mock_qdrant_client.query_points.side_effect = TimeoutError("qdrant timed out")

        with pytest.raises(VectorDBError, match="query"):
            await repository.search("smart_casual top", limit=3)


class TestToHit:
    def test_full_payload(self) -> None:
        point = _point(
            7,
            1.23456,
            product_id="prod_01",
            slot="shoes",
            title="Canvas trainers",
            thumbnail="https://img.example.com/01.jpg",
            eco_score=72,
            price_gbp=39.5,
        )

        hit = ProductRepository._to_hit(point)

        assert hit.product_id == "prod_01"
        assert hit.slot == Slot.SHOES
        assert hit.title == "Canvas trainers"
        assert hit.eco_score == 72
        assert hit.price_gbp == 39.5
        assert hit.distance == 1.23
        # score comes from the unrounded distance
        assert hit.similarity == pytest.approx(math.exp(-1.23456) * 100)
        assert hit.reason == ""

    def test_missing_payload_fields_use_defaults(self) -> None:
        hit = ProductRepository._to_hit(_point(42, 0.0))

        assert hit.product_id == "42"
        assert hit.slot is None
        assert hit.eco_score == 0
        assert hit.price_gbp == 0.0
        assert hit.similarity == 100.0

    def test_unknown_slot_is_unclassified(self) -> None:
        hit = ProductRepository._to_hit(_point(1, 0.2, product_id="p", slot="hat"))

        assert hit.slot is None


class TestSimilarityScore:
    def test_zero_distance_is_100(self) -> None:
        assert similarity_score(0.0) == 100.0

    def test_strictly_decreasing(self) -> None:
        distances = [0.0, 0.01, 0.5, 1.0, 2.5, 10.0]
        scores = [similarity_score(d) for d in distances]

        assert all(a > b for a, b in zip(scores, scores[1:]))
        assert all(0 < s <= 100 for s in scores)


def test_build_query_text() -> None:
    assert build_query_text(Mission.OUTDOOR_RAIN, Slot.OUTERWEAR) == "outdoor_rain outerwear"
