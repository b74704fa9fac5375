from __future__ import annotations

import os
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

# ============================================================
# Environment (before the app is imported: settings are read at import)
# ============================================================
TEST_ENV = {
    "APP_ENV": os.getenv("APP_ENV", "ci"),
    "DEBUG": os.getenv("DEBUG", "False"),
    "QDRANT_HOST": os.getenv("QDRANT_HOST", "localhost"),
    "QDRANT_PORT": os.getenv("QDRANT_PORT", "6333"),
    "QDRANT_COLLECTION_NAME": os.getenv("QDRANT_COLLECTION_NAME", "test_products"),
    "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY", "test_openai_key"),
}
os.environ.update(TEST_ENV)

from fastapi.testclient import TestClient  # noqa: E402
from pytest_mock import MockerFixture  # noqa: E402

from outfit_agent.main import app  # noqa: E402
from outfit_agent.outfit.schemas import Hit, Slot  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    os.environ.update(TEST_ENV)

    from outfit_agent.config import get_settings

    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def mock_db_clients(mocker: MockerFixture) -> AsyncMock:
    mock_qdrant: AsyncMock = AsyncMock()
    mock_qdrant.get_collections.return_value = MagicMock(collections=[])
    mocker.patch(
        "outfit_agent.core.database.AsyncQdrantClient", return_value=mock_qdrant
    )
    return mock_qdrant


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def mock_outfit_composer() -> Generator[AsyncMock, None, None]:
    from outfit_agent.outfit.composer import OutfitComposer, get_outfit_composer

    mock_composer: AsyncMock = AsyncMock(spec=OutfitComposer)
    app.dependency_overrides[get_outfit_composer] = lambda: mock_composer
    yield mock_composer
    app.dependency_overrides.clear()


@pytest.fixture
def mock_outfit_explainer() -> Generator[AsyncMock, None, None]:
    from outfit_agent.outfit.explainer import OutfitExplainer, get_outfit_explainer

    mock_explainer: AsyncMock = AsyncMock(spec=OutfitExplainer)
    app.dependency_overrides[get_outfit_explainer] = lambda: mock_explainer
    yield mock_explainer
    app.dependency_overrides.clear()


@pytest.fixture
def mock_product_repository() -> Generator[AsyncMock, None, None]:
    from outfit_agent.outfit.repository import (
        ProductRepository,
        get_product_repository,
    )

    mock_repository: AsyncMock = AsyncMock(spec=ProductRepository)
    app.dependency_overrides[get_product_repository] = lambda: mock_repository
    yield mock_repository
    app.dependency_overrides.clear()


def make_hit(
    product_id: str,
    slot: Slot | None = Slot.BOTTOM,
    eco_score: int = 60,
    price_gbp: float = 40.0,
    distance: float = 0.5,
    title: str = "",
) -> Hit:
    from outfit_agent.outfit.repository import similarity_score

    return Hit(
        product_id=product_id,
        slot=slot,
        title=title or f"Product {product_id}",
        thumbnail=f"https://img.example.com/{product_id}.jpg",
        eco_score=eco_score,
        price_gbp=price_gbp,
        distance=round(distance, 2),
        similarity=similarity_score(distance),
    )


@pytest.fixture
def hit_factory():
    return make_hit
