from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient


def test_root(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "running"}


def test_health_connected(client: TestClient, mock_db_clients: AsyncMock) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "services": {"qdrant": "connected"}}


def test_health_degraded_when_qdrant_fails(
    client: TestClient, mock_db_clients: AsyncMock
) -> None:
    mock_db_clients.get_collections.side_effect = ConnectionError("refused")

    response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["qdrant"].startswith("error")


def test_startup_creates_collection_with_indexes(
    client: TestClient, mock_db_clients: AsyncMock
) -> None:
    mock_db_clients.create_collection.assert_awaited_once()
    vectors_config = mock_db_clients.create_collection.call_args.kwargs["vectors_config"]
    assert vectors_config.size == 1536
    assert vectors_config.distance == "Euclid"

    indexed = {
        c.kwargs["field_name"] for c in mock_db_clients.create_payload_index.call_args_list
    }
    assert indexed == {"slot", "eco_score", "price_gbp"}
