import logging

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as qdrant_models
from tenacity import retry, stop_after_attempt, wait_fixed

from outfit_agent.config import Settings, get_settings

logger = logging.getLogger(__name__)

_qdrant_client: AsyncQdrantClient | None = None

# payload field -> index type, one per search filter
PAYLOAD_INDEXES: dict[str, qdrant_models.PayloadSchemaType] = {
    "slot": qdrant_models.PayloadSchemaType.KEYWORD,
    "eco_score": qdrant_models.PayloadSchemaType.INTEGER,
    "price_gbp": qdrant_models.PayloadSchemaType.FLOAT,
}


async def get_qdrant_client() -> AsyncQdrantClient:
    if _qdrant_client is None:
        raise RuntimeError(
            "Vector store is not initialized. Call init_vector_store() first."
        )
    return _qdrant_client


async def ensure_product_collection(
    client: AsyncQdrantClient, settings: Settings
) -> bool:
    """Create the product collection and its filter indexes when absent.

    Returns True if the collection had to be created.
    """
    name = settings.qdrant_collection_name
    existing = await client.get_collections()
    if any(col.name == name for col in existing.collections):
        logger.info("Product collection %r found", name)
        return False

    logger.info(
        "Creating product collection %r (dim=%d)", name, settings.embedding_dimensions
    )
    # Euclidean: query scores are L2 distances, closest first
    await client.create_collection(
        collection_name=name,
        vectors_config=qdrant_models.VectorParams(
            size=settings.embedding_dimensions,
            distance=qdrant_models.Distance.EUCLID,
        ),
    )
    for field_name, field_schema in PAYLOAD_INDEXES.items():
        await client.create_payload_index(
            collection_name=name,
            field_name=field_name,
            field_schema=field_schema,
        )
    return True


@retry(stop=stop_after_attempt(5), wait=wait_fixed(2), reraise=True)
async def init_vector_store() -> None:
    global _qdrant_client

    settings = get_settings()
    logger.info(
        "Connecting to Qdrant at %s:%s", settings.qdrant_host, settings.qdrant_port
    )
    client = AsyncQdrantClient(
        host=settings.qdrant_host,
        port=settings.qdrant_port,
        api_key=settings.qdrant_api_key,
        timeout=settings.qdrant_timeout,
        https=settings.qdrant_use_https,
        prefer_grpc=settings.qdrant_prefer_grpc,
    )

    try:
        await ensure_product_collection(client, settings)
    except Exception as e:
        logger.error("Qdrant start-up check failed: %s", e)
        await client.close()
        raise

    _qdrant_client = client
    logger.info("Vector store ready")


async def close_vector_store() -> None:
    global _qdrant_client

    client, _qdrant_client = _qdrant_client, None
    if client is None:
        return
    try:
        await client.close()
    except Exception as e:
        logger.error("Error closing Qdrant connection: %s", e)
    else:
        logger.info("Qdrant connection closed")


async def check_health() -> dict[str, str]:
    if _qdrant_client is None:
        return {"qdrant": "not_initialized"}
    try:
        await _qdrant_client.get_collections()
    except Exception as e:
        logger.error("Qdrant health check failed: %s", e)
        return {"qdrant": f"error: {e}"}
    return {"qdrant": "connected"}
