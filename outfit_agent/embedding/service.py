import logging
from functools import lru_cache
from typing import Any

import httpx

from outfit_agent.config import Settings, get_settings
from outfit_agent.embedding.exceptions import ConfigurationError, ExternalAPIError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Text embedding provider backed by the OpenAI embeddings endpoint."""

    def __init__(self: "EmbeddingService", settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    async def get_embedding(self: "EmbeddingService", text: str) -> list[float]:
        if not self.settings.openai_api_key:
            logger.error("OPENAI_API_KEY is not set")
            raise ConfigurationError("OPENAI_API_KEY")

        url = f"{self.settings.openai_base_url}/embeddings"
        headers = {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "Content-Type": "application/json",
        }
        payload = {"model": self.settings.embedding_model, "input": text}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    headers=headers,
                    json=payload,
                    timeout=self.settings.embedding_timeout,
                )
                response.raise_for_status()
                result: dict[str, Any] = response.json()
                data = result.get("data") or []
                embedding = data[0]["embedding"] if data else []
        except httpx.HTTPStatusError as err:
            logger.error("OpenAI embeddings error: %s", err.response.text)
            raise ExternalAPIError("OpenAI", err.response.text) from err
        except httpx.TimeoutException as err:
            logger.error("OpenAI embeddings timeout")
            raise ExternalAPIError("OpenAI", "Request timeout") from err
        except Exception as err:
            logger.exception("Unexpected error during embedding: %s", err)
            raise ExternalAPIError("OpenAI", str(err)) from err

        if not embedding:
            logger.error("OpenAI returned no embedding for text: %s", text[:50])
            raise ExternalAPIError("OpenAI", "no embedding returned")

        return embedding


# FastAPI treats parameters of a dependency as request parameters, so the
# factory takes none.
@lru_cache
def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()
