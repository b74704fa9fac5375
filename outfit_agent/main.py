import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outfit_agent.config import get_settings
from outfit_agent.core.database import (
    check_health,
    close_vector_store,
    init_vector_store,
)
from outfit_agent.outfit.router import router as outfit_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info(
        "Starting outfit agent (env=%s, collection=%s)",
        settings.app_env,
        settings.qdrant_collection_name,
    )
    # raises after the start-up retries are exhausted; the app does not serve
    await init_vector_store()

    yield

    await close_vector_store()
    logger.info("Outfit agent stopped")


app = FastAPI(
    title="Outfit Completion Agent",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(outfit_router, prefix="/ai")


@app.get("/")
async def root() -> dict[str, str]:
    return {"status": "running"}


@app.get("/health")
async def health_check() -> JSONResponse:
    services = await check_health()
    healthy = all(state == "connected" for state in services.values())

    return JSONResponse(
        content={"status": "healthy" if healthy else "degraded", "services": services},
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )


# ============================================================
# Custom error handlers
# ============================================================


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Request validation error handler

    - missing field, wrong type or unparseable JSON -> 400 Bad Request
    - rule violations (unknown slot, min_length, ...) -> 422 Unprocessable Entity
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    error_type = first_error.get("type", "")
    loc = first_error.get("loc", [])

    # body -> cartSlots -> 0 : report the field name, not the index
    field_name = next((str(p) for p in reversed(loc) if isinstance(p, str)), "")

    message = _get_error_message(error_type, field_name, first_error.get("msg", ""))

    if _is_bad_request(error_type):
        status_code = status.HTTP_400_BAD_REQUEST
        error_code = "INVALID_REQUEST"
    else:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        error_code = "VALIDATION_ERROR"

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "errorCode": error_code, "message": message},
    )


def _is_bad_request(error_type: str) -> bool:
    return (
        "missing" in error_type
        or "json" in error_type
        or error_type.endswith("_type")
        or error_type.endswith("_parsing")
    )


def _get_error_message(error_type: str, field_name: str, detail: str) -> str:
    if "missing" in error_type:
        return f"{field_name} is required"

    if "json" in error_type:
        return "request body is not valid JSON"

    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return f"{field_name} has an invalid type"

    if "too_short" in error_type or "too_long" in error_type:
        return f"{field_name} has an invalid length"

    if error_type == "value_error" and detail:
        return f"{field_name}: {detail.removeprefix('Value error, ')}"

    return "request data is invalid"


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("outfit_agent.main:app", host=settings.host, port=settings.port)
