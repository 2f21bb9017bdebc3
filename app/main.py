"""Research Compass API server.

Run with ``uvicorn app.main:app``.
"""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.api.routes import router
from app.services.ai_client import (
    AIServiceError,
    EmptyResponseError,
    GenerativeAIClient,
    MalformedResponseError,
    MissingCredentialError,
    PayloadTooLargeError,
    QuotaExceededError,
)
from app.services.translator import TranslationCache

logger = logging.getLogger(__name__)

AI_ERROR_STATUS: dict[type[AIServiceError], int] = {
    QuotaExceededError: 429,
    PayloadTooLargeError: 413,
    MissingCredentialError: 500,
    EmptyResponseError: 502,
    MalformedResponseError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the session store and the AI client; close both on shutdown."""
    settings = get_settings()
    app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    app.state.ai_client = GenerativeAIClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        max_tokens=settings.openai_max_tokens,
        timeout=settings.openai_timeout_seconds,
    )
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; AI endpoints will fail until it is configured")
    logger.info("Research Compass started (model=%s)", settings.openai_model)

    yield

    await app.state.ai_client.close()
    await app.state.redis.aclose()
    logger.info("Research Compass stopped")


def _configure_cors(app: FastAPI, settings: Settings) -> None:
    # Any localhost port is allowed while developing against the Vite server
    dev_origins = r"^http://localhost:\d+$" if settings.environment == "development" else None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=dev_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AIServiceError)
    async def handle_ai_error(request: Request, exc: AIServiceError):
        status_code = AI_ERROR_STATUS.get(type(exc), 502)
        logger.warning("AI service error on %s: %s", request.url.path, type(exc).__name__)
        return JSONResponse(status_code=status_code, content={"detail": exc.user_message})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Build the FastAPI application with routes, CORS and error handlers."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.translation_cache = TranslationCache()
    app.state.analysis_tasks = set()

    _configure_cors(app, settings)
    _register_error_handlers(app)
    app.include_router(router, prefix=settings.api_v1_prefix)
    return app


app = create_app()
