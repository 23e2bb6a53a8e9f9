"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from api.routers import common_router, sessions_router
from api.services.session_registry import SessionRegistry
from orchestrator import configure_logging, get_logger
from orchestrator.clients import LernApiClient, OpenAIStreamingBackend
from orchestrator.clients.base import StreamingBackend
from orchestrator.config import Settings, load_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    configure_logging(settings)
    logger.info(f"Starting LERN orchestrator in {settings.environment.value} mode")

    api_client: LernApiClient | None = None
    openai_backend: OpenAIStreamingBackend | None = None
    if getattr(app.state, "registry", None) is None:
        api_client = LernApiClient(
            base_url=settings.api_base_url,
            api_token=settings.api_token,
            timeout=settings.request_timeout,
        )
        streaming: StreamingBackend = api_client
        if settings.openai_api_key:
            openai_backend = OpenAIStreamingBackend(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.request_timeout,
                model=settings.openai_model,
                max_retries=settings.max_retries,
            )
            streaming = openai_backend
        else:
            logger.info("OPENAI_API_KEY is not set, streaming through the REST API")

        app.state.registry = SessionRegistry(
            settings, streaming, api_client, documents=api_client
        )

    logger.info("LERN orchestrator initialized successfully")

    yield

    try:
        await app.state.registry.close_all()
    except Exception as e:
        logger.error(f"Error closing sessions: {e}")
    if openai_backend is not None:
        await openai_backend.aclose()
    if api_client is not None:
        await api_client.aclose()

    logger.info("LERN orchestrator shutting down")


def create_app(
    settings: Settings | None = None, registry: SessionRegistry | None = None
) -> FastAPI:
    """Create FastAPI app with current settings.

    Args:
        settings: Settings to use instead of the environment
        registry: Prebuilt session registry (tests inject fake backends)
    """
    settings = settings or load_settings()

    app = FastAPI(
        title=settings.api_title,
        description="Orchestrates streamed answers and motion generation",
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(common_router)
    app.include_router(sessions_router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> None:
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc))

    return app
