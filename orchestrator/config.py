"""Configuration management for the LERN orchestrator."""

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_PROGRESS_CEILING,
    DEFAULT_STREAM_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    ELAPSED_TICK_SECONDS,
    PROGRESS_TICK_SECONDS,
    PROVIDER_ALIASES,
)
from .types import Environment, TaskDomain, WorkflowMode


def _parse_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.lower() in ["true", "1", "yes", "on"]


class Settings(BaseModel):
    """Application settings."""

    # Environment
    version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production/testing)",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_colors: bool = Field(default=True, description="Colored console logs")

    # API Settings
    api_title: str = Field(default="LERN Orchestrator API", description="API title")
    api_version: str = Field(default="1.0.0", description="API version")
    cors_allow_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )

    # Back-end REST API
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, description="Base URL of the product REST API"
    )
    api_token: str | None = Field(
        default=None, description="Bearer token forwarded to the REST API"
    )
    request_timeout: float = Field(
        default=DEFAULT_TIMEOUT, description="Provider request timeout in seconds"
    )

    # Providers
    stream_max_tokens: int = Field(
        default=DEFAULT_STREAM_MAX_TOKENS,
        description="Output token budget for streamed free-form answers",
    )
    primary_provider: str = Field(
        default="gemini", description="Provider answering free-form queries"
    )
    secondary_provider: str = Field(
        default="gpt4", description="Provider re-generating after feedback"
    )
    intake_provider: str = Field(
        default="gemini", description="Provider driving the intake dialogue"
    )
    creator_provider: str = Field(
        default="claude", description="Stage-1 provider in create-then-refine mode"
    )
    refiner_provider: str = Field(
        default="gemini", description="Stage-2 provider in create-then-refine mode"
    )
    parallel_providers: list[str] = Field(
        default=["claude", "gemini", "gpt4"],
        description="Providers compared in parallel mode",
    )
    provider_aliases: dict[str, str] = Field(
        default_factory=lambda: dict(PROVIDER_ALIASES),
        description="Product-level provider names mapped to back-end providers",
    )

    # Workflow
    domain: TaskDomain = Field(
        default=TaskDomain.LEGAL, description="Dashboard tab requests come from"
    )
    workflow: WorkflowMode = Field(
        default=WorkflowMode.REFINE, description="Motion generation workflow"
    )
    jurisdiction_country: str = Field(
        default="canada", description="Jurisdiction country key"
    )
    jurisdiction_region: str = Field(
        default="ontario", description="Jurisdiction state/province key"
    )

    # Progress
    progress_ceiling: float = Field(
        default=DEFAULT_PROGRESS_CEILING,
        description="Upper bound of synthetic progress while a stage runs",
    )
    progress_tick_seconds: float = Field(
        default=PROGRESS_TICK_SECONDS, description="Progress tick interval"
    )
    elapsed_tick_seconds: float = Field(
        default=ELAPSED_TICK_SECONDS, description="Elapsed counter interval"
    )
    stage_transition_delay: float = Field(
        default=0.6,
        description="Pause after stage 1 completes before stage 2 starts",
    )

    # Direct OpenAI-compatible streaming
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="OpenAI API base URL"
    )
    openai_model: str = Field(
        default="gpt-4o-mini", description="Model used for direct streaming"
    )
    max_retries: int = Field(
        default=3, description="Maximum retries for OpenAI API requests"
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        # Cosmetic pauses only slow the test suite down
        if self.environment == Environment.TESTING:
            self.stage_transition_delay = 0.0

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == Environment.TESTING

    def resolve_provider(self, provider: str) -> str:
        """Map a product-level provider name to the back-end provider."""
        return self.provider_aliases.get(provider, provider)


def load_settings() -> Settings:
    """Load settings from environment variables."""

    # Load .env file if it exists
    load_dotenv()

    cors_origins_str = os.getenv("LERN_CORS_ORIGINS", "*")
    if cors_origins_str == "*":
        cors_origins = ["*"]
    else:
        cors_origins = _parse_list(cors_origins_str)

    parallel_providers = _parse_list(
        os.getenv("LERN_PARALLEL_PROVIDERS", "claude,gemini,gpt4")
    )

    settings = Settings(
        environment=Environment(os.getenv("LERN_ENV", "development")),
        log_level=os.getenv("LERN_LOG_LEVEL", "INFO").upper(),
        log_dir=os.getenv("LERN_LOG_DIR", "logs"),
        log_colors=_parse_bool(os.getenv("LERN_LOG_COLORS", "true")),
        api_title=os.getenv("LERN_API_TITLE", "LERN Orchestrator API"),
        api_version=os.getenv("LERN_API_VERSION", "1.0.0"),
        cors_allow_origins=cors_origins,
        api_base_url=os.getenv("LERN_API_BASE_URL", DEFAULT_API_BASE_URL),
        api_token=os.getenv("LERN_API_TOKEN") or None,
        request_timeout=float(os.getenv("LERN_REQUEST_TIMEOUT", str(DEFAULT_TIMEOUT))),
        stream_max_tokens=int(
            os.getenv("LERN_STREAM_MAX_TOKENS", str(DEFAULT_STREAM_MAX_TOKENS))
        ),
        primary_provider=os.getenv("LERN_PRIMARY_PROVIDER", "gemini"),
        secondary_provider=os.getenv("LERN_SECONDARY_PROVIDER", "gpt4"),
        intake_provider=os.getenv("LERN_INTAKE_PROVIDER", "gemini"),
        creator_provider=os.getenv("LERN_CREATOR_PROVIDER", "claude"),
        refiner_provider=os.getenv("LERN_REFINER_PROVIDER", "gemini"),
        parallel_providers=parallel_providers,
        domain=TaskDomain(os.getenv("LERN_DOMAIN", "legal")),
        workflow=WorkflowMode(os.getenv("LERN_WORKFLOW", "refine")),
        jurisdiction_country=os.getenv("LERN_JURISDICTION_COUNTRY", "canada"),
        jurisdiction_region=os.getenv("LERN_JURISDICTION_REGION", "ontario"),
        progress_ceiling=float(
            os.getenv("LERN_PROGRESS_CEILING", str(DEFAULT_PROGRESS_CEILING))
        ),
        stage_transition_delay=float(os.getenv("LERN_STAGE_TRANSITION_DELAY", "0.6")),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_base_url=os.getenv("LERN_OPENAI_BASE_URL", "https://api.openai.com/v1"),
        openai_model=os.getenv("LERN_OPENAI_MODEL", "gpt-4o-mini"),
        max_retries=int(os.getenv("LERN_MAX_RETRIES", "3")),
    )

    if _parse_bool(os.getenv("LERN_DISABLE_STAGE_PAUSE", "false")):
        settings.stage_transition_delay = 0.0

    return settings
