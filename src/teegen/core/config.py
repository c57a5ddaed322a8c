"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Slack Integration
    # Each credential is either given directly or resolved from Secrets Manager by id
    slack_signing_secret: str = Field(default="", alias="SLACK_SIGNING_SECRET")
    slack_signing_secret_id: str = Field(default="", alias="SLACK_SIGNING_SECRET_ID")
    slack_bot_token: str = Field(default="", alias="SLACK_BOT_TOKEN")
    slack_bot_token_id: str = Field(default="", alias="SLACK_BOT_TOKEN_ID")
    slack_api_base_url: str = Field(default="https://slack.com/api", alias="SLACK_API_BASE_URL")
    allowed_channel_id: str = Field(default="", alias="ALLOWED_CHANNEL_ID")
    signature_tolerance_seconds: int = Field(default=300, alias="SIGNATURE_TOLERANCE_SECONDS")

    # Image Generation
    image_provider: str = Field(default="gemini", alias="IMAGE_PROVIDER")
    image_count: int = Field(default=3, ge=1, le=4, alias="IMAGE_COUNT")
    image_aspect_ratio: str = Field(default="4:5", alias="IMAGE_ASPECT_RATIO")
    remove_background: bool = Field(default=True, alias="REMOVE_BACKGROUND")
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_api_token_id: str = Field(default="", alias="REPLICATE_API_TOKEN_ID")
    replicate_model_version: str = Field(
        default="black-forest-labs/flux-schnell", alias="REPLICATE_MODEL_VERSION"
    )
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_api_key_id: str = Field(default="", alias="GEMINI_API_KEY_ID")
    gemini_image_model: str = Field(
        default="imagen-4.0-generate-001", alias="GEMINI_IMAGE_MODEL"
    )
    gemini_text_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_TEXT_MODEL")
    bedrock_model_id: str = Field(
        default="amazon.titan-image-generator-v2:0", alias="BEDROCK_MODEL_ID"
    )
    bedrock_cfg_scale: float = Field(default=8.0, alias="BEDROCK_CFG_SCALE")
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")

    # Provider retry (throttling-class errors only)
    provider_max_attempts: int = Field(default=5, ge=1, alias="PROVIDER_MAX_ATTEMPTS")
    provider_retry_base_delay: float = Field(default=2.0, alias="PROVIDER_RETRY_BASE_DELAY")
    provider_retry_max_delay: float = Field(default=30.0, alias="PROVIDER_RETRY_MAX_DELAY")

    # Ideation
    ideation_enabled: bool = Field(default=True, alias="IDEATION_ENABLED")
    ideation_provider: str = Field(default="gemini", alias="IDEATION_PROVIDER")
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    anthropic_api_key_id: str = Field(default="", alias="ANTHROPIC_API_KEY_ID")
    anthropic_model: str = Field(default="claude-sonnet-4-5-20250929", alias="ANTHROPIC_MODEL")
    ideation_prompt_count: int = Field(default=5, ge=1, le=10, alias="IDEATION_PROMPT_COUNT")

    # Artifact Storage (S3 + optional CDN)
    images_bucket: str = Field(default="", alias="IMAGES_BUCKET")
    images_cdn_domain: str = Field(default="", alias="IMAGES_CDN_DOMAIN")
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    presigned_url_expiry_seconds: int = Field(default=604800, alias="PRESIGNED_URL_EXPIRY_SECONDS")
    request_ttl_days: int = Field(default=30, alias="REQUEST_TTL_DAYS")
    discarded_retention_days: int = Field(default=7, alias="DISCARDED_RETENTION_DAYS")

    # Work Queues
    poll_interval_seconds: float = Field(default=1.0, alias="POLL_INTERVAL_SECONDS")
    max_receive_count: int = Field(default=3, ge=1, alias="MAX_RECEIVE_COUNT")
    generation_job_timeout_seconds: int = Field(default=60, alias="GENERATION_JOB_TIMEOUT_SECONDS")
    generation_visibility_timeout_seconds: int = Field(
        default=360, alias="GENERATION_VISIBILITY_TIMEOUT_SECONDS"
    )
    generation_max_concurrency: int = Field(default=5, ge=1, alias="GENERATION_MAX_CONCURRENCY")
    action_job_timeout_seconds: int = Field(default=30, alias="ACTION_JOB_TIMEOUT_SECONDS")
    action_visibility_timeout_seconds: int = Field(
        default=180, alias="ACTION_VISIBILITY_TIMEOUT_SECONDS"
    )
    action_max_concurrency: int = Field(default=10, ge=1, alias="ACTION_MAX_CONCURRENCY")
    ideation_job_timeout_seconds: int = Field(default=60, alias="IDEATION_JOB_TIMEOUT_SECONDS")
    ideation_visibility_timeout_seconds: int = Field(
        default=360, alias="IDEATION_VISIBILITY_TIMEOUT_SECONDS"
    )
    ideation_max_concurrency: int = Field(default=5, ge=1, alias="IDEATION_MAX_CONCURRENCY")

    # Secrets Manager cache
    secret_cache_ttl_seconds: int = Field(default=300, alias="SECRET_CACHE_TTL_SECONDS")

    @model_validator(mode="after")
    def validate_queue_timeouts(self) -> "Settings":
        """Ensure every visibility timeout outlasts its worker's job budget.

        A message whose visibility lapses while its job is still running gets
        redelivered to a second consumer, so this holds in every environment.
        """
        for queue in ("generation", "action", "ideation"):
            budget = getattr(self, f"{queue}_job_timeout_seconds")
            visibility = getattr(self, f"{queue}_visibility_timeout_seconds")
            if visibility <= budget:
                raise ValueError(
                    f"{queue.upper()}_VISIBILITY_TIMEOUT_SECONDS ({visibility}) must exceed "
                    f"{queue.upper()}_JOB_TIMEOUT_SECONDS ({budget})"
                )
        return self

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with clear error messages if configuration is incomplete.
        Validation is skipped in test environments to avoid breaking tests.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not (self.slack_signing_secret or self.slack_signing_secret_id):
            missing.append(
                "SLACK_SIGNING_SECRET or SLACK_SIGNING_SECRET_ID: "
                "Basic Information > App Credentials in the Slack app settings"
            )

        if not (self.slack_bot_token or self.slack_bot_token_id):
            missing.append(
                "SLACK_BOT_TOKEN or SLACK_BOT_TOKEN_ID: OAuth & Permissions in the Slack app settings"
            )

        if not self.images_bucket:
            missing.append("IMAGES_BUCKET: S3 bucket that stores generated images")

        if self.image_provider == "replicate" and not (
            self.replicate_api_token or self.replicate_api_token_id
        ):
            missing.append(
                "REPLICATE_API_TOKEN: Get your API token from https://replicate.com/account/api-tokens"
            )

        uses_gemini = self.image_provider == "gemini" or (
            self.ideation_enabled and self.ideation_provider == "gemini"
        )
        if uses_gemini and not (self.gemini_api_key or self.gemini_api_key_id):
            missing.append("GEMINI_API_KEY: Create a key at https://aistudio.google.com/apikey")

        if (
            self.ideation_enabled
            and self.ideation_provider == "anthropic"
            and not (self.anthropic_api_key or self.anthropic_api_key_id)
        ):
            missing.append(
                "ANTHROPIC_API_KEY: Create a key at https://console.anthropic.com/settings/keys"
            )

        if self.image_provider not in ("replicate", "gemini", "bedrock"):
            missing.append(
                f"IMAGE_PROVIDER: unsupported value {self.image_provider!r} "
                "(expected replicate, gemini or bedrock)"
            )

        if self.ideation_enabled and self.ideation_provider not in ("gemini", "anthropic"):
            missing.append(
                f"IDEATION_PROVIDER: unsupported value {self.ideation_provider!r} "
                "(expected gemini or anthropic)"
            )

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.app_env == "production":
        renderer = structlog.processors.JSONRenderer()
        extra_processors = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]
    else:
        renderer = structlog.dev.ConsoleRenderer()
        extra_processors = []

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *extra_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
