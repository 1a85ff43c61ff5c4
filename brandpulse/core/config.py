from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "bp_user"
    postgres_password: str = "changeme"
    postgres_db: str = "brandpulse"

    @property
    def postgres_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def postgres_url_sync(self) -> str:
        """For Alembic migrations (sync driver)."""
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # LLM providers (counting chain: cerebras -> gemini)
    cerebras_api_key: str = ""
    cerebras_model: str = "llama3.1-8b"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    openrouter_api_key: str = ""
    openrouter_model: str = "openai/gpt-oss-20b"
    openrouter_site_url: str = ""
    openrouter_site_title: str = "brandpulse"
    provider_timeout_seconds: float = 30.0

    # Mention counting
    counting_max_tokens: int = 500
    counting_temperature: float = 0.1
    counting_max_answer_chars: int = 3000
    product_extraction_max_answer_chars: int = 2000

    # Visibility index calibration
    visibility_prominence_weight: float = 0.6
    visibility_density_weight: float = 0.4

    # Batch scoring
    scoring_batch_size: int = 50
    scoring_concurrency: int = 5
    scoring_interval_seconds: int = 300

    # App
    app_env: str = "development"
    app_debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on worker startup in non-test environments."""
    errors: list[str] = []

    if not settings.cerebras_api_key and not settings.gemini_api_key:
        errors.append("At least one of CEREBRAS_API_KEY or GEMINI_API_KEY must be set for mention counting")

    if settings.visibility_prominence_weight < 0 or settings.visibility_density_weight < 0:
        errors.append("Visibility index weights must be non-negative")

    if settings.app_env == "production":
        if settings.postgres_password in ("changeme", ""):
            errors.append("POSTGRES_PASSWORD must be changed in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
