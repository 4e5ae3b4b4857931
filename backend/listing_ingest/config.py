from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    INGEST_DB_URL: str = "sqlite+aiosqlite:///./listing_ingest.db"
    LOG_LEVEL: str = "INFO"

    # --- Minimal B2B Auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Page rendering ---
    RENDERER: str = "httpx"  # httpx|playwright
    RENDER_HEADLESS: bool = True
    RENDER_NAV_TIMEOUT_S: float = 60.0
    RENDER_READY_TIMEOUT_S: float = 15.0
    HTTP_VERIFY_SSL: bool = True

    # Optional: custom CA bundle path (rare on corp setups)
    HTTP_CA_BUNDLE: str | None = None

    # --- Parsers (per-source politeness) ---
    PARSER_MIN_REQUEST_DELAY_S: float = 2.0
    PARSER_PRE_NAV_DELAY_MIN_S: float = 2.0
    PARSER_PRE_NAV_DELAY_MAX_S: float = 5.0

    # --- Batches ---
    BATCH_MAX_URLS: int = 10
    BATCH_ITEM_DELAY_S: float = 1.0
    BATCH_FULL_PASS_DELAY_S: float = 2.0

    # --- Structured listings API (RapidAPI-hosted) ---
    RAPIDAPI_KEY: str | None = None
    RAPIDAPI_HOST: str = "us-real-estate.p.rapidapi.com"
    RAPIDAPI_BASE_URL: str | None = None  # defaults to https://<RAPIDAPI_HOST>
    RAPIDAPI_TIMEOUT_S: float = 10.0

    # --- Resilience ---
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_S: float = 1.0
    RETRY_MAX_DELAY_S: float = 10.0
    RETRY_JITTER_RATIO: float = 0.3

    BREAKER_FAILURE_THRESHOLD: int = 5
    BREAKER_SUCCESS_THRESHOLD: int = 2
    BREAKER_TIMEOUT_S: float = 60.0

    # --- Quota ---
    QUOTA_MONTHLY_LIMIT: int = 500
    QUOTA_COUNT_FAILED_CALLS: bool = True
    QUOTA_RETENTION_DAYS: int = 60
    QUOTA_STORE: str = "sql"  # sql|memory


settings = Settings()
