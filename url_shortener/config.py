from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = False

    # Application
    app_name: str = "URL Shortener"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    base_url: str = "http://localhost:8080"

    # Database (source of truth)
    database_url: str = "sqlite:///./url_shortener.db"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 86400  # 24 hours
    cache_timeout: float = 0.2  # Seconds per cache call, well inside redirect_timeout

    # Short code allocation
    short_code_length: int = 6
    short_code_extra_lengths: int = 2  # Widen up to length + 2
    short_code_max_attempts: int = 10  # Attempts per length
    shorten_max_collisions: int = 3  # Insert races retried before giving up

    # Analytics ingestion pipeline
    analytics_queue_size: int = 1000
    analytics_batch_size: int = 50
    analytics_flush_interval: float = 0.1  # Seconds
    analytics_shutdown_timeout: float = 10.0

    # Read limits
    stats_analytics_limit: int = 1000
    list_default_limit: int = 50
    list_max_limit: int = 100

    # Per-request deadlines (seconds)
    redirect_timeout: float = 2.0
    request_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
