from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "teamboard-api"
    jwt_audience: str = "teamboard-api"
    jwt_expires_minutes: int = 60

    magic_link_expires_minutes: int = 15
    magic_link_pepper: str = "dev-pepper-change-me"

    # first sign-in with this address is promoted to admin
    bootstrap_admin_email: str | None = None

    # change feed: "redis" for multi-process deployments, "local" for a single process
    change_feed: str = "redis"
    permissions_channel: str = "teamboard:permissions"
    stream_keepalive_seconds: float = 15.0

    # task sequence allocation
    task_allocation_max_attempts: int = 5
    task_allocation_backoff_seconds: float = 0.02

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_auth_request_link_per_min: int = 20
    rate_limit_auth_redeem_per_min: int = 30

settings = Settings()
