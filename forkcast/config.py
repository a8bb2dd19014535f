"""Application configuration using Pydantic Settings."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelConfigOverride(BaseModel):
    """Extra upstream LLM configuration supplied through the environment."""

    api_key: str = ""
    base_url: str
    description: str | None = None
    max_concurrent_requests: int | None = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Key-value store
    redis_url: str = ""
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_username: str = ""
    redis_password: str = ""
    redis_db: int = 0
    redis_connect_timeout: float = 10.0
    redis_ready_timeout: float = 15.0
    redis_recheck_interval: float = 10.0
    redis_max_retries: int = 3
    redis_retry_step: float = 0.1
    redis_retry_cap: float = 10.0

    # LLM
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_max_concurrent_requests: int = 1000
    llm_model: str = "gpt-4o-mini"
    llm_timeout: float = 60.0
    llm_max_retries: int = 3
    llm_rate_limit_cooldown: float = 1.0
    extra_model_configs: dict[str, ModelConfigOverride] = {}

    # Weather / geocoding providers
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    ip_geolocation_url: str = "https://ipapi.co"
    provider_user_agent: str = "Food Recommendation App"
    http_timeout: float = 10.0

    # Human verification
    recaptcha_secret_key: str = ""
    recaptcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    recaptcha_min_score: float = 0.5

    default_locale: str = "vi"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
