from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    sahha_api_url: str = "https://sandbox.sahha.health/api"
    sahha_account_token: str = ""
    sahha_timeout: float = 30.0
    biomarker_cache_ttl: int = 1800
    biomarker_cache_check_period: int = 300
    pattern_cache_ttl: int = 3600
    pattern_cache_check_period: int = 600
    resource_cache_ttl: int = 900
    resource_cache_check_period: int = 180
    insight_cache_ttl: int = 2700
    insight_cache_check_period: int = 300
    cache_use_clones: bool = False
    cache_warm_on_startup: bool = True
    cors_origins: str = "*"
    log_format: str = "text"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
