import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError

CACHE_BACKENDS = ("memory", "redis", "postgres")


@dataclass(frozen=True)
class Settings:
    secret_param_name: str
    cache_table_name: str
    cache_ttl_seconds: int
    default_city_id: str
    cache_backend: str
    redis_url: str | None
    postgres_user: str
    postgres_password: str
    postgres_db: str
    postgres_host: str
    postgres_port: str
    owm_base_url: str
    origin_timeout_seconds: float
    route_alias: str
    host: str
    port: int
    log_dir: str

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://"
            f"{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def validate_settings(settings: Settings) -> Settings:
    if not settings.secret_param_name:
        raise ConfigError("SECRET_PARAM_NAME must not be empty")
    if not settings.cache_table_name:
        raise ConfigError("CACHE_TABLE_NAME must not be empty")
    if not settings.default_city_id:
        raise ConfigError("DEFAULT_CITY_ID must not be empty")
    if settings.cache_ttl_seconds <= 0:
        raise ConfigError(f"CACHE_TTL_SECONDS must be positive, got {settings.cache_ttl_seconds}")
    if settings.origin_timeout_seconds <= 0:
        raise ConfigError("ORIGIN_TIMEOUT_SECONDS must be positive")
    if settings.cache_backend not in CACHE_BACKENDS:
        raise ConfigError(
            f"CACHE_BACKEND must be one of {', '.join(CACHE_BACKENDS)}, got {settings.cache_backend!r}"
        )
    if settings.cache_backend == "redis" and not settings.redis_url:
        raise ConfigError("REDIS_URL is required when CACHE_BACKEND=redis")
    if not settings.route_alias.startswith("/") or settings.route_alias == "/weather":
        raise ConfigError(f"ROUTE_ALIAS must be an absolute path other than /weather, got {settings.route_alias!r}")
    return settings


def get_settings() -> Settings:
    load_dotenv()
    return validate_settings(Settings(
        secret_param_name=os.getenv("SECRET_PARAM_NAME", "OPENWEATHER_API_KEY"),
        cache_table_name=os.getenv("CACHE_TABLE_NAME", "weather_cache"),
        cache_ttl_seconds=_int_env("CACHE_TTL_SECONDS", "3600"),
        default_city_id=os.getenv("DEFAULT_CITY_ID", "1850147"),  # Tokyo
        cache_backend=os.getenv("CACHE_BACKEND", "memory").lower(),
        redis_url=os.getenv("REDIS_URL"),
        postgres_user=os.getenv("POSTGRES_USER", "weather_user"),
        postgres_password=os.getenv("POSTGRES_PASSWORD", "weather_pass"),
        postgres_db=os.getenv("POSTGRES_DB", "weather_db"),
        postgres_host=os.getenv("POSTGRES_HOST", "weather-postgres"),
        postgres_port=os.getenv("POSTGRES_PORT", "5432"),
        owm_base_url=os.getenv("OWM_BASE_URL", "https://api.openweathermap.org/data/2.5/weather"),
        origin_timeout_seconds=_float_env("ORIGIN_TIMEOUT_SECONDS", "10"),
        route_alias=os.getenv("ROUTE_ALIAS", "/tokyo"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", "8080"),
        log_dir=os.getenv("LOG_DIR", "logs"),
    ))
