import logging
import os

import httpx
from aiohttp import web
from redis import asyncio as aioredis

from .cache import ExpiringKeyValueStore, InMemoryExpiringStore, RedisExpiringStore
from .config import Settings, get_settings
from .fetcher import CacheAsideFetcher
from .secret_store import EnvSecretStore
from .weather_client import OpenWeatherClient

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
FETCHER_KEY = web.AppKey("fetcher", CacheAsideFetcher)
HTTP_CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


def setup_logging(log_dir: str) -> None:
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(log_dir, "app.log")),
        ],
    )


def build_store(settings: Settings) -> ExpiringKeyValueStore:
    if settings.cache_backend == "redis":
        client = aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        return RedisExpiringStore(client, prefix=settings.cache_table_name)
    if settings.cache_backend == "postgres":
        from .db import make_sql_store

        return make_sql_store(settings)
    return InMemoryExpiringStore()


def build_fetcher(settings: Settings, http_client: httpx.AsyncClient) -> CacheAsideFetcher:
    return CacheAsideFetcher(
        EnvSecretStore(),
        build_store(settings),
        OpenWeatherClient(http_client, base_url=settings.owm_base_url,
                          deadline=settings.origin_timeout_seconds),
        secret_name=settings.secret_param_name,
        default_location_id=settings.default_city_id,
        ttl_seconds=settings.cache_ttl_seconds,
    )


async def weather_handler(request: web.Request) -> web.Response:
    logger.info("Request: %s %s", request.method, request.path)
    result = await request.app[FETCHER_KEY].handle_request()
    return web.Response(status=result.status, text=result.body, headers=result.headers)


async def preflight_handler(request: web.Request) -> web.Response:
    requested = request.headers.get("Access-Control-Request-Headers")
    return web.Response(status=204, headers={
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
        "Access-Control-Allow-Headers": requested or "Content-Type, Authorization",
        "Access-Control-Max-Age": "600",
    })


async def health_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def on_startup(app: web.Application) -> None:
    settings = app[SETTINGS_KEY]
    if FETCHER_KEY in app:
        return
    # the origin client enforces ORIGIN_TIMEOUT_SECONDS as a whole-request deadline
    http_client = httpx.AsyncClient(timeout=None)
    app[HTTP_CLIENT_KEY] = http_client
    app[FETCHER_KEY] = build_fetcher(settings, http_client)
    logger.info("Weather cache started: backend=%s, city=%s, ttl=%ss",
                settings.cache_backend, settings.default_city_id, settings.cache_ttl_seconds)


async def on_shutdown(app: web.Application) -> None:
    if HTTP_CLIENT_KEY in app:
        await app[HTTP_CLIENT_KEY].aclose()
        await app[FETCHER_KEY].store.close()
        logger.debug("HTTP client and cache store closed")


def create_app(settings: Settings, fetcher: CacheAsideFetcher | None = None) -> web.Application:
    """Build the web app. A prebuilt ``fetcher`` skips collaborator construction."""
    app = web.Application()
    app[SETTINGS_KEY] = settings
    if fetcher is not None:
        app[FETCHER_KEY] = fetcher
    for path in ("/weather", settings.route_alias):
        app.router.add_get(path, weather_handler)
        app.router.add_route("OPTIONS", path, preflight_handler)
    app.router.add_get("/healthz", health_handler)
    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)
    return app


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_dir)
    web.run_app(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
