import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from weather_cache.config import get_settings
from weather_cache.errors import WeatherServiceError
from weather_cache.secret_store import EnvSecretStore
from weather_cache.server import build_store


async def main():
    settings = get_settings()
    ok = True
    store = build_store(settings)
    try:
        await store.get("health:test")
    except WeatherServiceError:
        ok = False
    finally:
        await store.close()
    if not await EnvSecretStore().get(settings.secret_param_name):
        ok = False
    print("OK" if ok else "NOT OK")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
