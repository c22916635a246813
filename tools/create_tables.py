import asyncio
import sys
from pathlib import Path

# project root on sys.path so weather_cache imports when run as a file:
# python tools/create_tables.py
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from weather_cache.config import get_settings
from weather_cache.db import make_engine
from weather_cache.models import cache_table, metadata


async def main():
    settings = get_settings()
    table = cache_table(settings.cache_table_name)
    engine = make_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all, tables=[table])
    await engine.dispose()
    print(f"table {table.name} created")


if __name__ == "__main__":
    asyncio.run(main())
