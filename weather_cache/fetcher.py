import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from .cache import CacheEntry, ExpiringKeyValueStore
from .errors import CacheUnavailable, CredentialUnavailable
from .formatting import format_weather_data, iso_timestamp
from .secret_store import SecretStore
from .weather_client import OpenWeatherClient

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error fetching weather data"


def response_headers() -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
    }


@dataclass
class Response:
    status: int
    body: str
    headers: Dict[str, str] = field(default_factory=response_headers)

    def json(self) -> Any:
        return json.loads(self.body)


class CacheAsideFetcher:
    """Serves the weather reading for one location from cache, falling back to the API.

    Collaborators are built once by the caller and reused for every request;
    the fetcher itself keeps no per-request state.
    """

    def __init__(
        self,
        secrets: SecretStore,
        store: ExpiringKeyValueStore,
        origin: OpenWeatherClient,
        *,
        secret_name: str,
        default_location_id: str,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.secrets = secrets
        self.store = store
        self.origin = origin
        self.secret_name = secret_name
        self.default_location_id = default_location_id
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    async def lookup(self, key: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        try:
            item = await self.store.get(key)
            if item is None:
                logger.info("No cache found for city: %s", key)
                return None, False
            entry = CacheEntry.from_item(item)
        except CacheUnavailable as e:
            logger.warning("Error retrieving from cache, falling back to API: %s", e)
            return None, False
        except Exception:
            logger.exception("Unexpected cache read error for city: %s", key)
            return None, False

        if not entry.is_fresh(self._clock()):
            logger.info("Cache expired for city: %s", key)
            return None, False
        logger.info("Cache hit for city: %s", key)
        return entry.payload, True

    async def get_credential(self) -> str:
        try:
            secret = await self.secrets.get(self.secret_name, decrypt=True)
        except Exception as e:
            logger.error("Error retrieving API key %s: %r", self.secret_name, e)
            raise CredentialUnavailable("Failed to retrieve API key") from e
        if not secret:
            logger.error("API key %s is empty or missing", self.secret_name)
            raise CredentialUnavailable("Failed to retrieve API key")
        return secret

    async def fetch_origin(self, credential: str, location_id: str) -> Dict[str, Any]:
        return await self.origin.fetch_current_weather(credential, location_id)

    async def write_back(self, key: str, payload: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        now = self._clock()
        entry = CacheEntry(
            key=key,
            payload=payload,
            expires_at=int(now) + (self.ttl_seconds if ttl_seconds is None else ttl_seconds),
            stored_at=iso_timestamp(datetime.fromtimestamp(now, tz=timezone.utc)),
        )
        try:
            await self.store.put(key, entry.to_item())
        except Exception as e:
            logger.error("Error storing in cache for city %s: %s", key, e)
            return
        logger.info("Weather data cached for city: %s", key)

    async def handle_request(self, location_id: Optional[str] = None) -> Response:
        city_id = location_id or self.default_location_id
        try:
            weather_data, found = await self.lookup(city_id)
            source = "cache"
            if not found:
                # No fallback to a stale entry here: an origin failure fails the request.
                api_key = await self.get_credential()
                weather_data = await self.fetch_origin(api_key, city_id)
                source = "api"
                await self.write_back(city_id, weather_data)

            now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            formatted = format_weather_data(weather_data, source, now=now)
            return Response(status=200, body=json.dumps(formatted))
        except Exception as e:
            logger.exception("Error handling weather request for city %s", city_id)
            return Response(
                status=500,
                body=json.dumps({"message": ERROR_MESSAGE, "error": str(e)}),
            )
