import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import OriginUnavailable

logger = logging.getLogger(__name__)

OWM_WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


def build_params(credential: str, location_id: str) -> Dict[str, str]:
    return {"id": location_id, "appid": credential, "units": "metric"}


class OpenWeatherClient:
    """Current-weather lookups by OpenWeatherMap city id.

    One GET per call. The ``httpx.AsyncClient`` is shared and owned by the caller.
    ``deadline`` bounds the whole request, connect through body.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = OWM_WEATHER_URL,
                 deadline: Optional[float] = None):
        self._client = client
        self._base_url = base_url
        self._deadline = deadline

    async def fetch_current_weather(self, credential: str, location_id: str) -> Dict[str, Any]:
        params = build_params(credential, location_id)

        try:
            resp = await asyncio.wait_for(self._client.get(self._base_url, params=params), self._deadline)
        except asyncio.TimeoutError as e:
            logger.error("Weather API did not answer within %ss for city %s", self._deadline, location_id)
            raise OriginUnavailable(f"Weather API timed out after {self._deadline}s") from e
        except httpx.HTTPError as e:
            logger.error("Network error while fetching weather for city %s: %r", location_id, e)
            raise OriginUnavailable(f"Network error while fetching weather for '{location_id}': {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.error("Weather API returned %s for city %s", resp.status_code, location_id)
            raise OriginUnavailable(f"Weather API returned {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise OriginUnavailable(f"Weather API returned a non-JSON body: {e}") from e
        if not isinstance(data, dict):
            raise OriginUnavailable(f"Weather API returned {type(data).__name__}, expected an object")
        return data
