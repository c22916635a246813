from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import FormattingError

SOURCES = ("cache", "api")


def iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_weather_data(data: Dict[str, Any], source: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Project a raw OpenWeatherMap reading onto the response shape.

    ``timestamp`` is the formatting instant, not the observation time.
    """
    if source not in SOURCES:
        raise ValueError(f"source must be one of {SOURCES}, got {source!r}")
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        main = data["main"]
        wind = data["wind"]
        return {
            "city": data["name"],
            "country": data["sys"]["country"],
            "weather": {
                "description": data["weather"][0]["description"],
                "temperature": main["temp"],
                "feels_like": main["feels_like"],
                "humidity": main["humidity"],
                "pressure": main["pressure"],
                "wind": {
                    "speed": wind["speed"],
                    "direction": wind["deg"],
                },
            },
            "timestamp": iso_timestamp(now),
            "source": source,
        }
    except (KeyError, IndexError, TypeError) as e:
        raise FormattingError(f"Unexpected weather payload, missing {e!r}") from e
