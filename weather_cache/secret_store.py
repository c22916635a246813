import os
import re
from typing import Mapping, Optional, Protocol


class SecretStore(Protocol):
    async def get(self, name: str, decrypt: bool = True) -> Optional[str]:
        ...


def env_var_name(name: str) -> str:
    """Map a parameter path like ``/weather/owm-api-key`` to ``WEATHER_OWM_API_KEY``."""
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").upper()


class EnvSecretStore:
    """Secrets resolved from the process environment (``.env`` is loaded by config)."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    async def get(self, name: str, decrypt: bool = True) -> Optional[str]:
        # values are stored in plain text, decrypt is accepted for interface parity
        value = self._environ.get(name)
        if value is None:
            value = self._environ.get(env_var_name(name))
        return value or None
