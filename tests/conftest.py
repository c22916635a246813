import copy
import sys
from pathlib import Path
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


SAMPLE_PAYLOAD = {
    "id": 1850147,
    "name": "Tokyo",
    "sys": {"country": "JP"},
    "weather": [{"main": "Clouds", "description": "broken clouds"}],
    "main": {"temp": 18.4, "feels_like": 17.9, "humidity": 64, "pressure": 1012},
    "wind": {"speed": 4.1, "deg": 200},
}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSecretStore:
    def __init__(self, value="test-key", error: Exception | None = None):
        self.value = value
        self.error = error
        self.calls = []

    async def get(self, name, decrypt=True):
        self.calls.append((name, decrypt))
        if self.error is not None:
            raise self.error
        return self.value


class FakeOrigin:
    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = SAMPLE_PAYLOAD if payload is None else payload
        self.error = error
        self.calls = []

    async def fetch_current_weather(self, credential, location_id):
        self.calls.append((credential, location_id))
        if self.error is not None:
            raise self.error
        return self.payload


class FailingStore:
    def __init__(self, fail_get=True, fail_put=True):
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.items = {}

    async def get(self, key):
        if self.fail_get:
            raise ConnectionError("store unreachable")
        return self.items.get(key)

    async def put(self, key, item):
        if self.fail_put:
            raise ConnectionError("store unreachable")
        self.items[key] = item

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    monkeypatch.setenv("OPENWEATHER_API_KEY", "test-key")
    monkeypatch.setenv("SECRET_PARAM_NAME", "OPENWEATHER_API_KEY")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "3600")
    monkeypatch.setenv("DEFAULT_CITY_ID", "1850147")
    monkeypatch.setenv("ROUTE_ALIAS", "/tokyo")
    for name in ("CACHE_TABLE_NAME", "REDIS_URL", "OWM_BASE_URL", "ORIGIN_TIMEOUT_SECONDS", "PORT"):
        monkeypatch.delenv(name, raising=False)

@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("network"):
        return

    import httpx

    def _boom(*args, **kwargs):
        raise RuntimeError(
            "Network is blocked in unit tests. "
            "Mock httpx or mark the test with @pytest.mark.network"
        )

    monkeypatch.setattr(httpx.Client, "request", _boom, raising=True)
    monkeypatch.setattr(httpx.AsyncClient, "request", _boom, raising=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_payload():
    return copy.deepcopy(SAMPLE_PAYLOAD)
