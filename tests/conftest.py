import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from notifyhub.config import Settings, reset_settings_cache
from notifyhub.utils import get_app_timezone

from support import FakeClock


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.delenv("NOTIFYHUB_APP_TIMEZONE", raising=False)
    reset_settings_cache()
    get_app_timezone.cache_clear()
    yield
    reset_settings_cache()
    get_app_timezone.cache_clear()


@pytest.fixture
def settings():
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def clock():
    return FakeClock()
