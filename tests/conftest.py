import pytest
from rich.console import Console

from leveling.common.profiling import Profiler
from leveling.common.settings import clear_settings_cache


@pytest.fixture(autouse=True)
def fresh_settings():
    clear_settings_cache()
    Profiler.reset_instance()
    yield
    clear_settings_cache()
    Profiler.reset_instance()


@pytest.fixture
def console() -> Console:
    return Console(record=True, width=240, color_system=None)
