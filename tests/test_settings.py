import json

from leveling.common.console import get_console, reports_enabled
from leveling.common.profiling import (
    Profiler,
    profile_enabled,
    profile_function,
    profile_section,
    reset_correlation_id,
    set_correlation_id,
)
from leveling.common.settings import (
    get_epsilon,
    get_logging_verbosity,
    get_task_ordering,
)
from leveling.services.leveling_engine import LevelingEngine

from .utils import make_task


def test_defaults(monkeypatch):
    for name in ("LEVELING_EPSILON", "LEVELING_TASK_ORDER", "LEVELING_LOG_VERBOSITY", "LEVELING_PROFILE"):
        monkeypatch.delenv(name, raising=False)

    assert get_epsilon() == 0.01
    assert get_task_ordering() == "derivation"
    assert get_logging_verbosity() == "info"
    assert not profile_enabled()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LEVELING_EPSILON", "0.5")
    monkeypatch.setenv("LEVELING_TASK_ORDER", "SEQUENCE")

    assert get_epsilon() == 0.5
    assert get_task_ordering() == "sequence"
    assert LevelingEngine().epsilon == 0.5


def test_unknown_ordering_falls_back(monkeypatch):
    monkeypatch.setenv("LEVELING_TASK_ORDER", "random")

    assert get_task_ordering() == "derivation"


def test_quiet_console(monkeypatch):
    monkeypatch.setenv("LEVELING_LOG_VERBOSITY", "warning")

    assert not reports_enabled()
    assert get_console().quiet
    assert not get_console("debug").quiet


def test_disabled_profiler_records_nothing(monkeypatch):
    monkeypatch.delenv("LEVELING_PROFILE", raising=False)

    with profile_section("noop"):
        pass

    assert Profiler.instance().summary_rows() == []


def test_profiler_collects_and_flushes(monkeypatch, tmp_path):
    monkeypatch.setenv("LEVELING_PROFILE", "1")
    profiler = Profiler(profile_dir=tmp_path)
    monkeypatch.setattr(Profiler, "_instance", profiler)

    @profile_function("double")
    def double(value):
        return value * 2

    token = set_correlation_id("run-1")
    try:
        with profile_section("leveling"):
            LevelingEngine(epsilon=0.01).level([make_task("T1", 10)], [])
        assert double(2) == 4
    finally:
        reset_correlation_id(token)

    names = {row["name"] for row in profiler.summary_rows()}
    assert {"double", "leveling", "leveling_engine.greedy_pass", "LevelingEngine.level"} <= names

    profiler.flush()
    lines = (tmp_path / f"profile_{profiler.pid}.jsonl").read_text().splitlines()
    assert all(json.loads(line)["corr_id"] == "run-1" for line in lines)
    assert (tmp_path / f"summary_{profiler.pid}.csv").exists()
