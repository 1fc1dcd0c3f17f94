"""Tests for EngineConfig loading from TOML and environment."""

from pathlib import Path

import pytest

from stagegate.config import EngineConfig
from stagegate.config.parsing import (
    _parse_float_map,
    _parse_str_list,
    _try_parse_bool,
    _try_parse_int,
)


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """No user, XDG, project or environment config leaks into the test."""
    home = tmp_path / "home"
    home.mkdir()
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.chdir(project)
    for key in (
        "STAGEGATE_CONFIG_FILE",
        "STAGEGATE_LOG_LEVEL",
        "STAGEGATE_STRUCTURED_LOGGING",
        "STAGEGATE_STATE_DIR",
        "STAGEGATE_LOCK_TIMEOUT",
        "STAGEGATE_COMPLEXITY_THRESHOLD",
        "STAGEGATE_COVERAGE_MINIMA",
        "STAGEGATE_CORE_MODULES",
        "STAGEGATE_PRESENTATION_MODULES",
        "STAGEGATE_SESSION_IDLE_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)
    return project


FULL_TOML = """
[logging]
level = "debug"
structured = false

[storage]
state_dir = "/var/lib/stagegate"
lock_timeout = 9

[gates]
complexity_threshold = 8
coverage_minima = { core = 95, integration = 70 }
core_modules = ["app.domain.*"]
presentation_modules = ["app.web.*"]

[documents]
test_knowledge = "tests-doc"

[sessions]
idle_timeout_seconds = 3600
"""


class TestDefaults:
    def test_defaults(self, isolated_env):
        config = EngineConfig.from_env()
        assert config.state_dir == Path(".stagegate")
        assert config.gates.complexity_threshold == 15
        assert config.gates.coverage_minima == {
            "core": 100.0,
            "integration": 80.0,
            "presentation": 60.0,
        }
        assert config.documents.codebase_index == "codebase-index"
        assert config.sessions.idle_timeout_seconds == 0
        assert config.startup_warnings == []


class TestTomlLoading:
    def test_explicit_file(self, isolated_env):
        path = isolated_env / "custom.toml"
        path.write_text(FULL_TOML)
        config = EngineConfig.from_env(str(path))

        assert config.log_level == "DEBUG"
        assert config.structured_logging is False
        assert config.state_dir == Path("/var/lib/stagegate")
        assert config.storage.lock_timeout == 9
        assert config.gates.complexity_threshold == 8
        assert config.gates.coverage_minima == {"core": 95.0, "integration": 70.0}
        assert config.gates.core_modules == ["app.domain.*"]
        assert config.documents.test_knowledge == "tests-doc"
        assert config.documents.codebase_index == "codebase-index"
        assert config.sessions.idle_timeout_seconds == 3600

    def test_project_file_is_discovered(self, isolated_env):
        (isolated_env / "stagegate.toml").write_text("[gates]\ncomplexity_threshold = 3\n")
        assert EngineConfig.from_env().gates.complexity_threshold == 3

    def test_invalid_toml_becomes_warning(self, isolated_env):
        path = isolated_env / "broken.toml"
        path.write_text("[gates\n")
        config = EngineConfig.from_env(str(path))
        assert config.gates.complexity_threshold == 15
        assert any("could not be loaded" in w for w in config.startup_warnings)

    def test_missing_schema_file_warns(self, isolated_env):
        path = isolated_env / "schemas.toml"
        path.write_text('[schemas]\nnotes = "missing.json"\n')
        config = EngineConfig.from_env(str(path))
        assert any("notes" in w for w in config.startup_warnings)

    def test_bad_values_keep_defaults(self, isolated_env):
        path = isolated_env / "bad.toml"
        path.write_text('[storage]\nlock_timeout = 0\n[gates]\ncomplexity_threshold = "x"\n')
        config = EngineConfig.from_env(str(path))
        assert config.storage.lock_timeout == 5
        assert config.gates.complexity_threshold == 15


class TestEnvOverrides:
    def test_env_beats_toml(self, isolated_env, monkeypatch, tmp_path):
        path = isolated_env / "custom.toml"
        path.write_text(FULL_TOML)
        monkeypatch.setenv("STAGEGATE_STATE_DIR", str(tmp_path / "state"))
        monkeypatch.setenv("STAGEGATE_COMPLEXITY_THRESHOLD", "12")
        monkeypatch.setenv("STAGEGATE_COVERAGE_MINIMA", "core=99,presentation=40")
        monkeypatch.setenv("STAGEGATE_CORE_MODULES", "a.*, b.*")
        monkeypatch.setenv("STAGEGATE_LOG_LEVEL", "error")

        config = EngineConfig.from_env(str(path))
        assert config.state_dir == tmp_path / "state"
        assert config.gates.complexity_threshold == 12
        assert config.gates.coverage_minima == {"core": 99.0, "presentation": 40.0}
        assert config.gates.core_modules == ["a.*", "b.*"]
        assert config.log_level == "ERROR"

    def test_invalid_log_level_falls_back(self, isolated_env, monkeypatch):
        monkeypatch.setenv("STAGEGATE_LOG_LEVEL", "chatty")
        config = EngineConfig.from_env()
        assert config.log_level == "INFO"
        assert config.startup_warnings

    def test_overlapping_layers_warn(self, isolated_env, monkeypatch):
        monkeypatch.setenv("STAGEGATE_CORE_MODULES", "app.*")
        monkeypatch.setenv("STAGEGATE_PRESENTATION_MODULES", "app.*")
        config = EngineConfig.from_env()
        assert any("app.*" in w for w in config.startup_warnings)


class TestParsingHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [("yes", True), ("OFF", False), (True, True), ("maybe", None)],
    )
    def test_try_parse_bool(self, value, expected):
        assert _try_parse_bool(value) is expected

    def test_try_parse_int(self):
        assert _try_parse_int("7") == 7
        assert _try_parse_int("x") is None
        assert _try_parse_int("0", minimum=1) is None

    def test_parse_float_map(self):
        assert _parse_float_map("core=100, ui=bad, junk") == {"core": 100.0}
        assert _parse_float_map({"core": "75"}) == {"core": 75.0}

    def test_parse_str_list(self):
        assert _parse_str_list(["a", " ", "b "]) == ["a", "b"]
        assert _parse_str_list("a,,b") == ["a", "b"]
