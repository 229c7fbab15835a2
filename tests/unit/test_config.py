"""Tests for configuration loading.

Tests cover:
- JSON config file loading (missing, invalid, valid)
- Nested lookups with environment fallback
- ReduceConfig precedence and validation
"""

import json

import pytest

from ddreduce.core.config import (
    DEFAULT_PASSES,
    ReduceConfig,
    build_config,
    get_config_value,
    load_config,
)


def test_load_config_missing(tmp_path):
    assert load_config(str(tmp_path / "nope.json")) == {}


def test_load_config_invalid(tmp_path):
    path = tmp_path / "ddreduce.json"
    path.write_text("{not json")

    assert load_config(str(path)) == {}


def test_load_config_valid(tmp_path):
    path = tmp_path / "ddreduce.json"
    path.write_text(json.dumps({"oracle": {"jobs": 4}}))

    assert load_config(str(path)) == {"oracle": {"jobs": 4}}


def test_get_config_value_nested():
    config = {"oracle": {"timeout_seconds": 5}}

    assert get_config_value(["oracle", "timeout_seconds"], config=config) == 5
    assert get_config_value(["oracle", "jobs"], default=1, config=config) == 1


def test_get_config_value_env_fallback(monkeypatch):
    monkeypatch.setenv("DDREDUCE_ORACLE_JOBS", "3")

    assert get_config_value(["oracle", "jobs"], default=1, config={}) == "3"


def test_config_file_beats_env(monkeypatch):
    monkeypatch.setenv("DDREDUCE_ORACLE_JOBS", "3")

    assert get_config_value(["oracle", "jobs"], default=1, config={"oracle": {"jobs": 8}}) == 8


class TestBuildConfig:
    """Tests for build_config()."""

    def test_defaults(self):
        config = build_config("./test.sh", config={})

        assert config.test == "./test.sh"
        assert config.timeout_seconds == 30.0
        assert config.jobs == 1
        assert config.max_trials is None
        assert config.chunk_policy == "reset"
        assert config.passes == DEFAULT_PASSES
        assert config.format == "auto"
        assert not config.in_place

    def test_config_file_values(self):
        config = build_config(
            "./test.sh",
            config={"oracle": {"timeout_seconds": 5, "jobs": 2}, "session": {"max_trials": 100}},
        )

        assert config.timeout_seconds == 5.0
        assert config.jobs == 2
        assert config.max_trials == 100

    def test_overrides_win(self):
        config = build_config(
            "./test.sh",
            overrides={"jobs": 6, "timeout_seconds": None},
            config={"oracle": {"timeout_seconds": 5, "jobs": 2}},
        )

        assert config.jobs == 6
        assert config.timeout_seconds == 5.0

    def test_env_values_are_cast(self, monkeypatch):
        monkeypatch.setenv("DDREDUCE_SESSION_MAX_SECONDS", "2.5")

        config = build_config("./test.sh", config={})

        assert config.max_seconds == 2.5

    def test_passes_string(self):
        config = build_config("./test.sh", overrides={"passes": "sub-elements, definitions"}, config={})

        assert config.passes == ("sub-elements", "definitions")

    def test_test_args_and_command(self):
        config = build_config("python3", test_args=["check.py", "{}"], config={})

        assert config.test_args == ("check.py", "{}")
        assert config.command == ["python3", "check.py", "{}"]


class TestReduceConfigValidation:
    """Tests for ReduceConfig invariants."""

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ReduceConfig(test="t", timeout_seconds=0)

    def test_zero_jobs(self):
        with pytest.raises(ValueError):
            ReduceConfig(test="t", jobs=0)

    def test_negative_trials(self):
        with pytest.raises(ValueError):
            ReduceConfig(test="t", max_trials=-1)

    def test_frozen(self):
        config = ReduceConfig(test="t")

        with pytest.raises(AttributeError):
            config.jobs = 2  # type: ignore
