"""
Tests for configuration loading and .env layering.
"""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from ralph.core.config.env import load_layered_env
from ralph.core.config.loader import (
    apply_env_overrides,
    clear_cache,
    deep_merge,
    get_project_config_path,
    get_user_config_path,
    load_config,
    load_json_file,
)
from ralph.core.config.models import DEFAULT_MODEL, HarnessConfig, RalphConfig

# ==============================================================================
# Models
# ==============================================================================


class TestModels:
    def test_defaults(self) -> None:
        config = RalphConfig()

        assert config.loop.max_iterations == 100
        assert config.loop.iteration_delay == 2.0
        assert config.retry.max_retries == 3
        assert config.retry.delay == 3.0
        assert config.harness.executable == "opencode"
        assert config.harness.model == DEFAULT_MODEL
        assert config.debug.enabled is False

    def test_blank_model_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HarnessConfig(model="   ")

    def test_model_is_stripped(self) -> None:
        assert HarnessConfig(model="  opencode/gpt-5 ").model == "opencode/gpt-5"

    def test_zero_iterations_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RalphConfig(loop={"max_iterations": 0})

    def test_unknown_sections_ignored(self) -> None:
        config = RalphConfig(**{"future_section": {"x": 1}})
        assert config.loop.max_iterations == 100


# ==============================================================================
# Helpers
# ==============================================================================


class TestDeepMerge:
    def test_nested_merge(self) -> None:
        base = {"loop": {"max_iterations": 100, "iteration_delay": 2.0}, "debug": {"enabled": False}}
        override = {"loop": {"iteration_delay": 0}}

        merged = deep_merge(base, override)

        assert merged == {"loop": {"max_iterations": 100, "iteration_delay": 0}, "debug": {"enabled": False}}
        assert base["loop"]["iteration_delay"] == 2.0

    def test_scalar_replaces_dict(self) -> None:
        assert deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


class TestLoadJsonFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_json_file(tmp_path / "nope.json") is None

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert load_json_file(path) is None

    def test_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert load_json_file(path) is None

    def test_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "ok.json"
        path.write_text('{"loop": {"max_iterations": 5}}')
        assert load_json_file(path) == {"loop": {"max_iterations": 5}}


class TestPaths:
    def test_user_config_uses_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        assert get_user_config_path() == tmp_path / "cfg" / "ralph" / "config.json"

    def test_project_config(self, tmp_path: Path) -> None:
        assert get_project_config_path(tmp_path) == tmp_path / ".ralph.json"


class TestEnvOverrides:
    def test_all_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RALPH_MODEL", "opencode/gpt-5")
        monkeypatch.setenv("RALPH_EXECUTABLE", "/opt/bin/opencode")
        monkeypatch.setenv("RALPH_ITERATIONS", "7")
        monkeypatch.setenv("RALPH_MAX_RETRIES", "0")
        monkeypatch.setenv("RALPH_DEBUG", "1")

        result = apply_env_overrides({"loop": {"max_iterations": 100}})

        assert result["harness"] == {"model": "opencode/gpt-5", "executable": "/opt/bin/opencode"}
        assert result["loop"]["max_iterations"] == 7
        assert result["retry"]["max_retries"] == 0
        assert result["debug"]["enabled"] is True

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_bad_iterations_ignored(self, value: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RALPH_ITERATIONS", value)

        result = apply_env_overrides({"loop": {"max_iterations": 100}})

        assert result["loop"]["max_iterations"] == 100

    def test_input_not_mutated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RALPH_ITERATIONS", "9")
        original = {"loop": {"max_iterations": 100}}

        apply_env_overrides(original)

        assert original["loop"]["max_iterations"] == 100

    @pytest.mark.parametrize(("value", "expected"), [("true", True), ("false", False), ("0", False)])
    def test_debug_values(self, value: str, expected: bool, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RALPH_DEBUG", value)
        assert apply_env_overrides({})["debug"]["enabled"] is expected


# ==============================================================================
# load_config
# ==============================================================================


class TestLoadConfig:
    def test_defaults_without_files(self, tmp_path: Path) -> None:
        config = load_config(tmp_path, use_cache=False)
        assert config == RalphConfig()

    def test_precedence(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """env > project > user > defaults."""
        user_dir = tmp_path / "xdg" / "ralph"
        user_dir.mkdir(parents=True)
        (user_dir / "config.json").write_text(
            json.dumps({"harness": {"model": "user/model"}, "loop": {"max_iterations": 50}, "retry": {"delay": 1}})
        )
        project = tmp_path / "proj"
        project.mkdir()
        (project / ".ralph.json").write_text(json.dumps({"loop": {"max_iterations": 20}}))
        monkeypatch.setenv("RALPH_MODEL", "env/model")

        config = load_config(project, use_cache=False)

        assert config.harness.model == "env/model"
        assert config.loop.max_iterations == 20
        assert config.retry.delay == 1
        assert config.retry.max_retries == 3

    def test_invalid_values_raise(self, tmp_path: Path) -> None:
        (tmp_path / ".ralph.json").write_text(json.dumps({"retry": {"max_retries": -1}}))

        with pytest.raises(ValidationError):
            load_config(tmp_path, use_cache=False)

    def test_cache(self, tmp_path: Path) -> None:
        first = load_config(tmp_path)
        (tmp_path / ".ralph.json").write_text(json.dumps({"loop": {"max_iterations": 3}}))

        assert load_config(tmp_path) is first

        clear_cache()
        assert load_config(tmp_path).loop.max_iterations == 3


# ==============================================================================
# .env layering
# ==============================================================================


class TestLoadLayeredEnv:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch: pytest.MonkeyPatch):
        for key in ("RALPH_TEST_A", "RALPH_TEST_B", "RALPH_TEST_C"):
            monkeypatch.delenv(key, raising=False)
        yield
        for key in ("RALPH_TEST_A", "RALPH_TEST_B", "RALPH_TEST_C"):
            os.environ.pop(key, None)

    def test_layering(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        user_env = tmp_path / "user.env"
        user_env.write_text("RALPH_TEST_A=user\nRALPH_TEST_B=user\n")
        project_env = tmp_path / "project.env"
        project_env.write_text("RALPH_TEST_B=project\nRALPH_TEST_C=project\n")
        monkeypatch.setenv("RALPH_TEST_C", "shell")

        set_keys = load_layered_env(user_env_paths=[user_env], project_env_paths=[project_env])

        assert os.environ["RALPH_TEST_A"] == "user"
        assert os.environ["RALPH_TEST_B"] == "project"
        assert os.environ["RALPH_TEST_C"] == "shell"
        assert set_keys == ["RALPH_TEST_A", "RALPH_TEST_B"]

    def test_missing_files(self, tmp_path: Path) -> None:
        assert load_layered_env(project_dir=tmp_path, user_env_paths=[tmp_path / "none.env"]) == []

    def test_default_paths(self, tmp_path: Path) -> None:
        (tmp_path / ".env.local").write_text("RALPH_TEST_A=local\n")

        load_layered_env(project_dir=tmp_path)

        assert os.environ["RALPH_TEST_A"] == "local"
