"""
Rules loading and validation tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from src.components.telemetry import build_config
from src.rules.loader import RULES_PATH_ENV, load_rules, resolve_rules_path
from src.rules.models import Rules

PROJECT_ROOT = Path(__file__).parent.parent.parent


def write_rules(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(content)
    return path


class TestLoadRules:
    def test_project_rules_file_is_valid(self) -> None:
        rules = load_rules(PROJECT_ROOT / "rules.yaml")
        assert rules.telemetry.idle_timeout_seconds == 60
        assert rules.telemetry.flush_interval_seconds == 30
        assert rules.store.backend == "sqlite"

    def test_empty_file_means_defaults(self, tmp_path: Path) -> None:
        assert load_rules(write_rules(tmp_path, "")) == Rules()

    def test_partial_file_fills_defaults(self, tmp_path: Path) -> None:
        rules = load_rules(write_rules(tmp_path, "telemetry:\n  idle_timeout_seconds: 120\n"))
        assert rules.telemetry.idle_timeout_seconds == 120
        assert rules.telemetry.tick_seconds == 1.0
        assert rules.logging.level == "INFO"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="YAML"):
            load_rules(write_rules(tmp_path, "telemetry: [unclosed\n"))

    @pytest.mark.parametrize(
        "content",
        [
            "telemetry:\n  tick_seconds: 0\n",
            "telemetry:\n  flush_interval_seconds: -1\n",
            "store:\n  backend: redis\n",
            "logging:\n  level: LOUD\n",
        ],
    )
    def test_schema_violations(self, tmp_path: Path, content: str) -> None:
        with pytest.raises(ValueError, match="validation"):
            load_rules(write_rules(tmp_path, content))


class TestResolveRulesPath:
    def test_explicit_path_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(RULES_PATH_ENV, "/etc/telemetry.yaml")
        assert resolve_rules_path("custom.yaml") == Path("custom.yaml")

    def test_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(RULES_PATH_ENV, "/etc/telemetry.yaml")
        assert resolve_rules_path() == Path("/etc/telemetry.yaml")

    def test_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(RULES_PATH_ENV, raising=False)
        assert resolve_rules_path() == Path("rules.yaml")


class TestBuildConfig:
    def test_from_rules(self, tmp_path: Path) -> None:
        rules = load_rules(
            write_rules(
                tmp_path,
                "telemetry:\n  idle_timeout_seconds: 5\n  interaction_events: [click]\n",
            )
        )
        config = build_config(rules.telemetry)
        assert config.idle_timeout_seconds == 5
        assert config.interaction_events == frozenset({"click"})

    def test_none_gives_defaults(self) -> None:
        config = build_config(None)
        assert config.flush_interval_seconds == 30.0
        assert "mousemove" in config.interaction_events
