#tests/test_env_loader.py

from __future__ import annotations

from pathlib import Path

import pytest

from env.loader import CONFIG_ENV_VAR, load_core_config
from env.schema import CoreConfig, DecisionConfig, ExecutionConfig


def write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "npc_core.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_repo_config_matches_defaults():
    cfg = load_core_config()
    assert cfg.perception.vision_radius == 80.0
    assert cfg.execution.movement_speed == 50.0
    assert cfg.inflection.cooldown == 5.0
    assert cfg.decision.allowed_tools == DecisionConfig().allowed_tools
    assert cfg.oracle.url == "http://localhost:11434/api/generate"


def test_partial_file_falls_back_to_defaults(tmp_path: Path):
    cfg = load_core_config(write(tmp_path, "execution:\n  movement_speed: 80\n"))
    assert cfg.execution.movement_speed == 80
    assert cfg.execution.arrival_threshold == ExecutionConfig().arrival_threshold
    assert cfg.decision == DecisionConfig()


def test_unknown_keys_are_ignored(tmp_path: Path):
    cfg = load_core_config(write(tmp_path, "inflection:\n  cooldown: 2\n  mood_swings: true\nweather: {}\n"))
    assert cfg.inflection.cooldown == 2


def test_allowed_tools_are_normalized_to_strings(tmp_path: Path):
    cfg = load_core_config(write(tmp_path, "decision:\n  allowed_tools:\n    execution: [wait]\n    perception: [find_object]\n"))
    assert cfg.decision.allowed_tools == {"execution": ["wait"], "perception": ["find_object"]}


def test_empty_file_gives_defaults(tmp_path: Path):
    assert load_core_config(write(tmp_path, "")) == CoreConfig()


def test_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_core_config(tmp_path / "nope.yaml")


def test_non_mapping_file_raises(tmp_path: Path):
    with pytest.raises(ValueError):
        load_core_config(write(tmp_path, "- just\n- a list\n"))


def test_environment_variable_overrides_default_path(tmp_path: Path, monkeypatch):
    path = write(tmp_path, "oracle:\n  model: tiny\n  base_url: http://oracle:8080/\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    cfg = load_core_config()
    assert cfg.oracle.model == "tiny"
    assert cfg.oracle.url == "http://oracle:8080/api/generate"


def test_to_dict_round_trips_through_from_dict():
    cfg = CoreConfig()
    assert CoreConfig.from_dict(cfg.to_dict()) == cfg
