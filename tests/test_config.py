"""Tests for the layered YAML config."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from tada.config import TadaConfig, set_config_value
from tada.errors import ValidationError


@pytest.fixture
def global_path(tmp_path: Path) -> Path:
    return tmp_path / "xdg" / "tada" / "config.yaml"


def _write(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


def test_no_files_gives_empty_config(root: Path, global_path: Path) -> None:
    cfg = TadaConfig.load(root, global_path=global_path)

    assert cfg == TadaConfig()
    assert cfg.tags == []


def test_local_overrides_global_key_by_key(root: Path, global_path: Path) -> None:
    _write(global_path, {"default_sort": "priority", "theme": "dark"})
    _write(root / "config.yaml", {"theme": "light"})

    cfg = TadaConfig.load(root, global_path=global_path)

    assert cfg.default_sort == "priority"
    assert cfg.theme == "light"


def test_unknown_keys_are_ignored(root: Path, global_path: Path) -> None:
    _write(root / "config.yaml", {"colour": "blue", "default_status": "paused"})

    cfg = TadaConfig.load(root, global_path=global_path)

    assert cfg.default_status == "paused"
    assert not hasattr(cfg, "colour")


def test_invalid_values_are_skipped(
    root: Path, global_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    _write(global_path, {"tags": ["ok"]})
    _write(root / "config.yaml", {"tags": {"not": "a list"}})

    with caplog.at_level(logging.WARNING):
        cfg = TadaConfig.load(root, global_path=global_path)

    assert cfg.tags == ["ok"]
    assert "tags" in caplog.text


def test_non_mapping_file_is_ignored(root: Path, global_path: Path) -> None:
    root.mkdir()
    (root / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    assert TadaConfig.load(root, global_path=global_path) == TadaConfig()


def test_set_splits_tags_and_keeps_other_keys(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    _write(path, {"theme": "dark"})

    set_config_value("tags", "work, home,,", path)

    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {"theme": "dark", "tags": ["work", "home"]}


def test_set_writes_only_that_layer(root: Path, global_path: Path) -> None:
    _write(global_path, {"default_sort": "priority"})

    set_config_value("theme", "light", root / "config.yaml")

    assert yaml.safe_load((root / "config.yaml").read_text(encoding="utf-8")) == {"theme": "light"}
    cfg = TadaConfig.load(root, global_path=global_path)
    assert (cfg.default_sort, cfg.theme) == ("priority", "light")


def test_set_unknown_key(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"

    with pytest.raises(ValidationError, match="Unknown config key."):
        set_config_value("colour", "blue", path)
    assert not path.exists()


def test_to_yaml_lists_every_key() -> None:
    data = yaml.safe_load(TadaConfig(theme="dark").to_yaml())

    assert data == {"default_sort": "", "theme": "dark", "default_status": "", "tags": []}
