from __future__ import annotations

import json
from pathlib import Path

import pytest

from binder_models import Endpoint
from lib_config_binder import InvalidFormat, NotFound, bind, load_configuration
from lib_config_binder.adapters.file_loaders.structured import (
    FILE_LOADERS,
    JSONFileLoader,
    TOMLFileLoader,
    YAMLFileLoader,
)


def test_toml_loader(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[db]\nport = 5432\n")
    data = TOMLFileLoader().load(str(path))
    assert data["db"]["port"] == 5432


def test_toml_loader_missing_file(tmp_path: Path) -> None:
    with pytest.raises(NotFound):
        TOMLFileLoader().load(str(tmp_path / "missing.toml"))


def test_toml_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[db\n")
    with pytest.raises(InvalidFormat):
        TOMLFileLoader().load(str(path))


def test_json_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid}")
    with pytest.raises(InvalidFormat):
        JSONFileLoader().load(str(path))


def test_json_loader_valid(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"feature": True}), encoding="utf-8")
    assert JSONFileLoader().load(str(path))["feature"] is True


def test_json_top_level_must_be_a_mapping(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2]")
    with pytest.raises(InvalidFormat):
        JSONFileLoader().load(str(path))


def test_yaml_loader_handles_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("# empty file\n")
    assert YAMLFileLoader().load(str(path)) == {}


def test_yaml_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("key: [unclosed\n")
    with pytest.raises(InvalidFormat):
        YAMLFileLoader().load(str(path))


def test_loaders_are_registered_by_suffix() -> None:
    assert sorted(FILE_LOADERS) == [".json", ".toml", ".yaml", ".yml"]


@pytest.mark.parametrize(
    ("name", "body"),
    [
        ("endpoint.toml", 'host = "db"\nport = 5432\nsecure = true\n'),
        ("endpoint.json", '{"host": "db", "port": 5432, "secure": true}'),
        ("endpoint.yaml", "host: db\nport: 5432\nsecure: true\n"),
        ("ENDPOINT.YML", "Host: db\nPort: 5432\nSecure: yes\n"),
    ],
)
def test_load_configuration_binds_every_format(tmp_path: Path, name: str, body: str) -> None:
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")
    assert bind(load_configuration(path), Endpoint) == Endpoint("db", 5432, True)


def test_load_configuration_rejects_unknown_suffix(tmp_path: Path) -> None:
    path = tmp_path / "config.ini"
    path.write_text("[db]\n")
    with pytest.raises(NotFound):
        load_configuration(path)


def test_load_configuration_into_existing_tree_signals_change(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"host": "a"}')
    config = load_configuration(path)
    token = config.get_reload_token()
    fired: list[bool] = []
    token.register_callback(lambda: fired.append(True))

    path.write_text('{"host": "b"}')
    assert load_configuration(path, into=config) is config
    assert fired == [True]
    assert token.has_changed
    assert config.get("host") == "b"
