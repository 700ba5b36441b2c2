import json

import pytest

from witffi.codegen.core.config import ConfigError, ConfigManager, GeneratorConfig, load_config


@pytest.fixture
def manager():
    return ConfigManager()


def test_rust_defaults(manager):
    config = manager.get_config("rust")

    assert config.symbol_prefix == "witffi"
    assert config.type_prefix == "Ffi"
    assert config.escape_suffix == "_"
    assert config.add_comments is True
    assert config.custom == {}


def test_overrides_ignore_none(manager):
    config = manager.get_config("rust", {"symbol_prefix": "eip681", "type_prefix": None})

    assert config.symbol_prefix == "eip681"
    assert config.type_prefix == "Ffi"


def test_defaults_are_not_mutated(manager):
    assert manager.get_config("rust", {"custom": {"crate": "eip681"}}).custom == {"crate": "eip681"}

    assert manager.get_config("rust").custom == {}


def test_config_file_then_overrides(manager, tmp_path):
    path = tmp_path / "witffi.json"
    path.write_text(json.dumps({"symbol_prefix": "fromfile", "type_prefix": "File", "crate": "eip681"}))

    config = manager.get_config("rust", {"symbol_prefix": "fromflag"}, config_file=path)

    assert config.symbol_prefix == "fromflag"
    assert config.type_prefix == "File"
    assert config.custom["crate"] == "eip681"


def test_missing_config_file(manager, tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        manager.get_config("rust", config_file=tmp_path / "absent.json")

    assert excinfo.value.stage == "config"
    assert "not found" in str(excinfo.value)


def test_config_file_must_be_json(manager, tmp_path):
    path = tmp_path / "witffi.toml"
    path.write_text("symbol_prefix = 'x'")

    with pytest.raises(ConfigError, match="must be JSON"):
        manager.get_config("rust", config_file=path)


def test_invalid_json(manager, tmp_path):
    path = tmp_path / "witffi.json"
    path.write_text("{not json")

    with pytest.raises(ConfigError, match="Invalid JSON"):
        manager.get_config("rust", config_file=path)


def test_json_must_be_an_object(manager, tmp_path):
    path = tmp_path / "witffi.json"
    path.write_text("[1, 2]")

    with pytest.raises(ConfigError, match="JSON object"):
        manager.get_config("rust", config_file=path)


@pytest.mark.parametrize(
    "overrides, problem",
    [
        ({"symbol_prefix": "9lives"}, "symbol_prefix"),
        ({"symbol_prefix": "has-dash"}, "symbol_prefix"),
        ({"type_prefix": ""}, "type_prefix"),
        ({"escape_suffix": "-"}, "escape_suffix"),
        ({"add_comments": "yes"}, "add_comments"),
    ],
)
def test_invalid_values(manager, overrides, problem):
    with pytest.raises(ConfigError) as excinfo:
        manager.get_config("rust", overrides)

    assert problem in str(excinfo.value)


def test_load_config_uses_global_manager():
    assert isinstance(load_config("rust"), GeneratorConfig)
