"""Tests for configuration loading."""

import pytest

from upgradelens_core.config import load_config
from upgradelens_core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _clear_key_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] == "openai"
    assert config["batch_size"] == 50
    assert config["max_retries"] == 3
    assert config["retry_base_delay"] == 7
    assert config["store"] == "sqlite"
    assert config["test_mode"] is False
    assert config["openai_api_key"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("provider: anthropic\nbatch_size: 20\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "anthropic"
    assert config["batch_size"] == 20


def test_patterns_loaded(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("exclude_patterns:\n  - '*.api.php'\ninclude_patterns:\n  - '*.php'\n")
    config = load_config(config_path=str(cfg))
    assert config["exclude_patterns"] == ["*.api.php"]
    assert config["include_patterns"] == ["*.php"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "static"})
    assert config["provider"] == "static"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("batch_size: 10\n")
    config = load_config(config_path=str(cfg), cli_overrides={"batch_size": None})
    assert config["batch_size"] == 10


def test_env_vars_win_over_file_keys(tmp_path, monkeypatch):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("openai_api_key: sk-from-file\nanthropic_api_key: sk-ant-from-file\n")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    config = load_config(config_path=str(cfg))
    assert config["openai_api_key"] == "sk-from-env"
    assert config["anthropic_api_key"] == "sk-ant-from-file"


def test_empty_file_is_all_defaults(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("")
    assert load_config(config_path=str(cfg))["batch_size"] == 50


def test_invalid_yaml_raises_config_error(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("provider: [openai\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(config_path=str(cfg))


def test_non_mapping_file_raises_config_error(tmp_path):
    cfg = tmp_path / ".upgradelens.yml"
    cfg.write_text("- openai\n- anthropic\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(config_path=str(cfg))


@pytest.mark.parametrize(
    "override",
    [
        {"provider": "gemini"},
        {"patch_format": "git"},
        {"batch_size": 0},
        {"batch_size": "50"},
        {"batch_size": True},
        {"max_retries": -1},
    ],
)
def test_invalid_values_rejected(tmp_path, override):
    with pytest.raises(ConfigError):
        load_config(config_path=str(tmp_path / "nonexistent.yml"), cli_overrides=override)


def test_list_defaults_are_not_shared_references(tmp_path):
    """Mutating one config's pattern list must not affect another."""
    config_a = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_b = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    config_a["exclude_patterns"].append("*.api.php")
    assert "*.api.php" not in config_b["exclude_patterns"]
