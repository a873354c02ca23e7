import os
from pathlib import Path
from typing import Optional

import yaml

from upgradelens_core.exceptions import ConfigError

DEFAULT_CONFIG: dict = {
    "provider": "openai",  # openai | anthropic | static
    "model": None,  # None = provider default (gpt-4 / claude)
    "batch_size": 50,
    "include_patterns": ["*.php", "*.module", "*.inc", "*.install", "*.theme"],
    "exclude_patterns": ["*.test.php", "*/tests/*", "*/vendor/*"],
    "exclude_dirs": ["vendor", "tests", "node_modules"],
    "scan_custom_modules": True,
    "scan_contrib_modules": True,
    "scan_themes": False,
    "framework_version": "9",
    "target_version": "10",
    "report_formats": ["json"],
    "report_path": "upgradelens-reports",
    "patch_format": "unified",
    "auto_apply_patches": False,
    "max_retries": 3,
    "retry_base_delay": 7,
    "timeout": 30,
    "max_tokens": 2000,
    "max_chars_per_file": 20000,
    "test_mode": False,
    "store": "sqlite",  # sqlite | memory
    "store_path": ".upgradelens.db",
    "state_prefix": "upgradelens",
    "backup_dir": ".upgradelens-backups",
    "cleanup_backups": True,
    "backup_max_age": 604800,  # one week
    "recheck_interval": 604800,
}

_LIST_KEYS = ("include_patterns", "exclude_patterns", "exclude_dirs", "report_formats")

PROVIDERS = ("openai", "anthropic", "static")
PATCH_FORMATS = ("unified", "context")


def load_config(config_path: str = ".upgradelens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .upgradelens.yml in the current directory
      3. CLI argument overrides

    Raises ConfigError when the file is not valid YAML or a value is out of
    range.
    """
    config = {**DEFAULT_CONFIG, **{key: list(DEFAULT_CONFIG[key]) for key in _LIST_KEYS}}

    path = Path(config_path)
    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY") or config.get("openai_api_key")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY") or config.get("anthropic_api_key")

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    if config["provider"] not in PROVIDERS:
        raise ConfigError(f"Unknown provider {config['provider']!r}. Expected one of: {', '.join(PROVIDERS)}.")
    if config["patch_format"] not in PATCH_FORMATS:
        raise ConfigError(f"Unknown patch_format {config['patch_format']!r}. Expected 'unified' or 'context'.")
    batch_size = config["batch_size"]
    if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
        raise ConfigError(f"batch_size must be a positive integer, got {batch_size!r}.")
    if int(config["max_retries"]) < 0:
        raise ConfigError("max_retries cannot be negative.")
