"""API key resolution and shape checks.

Why check the key before starting a batch:
- A missing or mistyped key would otherwise be discovered one file at a
  time. With a shape check the run refuses to start and says which
  variable to set.
- The check is offline (prefix, length, character set), so it costs
  nothing and never burns a request.

Resolution order (stops at first success):
  1. The provider's environment variable (OPENAI_API_KEY / ANTHROPIC_API_KEY)
  2. openai_api_key / anthropic_api_key in .upgradelens.yml
load_config() has already merged both into the config dict.
"""

from __future__ import annotations

import logging

from upgradelens_core.providers.anthropic import AnthropicAnalyzer
from upgradelens_core.providers.base import is_valid_api_key
from upgradelens_core.providers.openai import OpenAIAnalyzer

logger = logging.getLogger(__name__)

KEY_ENV_VARS = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}
_KEY_PREFIXES = {"openai": OpenAIAnalyzer.KEY_PREFIX, "anthropic": AnthropicAnalyzer.KEY_PREFIX}


def credential_problem(config: dict) -> str | None:
    """Return a user-facing message if the configured provider has no usable key.

    Returns None when the key looks valid, or when no key is needed
    (static provider, test mode).
    """
    provider = config.get("provider", "openai")
    if provider not in KEY_ENV_VARS or config.get("test_mode"):
        return None

    env_var = KEY_ENV_VARS[provider]
    key = config.get(f"{provider}_api_key")
    if not key:
        return f"{env_var} environment variable is not set."
    if not is_valid_api_key(key, prefix=_KEY_PREFIXES[provider]):
        logger.debug("Rejected %s key of length %d", provider, len(key))
        return f"{env_var} does not look like a valid {provider} API key (expected prefix {_KEY_PREFIXES[provider]!r})."
    return None
