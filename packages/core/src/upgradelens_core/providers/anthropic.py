from __future__ import annotations

import anthropic
from anthropic.types import TextBlock

from upgradelens_core.exceptions import AnalysisError, AuthenticationError, RateLimitError
from upgradelens_core.providers.base import BaseAnalyzer, parse_retry_hint


class AnthropicAnalyzer(BaseAnalyzer):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.2
    KEY_PREFIX = "sk-ant-"
    PROVIDER = "anthropic"

    def _make_client(self):
        return anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=self.TEMPERATURE,
                max_tokens=self.max_tokens,
            )
        except anthropic.RateLimitError as e:
            raise RateLimitError(
                f"Anthropic rate limit: {e.message}",
                retry_after=parse_retry_hint(e.message, getattr(e.response, "headers", None)),
            ) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationError(f"Anthropic rejected the API key: {e.message}", status_code=e.status_code) from e
        except anthropic.APIStatusError as e:
            raise AnalysisError(f"Anthropic API error {e.status_code}: {e.message}", status_code=e.status_code) from e
        except anthropic.APIConnectionError as e:
            raise AnalysisError(f"Could not reach the Anthropic API: {e}") from e

        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
