from __future__ import annotations

import openai

from upgradelens_core.exceptions import AnalysisError, AuthenticationError, RateLimitError
from upgradelens_core.providers.base import BaseAnalyzer, parse_retry_hint


class OpenAIAnalyzer(BaseAnalyzer):
    MODEL = "gpt-4"
    # temperature=0.2 keeps the JSON structure stable across files; higher
    # values start producing prose around the object.
    TEMPERATURE = 0.2
    KEY_PREFIX = "sk-"
    PROVIDER = "openai"

    def _make_client(self):
        # max_retries=0: the SDK's own retry loop would hide 429s from ours.
        return openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.TEMPERATURE,
                max_tokens=self.max_tokens,
            )
        except openai.RateLimitError as e:
            raise RateLimitError(
                f"OpenAI rate limit: {e.message}",
                retry_after=parse_retry_hint(e.message, getattr(e.response, "headers", None)),
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthenticationError(f"OpenAI rejected the API key: {e.message}", status_code=e.status_code) from e
        except openai.APIStatusError as e:
            raise AnalysisError(f"OpenAI API error {e.status_code}: {e.message}", status_code=e.status_code) from e
        except openai.APIConnectionError as e:
            raise AnalysisError(f"Could not reach the OpenAI API: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
