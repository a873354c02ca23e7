"""Base analyzer implementing the Template Method pattern.

All providers share the same analysis algorithm:
    analyze() → build_system_prompt() + build_user_prompt()
              → _call_with_retry() → _call_api()   ← only this differs per provider
              → _parse() → _to_result()

Subclasses implement two things only:
  - _make_client: construct the SDK client (called lazily, once)
  - _call_api: make one raw API call and return the text response, raising
    RateLimitError / AnalysisError for failures

Test mode, credential checks, prompt construction, retry timing and JSON
parsing live here, defined once and inherited by every provider.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import re
import time
from abc import ABC, abstractmethod
from typing import Any

from upgradelens_core.exceptions import AnalysisError, ParseError, RateLimitError
from upgradelens_core.models import AnalysisRequest, AnalysisResult, Issue
from upgradelens_core.prompts import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_BASE_DELAY = 7
_MAX_TOKENS = 2000
_TIMEOUT = 30

_KEY_CHARS = re.compile(r"^[\w-]+$")
_RETRY_HINT = re.compile(r"try again in ([\d.]+)\s*(ms|s)\b", re.IGNORECASE)

PARSE_FAILURE_WARNING = "Error parsing analysis results"


def is_valid_api_key(key: str | None, prefix: str = "sk-", min_length: int = 20) -> bool:
    """Check the shape of a credential without calling the service."""
    if not key:
        return False
    return key.startswith(prefix) and len(key) >= min_length and bool(_KEY_CHARS.match(key))


def parse_retry_hint(message: str | None, headers: Any = None) -> int | None:
    """Extract the server's retry hint in whole seconds, rounded up.

    The message text ("Please try again in 6.5s") wins over a Retry-After
    header because it is the more precise of the two.
    """
    match = _RETRY_HINT.search(message or "")
    if match:
        seconds = float(match.group(1))
        if match.group(2).lower() == "ms":
            seconds /= 1000
        return max(1, math.ceil(seconds))
    retry_after = headers.get("retry-after") if headers is not None else None
    if retry_after:
        try:
            return max(1, math.ceil(float(retry_after)))
        except ValueError:
            return None
    return None


def canned_result(request: AnalysisRequest) -> AnalysisResult:
    """Fixed result returned in test mode, independent of the input."""
    return AnalysisResult(
        file_path=request.file_path,
        module=request.module,
        issues=[
            Issue(
                type="deprecation",
                description="Using deprecated function drupal_get_path()",
                priority="high",
                current_code='drupal_get_path("module", "example")',
                suggested_code='\\Drupal::service("extension.list.module")->getPath("example")',
                line_number=42,
            ),
            Issue(
                type="best_practice",
                description="Direct service container usage detected",
                priority="medium",
                current_code='\\Drupal::service("entity_type.manager")',
                suggested_code="// Inject the entity_type.manager service through the constructor instead.",
                line_number=86,
            ),
        ],
        warnings=["Consider using strict typing", "Add return type hints"],
        summary="Code analysis completed with 2 issues found.",
    )


class BaseAnalyzer(ABC):
    MODEL: str = ""
    TEMPERATURE: float = 0.2
    KEY_PREFIX: str = "sk-"
    MIN_KEY_LENGTH: int = 20
    PROVIDER: str = "base"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_retries: int = _MAX_RETRIES,
        base_delay: float = _BASE_DELAY,
        max_tokens: int = _MAX_TOKENS,
        timeout: float = _TIMEOUT,
        max_chars_per_file: int | None = None,
        test_mode: bool = False,
    ):
        self.api_key = api_key
        self.model = model or self.MODEL
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_chars_per_file = max_chars_per_file
        self.test_mode = test_mode
        self._client: Any = None

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def is_available(self) -> bool:
        """True when analyze() would actually produce a result."""
        return self.test_mode or is_valid_api_key(self.api_key, self.KEY_PREFIX, self.MIN_KEY_LENGTH)

    def analyze(self, source: str, context: AnalysisRequest | None = None) -> AnalysisResult:
        """Analyse one file and return its findings.

        Concrete here because the algorithm is identical for every provider.
        A malformed response degrades to an empty result with a warning;
        rate-limit exhaustion and other service failures raise AnalysisError.
        """
        request = dataclasses.replace(context or AnalysisRequest(file_path="<input>"), source=source)

        if self.test_mode:
            return canned_result(request)

        if not self.is_available():
            logger.warning("%s: no valid API key configured, skipping %s", self.__class__.__name__, request.file_path)
            return AnalysisResult(
                file_path=request.file_path,
                module=request.module,
                warnings=[f"No valid {self.PROVIDER} API key configured; analysis skipped."],
                summary="Analysis unavailable.",
                status="unavailable",
            )

        system = build_system_prompt(request.analysis_type)
        user = build_user_prompt(request, max_chars=self.max_chars_per_file)
        raw = self._call_with_retry(system, user)

        try:
            payload = self._parse(raw)
        except ParseError as e:
            logger.warning("%s: %s (%s)", self.__class__.__name__, e, request.file_path)
            return AnalysisResult(
                file_path=request.file_path,
                module=request.module,
                warnings=[PARSE_FAILURE_WARNING],
                summary="Analysis completed with errors.",
                status="degraded",
            )
        return self._to_result(payload, request)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._make_client()
        return self._client

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _make_client(self) -> Any:
        """Construct the SDK client. Called at most once, on first use."""

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        Must raise RateLimitError for 429s (with retry_after when the
        response carries a hint) and AnalysisError for every other failure.
        _call_with_retry decides what is retried.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def retry_delay(self, attempt: int, hint: int | None = None) -> float:
        """Seconds to wait before retry number `attempt` (1-based)."""
        if hint is not None:
            return hint
        return self.base_delay * 2 ** (attempt - 1)

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Call _call_api, retrying only on rate limits.

        At most max_retries retries follow the first attempt. Any other
        AnalysisError propagates immediately.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return self._call_api(system_prompt, user_prompt)
            except RateLimitError as e:
                if attempt == self.max_retries:
                    logger.error(
                        "%s: still rate limited after %d retries: %s",
                        self.__class__.__name__,
                        self.max_retries,
                        e,
                    )
                    raise AnalysisError(
                        f"Rate limit exceeded after {self.max_retries} retries: {e}", status_code=429
                    ) from e
                delay = self.retry_delay(attempt + 1, e.retry_after)
                logger.warning(
                    "%s rate limited (retry %d/%d). Retrying in %ss...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.max_retries,
                    delay,
                )
                time.sleep(delay)
        raise AssertionError("unreachable")

    def _parse(self, raw: str | None) -> dict:
        """Parse the model's raw text response against the JSON contract.

        Raises ParseError on any deviation: not JSON, not an object, or
        issues/warnings/summary of the wrong type.
        """
        if not raw or not raw.strip():
            raise ParseError("empty response")
        # Strip only the outer ```json ... ``` fence that the model wraps
        # the response in, NOT backticks inside code_example values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ParseError(f"response is not valid JSON: {raw[:200]!r}") from e

        if not isinstance(payload, dict):
            raise ParseError(f"expected a JSON object, got {type(payload).__name__}")
        issues = payload.get("issues", [])
        if not isinstance(issues, list) or not all(isinstance(i, dict) for i in issues):
            raise ParseError("'issues' must be a list of objects")
        warnings = payload.get("warnings", [])
        if not isinstance(warnings, list) or not all(isinstance(w, str) for w in warnings):
            raise ParseError("'warnings' must be a list of strings")
        if not isinstance(payload.get("summary", ""), str):
            raise ParseError("'summary' must be a string")
        return payload

    def _to_result(self, payload: dict, request: AnalysisRequest) -> AnalysisResult:
        issues: list[Issue] = []
        warnings = list(payload.get("warnings", []))
        for raw_issue in payload.get("issues", []):
            issue = Issue.from_dict(raw_issue)
            if not issue.description:
                warnings.append("Dropped an issue without a description")
                continue
            issues.append(issue)
        return AnalysisResult(
            file_path=request.file_path,
            module=request.module,
            issues=issues,
            warnings=warnings,
            summary=payload.get("summary", ""),
        )
