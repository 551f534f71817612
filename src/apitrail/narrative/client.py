"""Narrative generators that turn a run log into prose."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from apitrail.config import TrailConfig
from apitrail.errors import ErrorContext, NarrativeError, NarrativeTimeoutError, RateLimitedError

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = "You are a helpful AI assistant specialized in API test summarization."


@runtime_checkable
class NarrativeGenerator(Protocol):
    """Protocol for anything that writes a narrative from a prompt.

    Implementations may raise NarrativeError; callers substitute a
    placeholder instead of failing the report.
    """

    def generate_narrative(self, prompt: str) -> str:
        """Return narrative text for ``prompt``."""
        ...


class StaticNarrativeGenerator:
    """Returns a fixed text. Useful offline and in tests."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        self.prompts: list[str] = []

    def generate_narrative(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


class OpenRouterNarrativeGenerator:
    """Chat-completions client for the OpenRouter API.

    Every request is bounded by ``timeout``. Failures are raised as
    NarrativeError subclasses, never returned as text.

    Attributes:
        api_key: Bearer token for the endpoint.
        url: Chat completions URL.
        model: Model identifier.
        timeout: Request timeout in seconds.

    Example:
        >>> generator = OpenRouterNarrativeGenerator(api_key="sk-...")
        >>> text = generator.generate_narrative(prompt)
    """

    def __init__(
        self,
        api_key: str | None,
        url: str = "https://openrouter.ai/api/v1/chat/completions",
        model: str = "openai/gpt-4o-mini",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config: TrailConfig) -> OpenRouterNarrativeGenerator:
        return cls(
            api_key=config.openrouter_api_key,
            url=config.openrouter_url,
            model=config.openrouter_model,
            timeout=config.narrative_timeout,
        )

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
        }

    def generate_narrative(self, prompt: str) -> str:
        """Send ``prompt`` and return the first choice's content.

        Raises:
            NarrativeError: Missing key, transport failure, non-2xx status,
                or a body without usable content.
            NarrativeTimeoutError: The request exceeded ``timeout``.
            RateLimitedError: The endpoint answered 429.
        """
        if not self.api_key:
            raise NarrativeError(
                "OPENROUTER_API_KEY is not set",
                recoverable=False,
            )

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        context = ErrorContext(extra={"url": self.url, "model": self.model})

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=self._payload(prompt), headers=headers)
        except httpx.TimeoutException as exc:
            raise NarrativeTimeoutError(
                f"No answer from {self.url} within {self.timeout}s",
                cause=exc,
                context=context,
            ) from exc
        except (httpx.ConnectError, OSError) as exc:
            raise NarrativeError(f"Cannot reach {self.url}: {exc}", cause=exc, context=context) from exc
        except httpx.HTTPError as exc:
            raise NarrativeError(f"Request to {self.url} failed: {exc}", cause=exc, context=context) from exc

        if response.status_code == 429:
            raise RateLimitedError(
                "Rate limit exceeded. Please wait and try again later.",
                retry_after=_retry_after(response),
                context=context,
            )
        if not 200 <= response.status_code < 300:
            raise NarrativeError(
                f"Narrative endpoint returned HTTP {response.status_code}: {response.text[:200]}",
                context=context,
                status_code=response.status_code,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise NarrativeError(
                "Narrative endpoint returned an unexpected body", cause=exc, context=context
            ) from exc

        if not isinstance(content, str) or not content.strip():
            raise NarrativeError("Narrative endpoint returned empty content", context=context)

        logger.debug(f"Received {len(content)} characters of narrative from {self.model}")
        return content.strip()


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
