"""Hosted model providers speaking the OpenAI chat completions API.

Works with Groq, Together, Perplexity and any other server that implements
``POST /chat/completions``.
"""

import logging
from typing import Any

import httpx

from op_monitor.config import RemoteProviderConfig
from op_monitor.constants import (
    DEFAULT_PROVIDER_TIMEOUT,
    DEFAULT_REMOTE_MAX_TOKENS,
    DEFAULT_REMOTE_TEMPERATURE,
)
from op_monitor.exceptions import QueryError
from op_monitor.providers.base import ModelProvider, build_messages

logger = logging.getLogger(__name__)


class OpenAICompatProvider(ModelProvider):
    """Remote provider authenticated with a bearer API key."""

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str | None,
        model: str,
        max_tokens: int = DEFAULT_REMOTE_MAX_TOKENS,
        temperature: float = DEFAULT_REMOTE_TEMPERATURE,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        """Initialize the provider.

        Args:
            name: Provider name (groq, together, ...).
            base_url: API base URL including the version segment.
            api_key: API key; the provider is unavailable without one.
            model: Hosted model identifier used for every query.
            max_tokens: Completion token limit.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            client: Optional preconfigured HTTP client.
        """
        self._name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(
        cls,
        config: RemoteProviderConfig,
        client: httpx.Client | None = None,
    ) -> "OpenAICompatProvider":
        return cls(
            name=config.name,
            base_url=config.base_url,
            api_key=config.resolved_api_key(),
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.timeout,
            client=client,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_local(self) -> bool:
        return False

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def is_available(self) -> bool:
        """Hosted providers count as available whenever a key is configured."""
        return bool(self.api_key)

    def chat_completion(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """POST a chat completion and return ``choices[0].message.content``.

        Raises:
            QueryError: On missing key, transport errors or malformed replies.
        """
        if not self.api_key:
            raise QueryError("No API key configured", provider=self.name)

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            response = self._client.post(
                f"{self.base_url}/chat/completions",
                headers=self._get_headers(),
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise QueryError(
                f"{self.name} request timed out after {self.timeout:.0f}s",
                provider=self.name,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise QueryError(f"{self.name} request failed: {e}", provider=self.name, cause=e) from e

        if response.status_code != 200:
            logger.debug(f"Response body: {response.text[:500]}")
            raise QueryError(f"{self.name} returned {response.status_code}", provider=self.name)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise QueryError(
                f"Malformed {self.name} chat response", provider=self.name, cause=e
            ) from e
        return content if isinstance(content, str) else str(content)

    def try_query(self, model: str, system_prompt: str, user_prompt: str) -> str:
        # Local model names mean nothing to a hosted API; use the configured one
        return self.chat_completion(
            self.model,
            build_messages(system_prompt, user_prompt),
            self.max_tokens,
            self.temperature,
        )

    def close(self) -> None:
        self._client.close()
