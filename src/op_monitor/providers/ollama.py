"""Local model provider backed by Ollama's native API."""

import logging
from typing import Any

import httpx

from op_monitor.constants import DEFAULT_OLLAMA_URL, DEFAULT_PROVIDER_TIMEOUT, PROVIDER_OLLAMA
from op_monitor.exceptions import QueryError
from op_monitor.providers.base import ModelProvider, build_messages

logger = logging.getLogger(__name__)


class OllamaProvider(ModelProvider):
    """Model provider using a local Ollama server.

    Availability is probed with ``GET /api/tags`` on every call to
    ``is_available``; nothing is cached, so a server that comes back online
    is picked up by the very next query.

    Attributes:
        base_url: The Ollama API base URL.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Ollama API base URL.
            timeout: Request timeout in seconds.
            client: Optional preconfigured HTTP client.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        return PROVIDER_OLLAMA

    @property
    def is_local(self) -> bool:
        return True

    def list_models(self) -> list[str]:
        """List installed model names.

        Raises:
            QueryError: If Ollama is unreachable or answers with an error.
        """
        try:
            response = self._client.get(f"{self.base_url}/api/tags", timeout=self.timeout)
            if response.status_code != 200:
                raise QueryError(
                    f"Ollama returned status {response.status_code}", provider=self.name
                )
            data = response.json()
            return [m.get("name", "") for m in data.get("models", [])]
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            raise QueryError(f"Ollama not reachable: {e}", provider=self.name, cause=e) from e

    def is_available(self) -> bool:
        try:
            self.list_models()
            return True
        except QueryError as e:
            logger.debug(f"Local provider unavailable: {e}")
            return False

    def chat(self, model: str, messages: list[dict[str, str]]) -> str:
        """Run a non-streaming chat completion.

        Raises:
            QueryError: On transport errors, timeouts or malformed replies.
        """
        payload: dict[str, Any] = {"model": model, "messages": messages, "stream": False}
        try:
            response = self._client.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise QueryError(
                f"Ollama request timed out after {self.timeout:.0f}s",
                provider=self.name,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise QueryError(f"Ollama request failed: {e}", provider=self.name, cause=e) from e

        if response.status_code != 200:
            logger.debug(f"Response body: {response.text[:500]}")
            raise QueryError(f"Ollama returned {response.status_code}", provider=self.name)

        try:
            content = response.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise QueryError(
                "Malformed Ollama chat response", provider=self.name, cause=e
            ) from e
        return content if isinstance(content, str) else str(content)

    def try_query(self, model: str, system_prompt: str, user_prompt: str) -> str:
        return self.chat(model, build_messages(system_prompt, user_prompt))

    def close(self) -> None:
        self._client.close()
