"""Tests for the HTTP model providers.

Tests cover:
- Ollama liveness probe and chat over the native API
- OpenAI-compatible chat completions with bearer auth
- Transport, status and payload failures surface as QueryError
- Remote availability follows API key configuration
"""

import json

import httpx
import pytest

from op_monitor.config import RemoteProviderConfig
from op_monitor.exceptions import QueryError
from op_monitor.providers.ollama import OllamaProvider
from op_monitor.providers.openai_compat import OpenAICompatProvider


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


# =============================================================================
# Ollama
# =============================================================================


class TestOllamaProvider:
    """Test the local Ollama provider."""

    def test_list_models(self) -> None:
        """Test /api/tags is parsed into model names."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llama3.2:latest"}]})

        provider = OllamaProvider("http://ollama.test:11434/", client=_client(handler))

        assert provider.list_models() == ["llama3.2:latest"]
        assert provider.is_available() is True
        assert provider.is_local is True
        assert provider.name == "ollama"

    def test_probe_not_cached(self) -> None:
        """Test every availability check hits the server."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json={"models": []})

        provider = OllamaProvider(client=_client(handler))
        provider.is_available()
        provider.is_available()

        assert calls == ["/api/tags", "/api/tags"]

    def test_unreachable(self) -> None:
        """Test connection errors mark the provider unavailable."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = OllamaProvider(client=_client(handler))

        assert provider.is_available() is False
        with pytest.raises(QueryError, match="not reachable"):
            provider.list_models()

    def test_error_status_unavailable(self) -> None:
        """Test a non-200 probe marks the provider unavailable."""
        provider = OllamaProvider(client=_client(lambda r: httpx.Response(503)))

        assert provider.is_available() is False

    @pytest.mark.parametrize("body", [{"models": 5}, {"models": [1]}, ["llama3.2"]])
    def test_malformed_tags_unavailable(self, body) -> None:
        """Test an unexpected /api/tags shape marks the provider unavailable."""
        provider = OllamaProvider(client=_client(lambda r: httpx.Response(200, json=body)))

        assert provider.is_available() is False
        with pytest.raises(QueryError, match="not reachable"):
            provider.list_models()

    def test_chat(self) -> None:
        """Test chat posts a non-streaming request and returns the content."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": '{"summary": "ok"}'}})

        provider = OllamaProvider(client=_client(handler))

        reply = provider.try_query("llama3.2:latest", "system", "user")

        assert reply == '{"summary": "ok"}'
        assert seen["path"] == "/api/chat"
        assert seen["body"]["stream"] is False
        assert seen["body"]["model"] == "llama3.2:latest"
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "user"},
        ]

    def test_chat_timeout(self) -> None:
        """Test timeouts become QueryError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider = OllamaProvider(timeout=5, client=_client(handler))

        with pytest.raises(QueryError, match="timed out"):
            provider.chat("m", [])

    def test_chat_error_status(self) -> None:
        """Test a non-200 reply becomes QueryError."""
        provider = OllamaProvider(client=_client(lambda r: httpx.Response(500, text="boom")))

        with pytest.raises(QueryError, match="500"):
            provider.chat("m", [])

    def test_chat_malformed(self) -> None:
        """Test a reply without message content becomes QueryError."""
        provider = OllamaProvider(client=_client(lambda r: httpx.Response(200, json={})))

        with pytest.raises(QueryError, match="Malformed"):
            provider.chat("m", [])


# =============================================================================
# OpenAI-compatible
# =============================================================================


class TestOpenAICompatProvider:
    """Test hosted OpenAI-compatible providers."""

    def test_chat_completion(self) -> None:
        """Test the request shape and bearer auth."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "hello"}}]}
            )

        provider = OpenAICompatProvider(
            "groq",
            "https://api.groq.test/openai/v1/",
            "sk-test",
            "llama-3.1-8b-instant",
            client=_client(handler),
        )

        reply = provider.try_query("llama3.2:latest", "sys", "usr")

        assert reply == "hello"
        assert seen["url"] == "https://api.groq.test/openai/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        # The configured hosted model wins over the purpose model
        assert seen["body"]["model"] == "llama-3.1-8b-instant"
        assert seen["body"]["max_tokens"] == 2000
        assert seen["body"]["temperature"] == 0.7

    def test_available_iff_key(self) -> None:
        """Test availability follows API key presence."""
        with_key = OpenAICompatProvider("groq", "https://x.test/v1", "k", "m")
        without = OpenAICompatProvider("groq", "https://x.test/v1", None, "m")

        assert with_key.is_available() is True
        assert without.is_available() is False
        assert with_key.is_local is False

    def test_no_key_raises(self) -> None:
        """Test querying without a key fails before any request."""
        provider = OpenAICompatProvider("groq", "https://x.test/v1", None, "m")

        with pytest.raises(QueryError, match="No API key"):
            provider.try_query("m", "s", "u")

    def test_error_status(self) -> None:
        """Test an error status becomes QueryError naming the provider."""
        provider = OpenAICompatProvider(
            "together", "https://x.test/v1", "k", "m",
            client=_client(lambda r: httpx.Response(429, text="rate limited")),
        )

        with pytest.raises(QueryError) as exc_info:
            provider.try_query("m", "s", "u")

        assert exc_info.value.provider == "together"

    def test_empty_choices(self) -> None:
        """Test an empty choices list becomes QueryError."""
        provider = OpenAICompatProvider(
            "groq", "https://x.test/v1", "k", "m",
            client=_client(lambda r: httpx.Response(200, json={"choices": []})),
        )

        with pytest.raises(QueryError, match="Malformed"):
            provider.try_query("m", "s", "u")

    def test_from_config_resolves_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${ENV} keys resolve from the environment."""
        monkeypatch.setenv("GROQ_API_KEY", "from-env")
        config = RemoteProviderConfig(
            name="groq", base_url="https://x.test/v1", api_key="${GROQ_API_KEY}", model="m"
        )

        provider = OpenAICompatProvider.from_config(config)

        assert provider.api_key == "from-env"
        assert provider.is_available() is True

    def test_from_config_placeholder_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test sample placeholder keys count as not configured."""
        monkeypatch.setenv("GROQ_API_KEY", "your_groq_key_here")
        config = RemoteProviderConfig(
            name="groq", base_url="https://x.test/v1", api_key="${GROQ_API_KEY}", model="m"
        )

        assert OpenAICompatProvider.from_config(config).is_available() is False
