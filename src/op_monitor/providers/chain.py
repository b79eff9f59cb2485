"""Model query layer: an ordered provider chain with a terminal fallback."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from op_monitor.constants import (
    DEFAULT_MODELS,
    FALLBACK_REASON_NO_PROVIDERS,
    REMOTE_ONLY_PURPOSES,
)
from op_monitor.exceptions import ConfigurationError, QueryError
from op_monitor.models import AnalysisResult, utc_now
from op_monitor.providers.base import ModelProvider
from op_monitor.providers.ollama import OllamaProvider
from op_monitor.providers.openai_compat import OpenAICompatProvider
from op_monitor.providers.parsing import parse_response
from op_monitor.providers.prompts import SYSTEM_PROMPTS

if TYPE_CHECKING:
    from op_monitor.config import MonitorConfig

logger = logging.getLogger(__name__)


def fallback_result(reason: str, purpose: str) -> AnalysisResult:
    """Terminal result returned when no provider could answer."""
    return {
        "summary": f"Analysis unavailable - {reason}",
        "fallback": True,
        "timestamp": utc_now().isoformat(),
        "purpose": purpose,
    }


def create_query_layer(config: MonitorConfig) -> ModelQueryLayer:
    """Build the provider chain from configuration.

    Order: local provider (if enabled), then remote providers in config order.
    """
    providers: list[ModelProvider] = []
    local = config.providers.local
    if local.enabled:
        providers.append(OllamaProvider(base_url=local.base_url, timeout=local.timeout))
    for remote in config.providers.remotes:
        providers.append(OpenAICompatProvider.from_config(remote))
    return ModelQueryLayer(providers, models=config.models)


class ModelQueryLayer:
    """Sends prompt pairs through an ordered list of providers.

    The chain stops at the first provider that answers. Local providers are
    skipped for remote-only purposes and whenever their liveness probe
    fails; every probe runs fresh so a recovered provider is used again
    immediately. When nothing answers, a fallback result is returned.
    ``query`` never raises.
    """

    def __init__(
        self,
        providers: list[ModelProvider],
        models: dict[str, str] | None = None,
        prompts: dict[str, str] | None = None,
    ):
        """Initialize the query layer.

        Args:
            providers: Providers in priority order.
            models: Purpose to model identifier mapping.
            prompts: Purpose to system prompt mapping.
        """
        self._providers = list(providers)
        self._models = dict(DEFAULT_MODELS)
        if models:
            self._models.update(models)
        self._prompts = dict(SYSTEM_PROMPTS)
        if prompts:
            self._prompts.update(prompts)
        self._usage_stats: dict[str, dict[str, int]] = {}
        self._usage_lock = threading.Lock()

    @property
    def providers(self) -> list[ModelProvider]:
        return list(self._providers)

    @property
    def models(self) -> dict[str, str]:
        return dict(self._models)

    def model_for(self, purpose: str) -> str:
        return self._models.get(purpose, "")

    def system_prompt_for(self, purpose: str) -> str:
        """Resolve the system prompt template for a purpose.

        Raises:
            ConfigurationError: If no template exists for the purpose.
        """
        try:
            return self._prompts[purpose]
        except KeyError:
            raise ConfigurationError(
                f"No system prompt for purpose '{purpose}'", key=purpose
            ) from None

    def _track_usage(self, provider_name: str, success: bool) -> None:
        with self._usage_lock:
            stats = self._usage_stats.setdefault(provider_name, {"success": 0, "failure": 0})
            stats["success" if success else "failure"] += 1

    def _is_available(self, provider: ModelProvider) -> bool:
        try:
            return bool(provider.is_available())
        except Exception:
            # A probe that raises counts as unreachable
            logger.exception(f"Availability probe for {provider.name} raised")
            return False

    def probe(self) -> dict[str, bool]:
        """Probe every provider once. Returns provider name -> reachable."""
        results: dict[str, bool] = {}
        for provider in self._providers:
            available = self._is_available(provider)
            results[provider.name] = available
            if available:
                logger.info(f"✓ {provider.name} available")
            else:
                logger.warning(f"{provider.name} not available")
        return results

    def query(self, system_prompt: str, user_prompt: str, purpose: str) -> AnalysisResult:
        """Answer a prompt pair with the first provider that succeeds.

        Args:
            system_prompt: System prompt.
            user_prompt: User prompt.
            purpose: Query purpose (analysis, reporting, suggestions, contextual).

        Returns:
            Parsed model result, or a fallback result with ``fallback: True``.
        """
        model = self.model_for(purpose)
        last_reason: str | None = None

        for provider in self._providers:
            if provider.is_local and purpose in REMOTE_ONLY_PURPOSES:
                continue
            if not self._is_available(provider):
                logger.debug(f"Provider {provider.name} unavailable for {purpose}")
                continue

            try:
                raw = provider.try_query(model, system_prompt, user_prompt)
            except QueryError as e:
                self._track_usage(provider.name, success=False)
                logger.warning(f"LLM query failed ({purpose}) on {provider.name}: {e}")
                last_reason = e.message
                continue

            self._track_usage(provider.name, success=True)
            return parse_response(raw)

        reason = last_reason or FALLBACK_REASON_NO_PROVIDERS
        logger.error(f"LLM query failed ({purpose}): {reason}")
        return fallback_result(reason, purpose)

    def query_purpose(self, purpose: str, user_prompt: str) -> AnalysisResult:
        """Query with the system prompt configured for ``purpose``."""
        return self.query(self.system_prompt_for(purpose), user_prompt, purpose)

    def get_status(self) -> dict[str, Any]:
        """Configured providers with their usage statistics (no probing)."""
        with self._usage_lock:
            usage = {name: dict(stats) for name, stats in self._usage_stats.items()}
        return {
            "providers": [
                {
                    "name": p.name,
                    "local": p.is_local,
                    "usage": usage.get(p.name, {"success": 0, "failure": 0}),
                }
                for p in self._providers
            ],
            "models": dict(self._models),
            "total_queries": sum(s["success"] + s["failure"] for s in usage.values()),
        }

    def close(self) -> None:
        for provider in self._providers:
            provider.close()
