"""Trigger policy for immediate event analysis."""

from op_monitor.config import TriggerConfig
from op_monitor.models import Event


class TriggerPolicy:
    """Decides which events pay for a synchronous model query.

    An event triggers when its source is one of the critical sources, or
    its action contains any of the critical action substrings. The rule
    sets are frozen at construction, so the decision depends only on the
    event.
    """

    def __init__(self, config: TriggerConfig | None = None):
        config = config or TriggerConfig()
        self._critical_sources = frozenset(config.critical_sources)
        self._critical_actions = tuple(config.critical_actions)

    @property
    def critical_sources(self) -> frozenset[str]:
        return self._critical_sources

    @property
    def critical_actions(self) -> tuple[str, ...]:
        return self._critical_actions

    def requires_immediate_analysis(self, event: Event) -> bool:
        if event.source_id in self._critical_sources:
            return True
        return any(pattern in event.action for pattern in self._critical_actions)
