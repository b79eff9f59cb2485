"""Per-source context aggregation and learning snapshots."""

import logging
from datetime import datetime
from typing import Any

from op_monitor.constants import LEARNING_EPOCH, SECONDS_PER_DAY, TOP_ACTIONS_LIMIT
from op_monitor.models import (
    Event,
    LearningSnapshot,
    RiskLevel,
    SourceContext,
    aggregate_risk,
    utc_now,
)

logger = logging.getLogger(__name__)


def top_actions(
    action_counts: dict[str, int],
    limit: int = TOP_ACTIONS_LIMIT,
) -> list[tuple[str, int]]:
    """Most frequent actions, count descending, ties by action name ascending."""
    ranked = sorted(action_counts.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _entry(source_id: Any, value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"entry for {source_id!r} must be a mapping, got {type(value).__name__}")
    return value


class ContextAggregator:
    """Turns the event stream into rolling per-source statistics.

    Contexts are created lazily on the first event of a source and live for
    the lifetime of the aggregator. Learning snapshots are derived from the
    contexts and replaced wholesale each time they are recomputed.
    """

    def __init__(self, epoch: datetime = LEARNING_EPOCH):
        self._epoch = epoch
        self._contexts: dict[str, SourceContext] = {}
        self._learning: dict[str, LearningSnapshot] = {}

    @property
    def contexts(self) -> dict[str, SourceContext]:
        return self._contexts

    @property
    def learning_data(self) -> dict[str, LearningSnapshot]:
        return self._learning

    def get(self, source_id: str) -> SourceContext | None:
        return self._contexts.get(source_id)

    def update(self, source_id: str, event: Event) -> SourceContext:
        """Fold one event into the source's context."""
        context = self._contexts.get(source_id)
        if context is None:
            context = SourceContext()
            self._contexts[source_id] = context
            logger.debug(f"Created context for source '{source_id}'")

        context.total_events += 1
        context.last_event_at = event.timestamp
        context.action_counts[event.action] = context.action_counts.get(event.action, 0) + 1

        if event.risk_level is not RiskLevel.UNKNOWN:
            context.risk_trend = aggregate_risk(context.risk_trend, event.risk_level)

        return context

    def average_events_per_day(self, context: SourceContext, now: datetime | None = None) -> float:
        """Events per day since the fixed learning epoch (a coarse indicator)."""
        now = now or utc_now()
        days = (now - self._epoch).total_seconds() / SECONDS_PER_DAY
        if days <= 0:
            return float(context.total_events)
        return context.total_events / days

    def snapshot(self, source_id: str, now: datetime | None = None) -> LearningSnapshot:
        """Recompute and store the learning snapshot for one source.

        Raises:
            KeyError: If the source has never been seen.
        """
        context = self._contexts[source_id]
        now = now or utc_now()
        snap = LearningSnapshot(
            top_actions=top_actions(context.action_counts),
            average_events_per_day=self.average_events_per_day(context, now),
            risk_trend=context.risk_trend,
            updated_at=now,
        )
        self._learning[source_id] = snap
        return snap

    def refresh_all(self, now: datetime | None = None) -> int:
        """Recompute snapshots for every known source. Returns the count."""
        now = now or utc_now()
        for source_id in list(self._contexts):
            self.snapshot(source_id, now)
        return len(self._contexts)

    def export_state(self) -> dict[str, Any]:
        """Serializable form of all contexts and snapshots."""
        return {
            "contexts": {sid: ctx.to_dict() for sid, ctx in self._contexts.items()},
            "learning_data": {sid: snap.to_dict() for sid, snap in self._learning.items()},
        }

    def import_state(self, data: dict[str, Any]) -> None:
        """Replace all state with a previously exported snapshot.

        State is only replaced once the whole snapshot has been read.

        Raises:
            ValueError: If the snapshot or one of its entries is not a mapping.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        raw_contexts = _section(data, "contexts")
        raw_learning = _section(data, "learning_data")

        contexts = {
            str(sid): SourceContext.from_dict(_entry(sid, ctx))
            for sid, ctx in raw_contexts.items()
        }
        learning = {
            str(sid): LearningSnapshot.from_dict(_entry(sid, snap))
            for sid, snap in raw_learning.items()
        }
        self._contexts = contexts
        self._learning = learning
        logger.debug(
            f"Imported {len(self._contexts)} context(s), {len(self._learning)} snapshot(s)"
        )
