"""Activity monitor: the façade over store, triggers, query layer and context.

Receives events from source modules, analyzes the critical ones
synchronously, keeps rolling per-source context, and answers on-demand
suggestion and report requests. Two re-arming timers run the periodic
analysis and the context-learning pass.
"""

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from op_monitor.config import MonitorConfig
from op_monitor.constants import (
    ACTIVITY_LOG_PAYLOAD_CHARS,
    DEFAULT_REPORT_TIMEFRAME,
    DEFAULT_REPORT_TYPE,
    PURPOSE_ANALYSIS,
    PURPOSE_CONTEXTUAL,
    PURPOSE_REPORTING,
    PURPOSE_SUGGESTIONS,
    SUGGESTION_EVENT_WINDOW,
    TOPIC_ACTIVITY,
    TOPIC_ANALYSIS,
    TOPIC_PERIODIC_ANALYSIS,
    TOPIC_STARTED,
    TOPIC_STOPPED,
    VALID_TOPICS,
)
from op_monitor.context import ContextAggregator
from op_monitor.exceptions import (
    MonitorError,
    MonitorStateError,
    PersistenceError,
    ProviderUnavailableError,
    ReportGenerationError,
    SuggestionError,
    ValidationError,
)
from op_monitor.models import (
    AnalysisResult,
    Event,
    MonitorState,
    RiskLevel,
    ensure_utc,
    utc_now,
)
from op_monitor.notifications import NotificationHub, Subscription
from op_monitor.persistence import PersistenceBridge
from op_monitor.providers.chain import ModelQueryLayer, create_query_layer
from op_monitor.providers.prompts import (
    render_event_analysis,
    render_periodic_analysis,
    render_report,
    render_suggestions,
)
from op_monitor.reporting import (
    Report,
    build_digest,
    build_summary,
    parse_timeframe,
    payload_json,
)
from op_monitor.status import MonitorStatus, ProviderUsage
from op_monitor.store import EventStore
from op_monitor.triggers import TriggerPolicy

logger = logging.getLogger(__name__)

TIMER_PERIODIC_ANALYSIS = "periodic-analysis"
TIMER_CONTEXT_LEARNING = "context-learning"

# Checked in priority order against the textual summary
_TEXT_RISK_ORDER = (RiskLevel.CRITICAL, RiskLevel.HIGH, RiskLevel.MEDIUM)


def extract_risk_level(result: AnalysisResult) -> RiskLevel:
    """Derive an event risk level from a model result.

    Uses an explicit ``riskLevel``/``risk_level``/``risk`` field when it
    names a known level; otherwise scans the textual summary for
    "critical", "high" and "medium" in that order. Defaults to low.
    """
    for key in ("riskLevel", "risk_level", "risk"):
        value = result.get(key)
        if isinstance(value, dict):
            value = value.get("level")
        level = RiskLevel.parse(value)
        if level is not None and level is not RiskLevel.UNKNOWN:
            return level

    text = result.get("summary")
    if not isinstance(text, str):
        text = json.dumps(result, default=str)
    lowered = text.lower()
    for level in _TEXT_RISK_ORDER:
        if level.value in lowered:
            return level
    return RiskLevel.LOW


class ActivityMonitor:
    """Owns the event store and context aggregator for one monitoring session.

    Lifecycle: stopped → starting → active → stopping → stopped.

    All mutation of the store and aggregator happens under one re-entrant
    lock, since timer threads and ``log_activity`` callers interleave.
    Model queries run outside the lock.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        query_layer: ModelQueryLayer | None = None,
        persistence: PersistenceBridge | None = None,
        notifications: NotificationHub | None = None,
    ):
        """Initialize the monitor.

        Args:
            config: Monitor configuration (defaults if omitted).
            query_layer: Model query layer; built from config if omitted.
            persistence: Optional bridge for context snapshots and reports.
            notifications: Optional shared notification hub.
        """
        self.config = config or MonitorConfig()
        self._query_layer = query_layer or create_query_layer(self.config)
        self._persistence = persistence
        self._hub = notifications or NotificationHub()

        self._store = EventStore(self.config.max_events)
        self._aggregator = ContextAggregator()
        self._triggers = TriggerPolicy(self.config.triggers)
        self._lock = threading.RLock()

        self._state = MonitorState.STOPPED
        self._state_lock = threading.Lock()

        self._timers: dict[str, threading.Timer] = {}
        self._timers_running = threading.Event()
        self._timer_lock = threading.Lock()

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is MonitorState.ACTIVE

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def aggregator(self) -> ContextAggregator:
        return self._aggregator

    @property
    def triggers(self) -> TriggerPolicy:
        return self._triggers

    @property
    def query_layer(self) -> ModelQueryLayer:
        return self._query_layer

    @property
    def notifications(self) -> NotificationHub:
        return self._hub

    def subscribe(self, topic: str, handler: Callable[[Any], None]) -> Subscription:
        """Attach a handler to a notification topic. Cancel the handle to detach.

        Raises:
            ValidationError: If the topic is not one the monitor publishes.
        """
        if topic not in VALID_TOPICS:
            raise ValidationError(
                f"Unknown notification topic: {topic!r}",
                field="topic",
                value=topic,
                expected=", ".join(VALID_TOPICS),
            )
        return self._hub.subscribe(topic, handler)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Probe providers, restore context and arm the periodic timers.

        Raises:
            ProviderUnavailableError: If no model provider is reachable.
            MonitorStateError: If the monitor is mid-transition.
        """
        with self._state_lock:
            if self._state is MonitorState.ACTIVE:
                logger.warning("Activity monitor already active")
                return
            if self._state is not MonitorState.STOPPED:
                raise MonitorStateError("Cannot start monitor", state=self._state.value)
            self._state = MonitorState.STARTING

        try:
            availability = self._query_layer.probe()
            if not any(availability.values()):
                raise ProviderUnavailableError(
                    "No LLM providers available. Configure Ollama or API keys.",
                    providers=list(availability),
                )
        except ProviderUnavailableError as e:
            self._state = MonitorState.STOPPED
            logger.error(f"Activity monitor failed to start: {e}")
            raise

        self._restore_context()
        self._start_timers()

        self._state = MonitorState.ACTIVE
        logger.info("Activity monitor: real-time analysis active")
        self._hub.publish(TOPIC_STARTED, self.get_status())

    def stop(self) -> None:
        """Cancel timers and persist context. In-flight queries are not awaited."""
        with self._state_lock:
            if self._state in (MonitorState.STOPPED, MonitorState.STOPPING):
                return
            self._state = MonitorState.STOPPING

        self._stop_timers()
        self._save_context()

        self._state = MonitorState.STOPPED
        logger.info("Activity monitor stopped")
        self._hub.publish(TOPIC_STOPPED, self.get_status())

    def close(self) -> None:
        """Stop if needed and release provider connections."""
        self.stop()
        self._query_layer.close()

    def _restore_context(self) -> None:
        if self._persistence is None:
            return
        try:
            data = self._persistence.load_context()
        except PersistenceError as e:
            logger.warning(f"Could not load stored contexts, starting fresh: {e}")
            return
        if data is None:
            logger.info("No stored contexts found, starting fresh")
            return

        with self._lock:
            try:
                self._aggregator.import_state(data)
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.warning(f"Stored contexts are corrupt, starting fresh: {e}")
                self._aggregator = ContextAggregator()
                return
        logger.info(f"✓ Stored contexts loaded ({len(self._aggregator.contexts)} sources)")

    def _save_context(self) -> None:
        if self._persistence is None:
            return
        with self._lock:
            data = self._aggregator.export_state()
        try:
            self._persistence.save_context(data)
        except PersistenceError as e:
            logger.error(f"Failed to save contexts: {e}")

    # =========================================================================
    # Timers
    # =========================================================================

    def _schedule(self, name: str, interval_seconds: float, job: Callable[[], None]) -> None:
        """Run ``job`` every ``interval_seconds``, re-arming after each run."""

        def run_and_reschedule() -> None:
            with self._timer_lock:
                if not self._timers_running.is_set():
                    return
            try:
                job()
            finally:
                with self._timer_lock:
                    if self._timers_running.is_set():
                        timer = threading.Timer(interval_seconds, run_and_reschedule)
                        timer.daemon = True
                        self._timers[name] = timer
                        timer.start()

        with self._timer_lock:
            timer = threading.Timer(interval_seconds, run_and_reschedule)
            timer.daemon = True
            self._timers[name] = timer
            timer.start()
        logger.debug(f"Scheduled {name} every {interval_seconds}s")

    def _start_timers(self) -> None:
        self._timers_running.set()
        if self.config.enable_realtime_monitoring:
            self._schedule(
                TIMER_PERIODIC_ANALYSIS,
                self.config.analysis_interval_seconds,
                self._run_periodic_analysis,
            )
        if self.config.enable_context_learning:
            self._schedule(
                TIMER_CONTEXT_LEARNING,
                self.config.learning_interval_seconds,
                self._run_learning_update,
            )

    def _stop_timers(self) -> None:
        with self._timer_lock:
            self._timers_running.clear()
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _run_periodic_analysis(self) -> None:
        # Timer boundary: a misbehaving provider must not end the loop
        try:
            self.analyze_recent()
        except Exception:
            logger.exception("Periodic analysis failed")

    def _run_learning_update(self) -> None:
        try:
            self.update_learning()
        except Exception:
            logger.exception("Context learning update failed")

    # =========================================================================
    # Ingestion
    # =========================================================================

    def log_activity(
        self,
        source_id: str,
        action: str,
        payload: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> Event:
        """Record an event, analyze it if it triggers, and update its source context.

        Args:
            source_id: Source module that produced the event.
            action: Action name.
            payload: Action data.
            context: Caller-supplied context.
            timestamp: Event time; defaults to now (set for replayed events).

        Returns:
            The stored event.
        """
        event = Event(
            source_id=source_id,
            action=action,
            payload=payload or {},
            context=context or {},
            timestamp=ensure_utc(timestamp) if timestamp else utc_now(),
        )

        with self._lock:
            self._store.record(event)

        try:
            if self._triggers.requires_immediate_analysis(event):
                self._analyze_event(event)
        finally:
            # Stored events always have a source context
            with self._lock:
                self._aggregator.update(source_id, event)

        logger.info(
            f"[{source_id.upper()}] {action}: "
            f"{payload_json(event.payload)[:ACTIVITY_LOG_PAYLOAD_CHARS]}..."
        )
        self._hub.publish(TOPIC_ACTIVITY, event)
        return event

    def _analyze_event(self, event: Event) -> None:
        prompt = render_event_analysis(
            event.source_id,
            event.action,
            payload_json(event.payload, indent=2),
            payload_json(event.context, indent=2),
        )
        result = self._query_layer.query_purpose(PURPOSE_ANALYSIS, prompt)

        with self._lock:
            event.analysis = result
            event.analyzed = True
            event.risk_level = extract_risk_level(result)

        self._hub.publish(TOPIC_ANALYSIS, {"event": event, "analysis": result})
        logger.info(
            f"Analysis [{event.source_id}] risk={event.risk_level.value}: "
            f"{result.get('summary') or 'Analysis completed'}"
        )

    # =========================================================================
    # Periodic jobs
    # =========================================================================

    def analyze_recent(self, window_size: int | None = None) -> AnalysisResult | None:
        """Run one contextual analysis over the most recent events.

        Returns:
            The model result, or None when the store is empty.
        """
        window = self.config.analysis_window if window_size is None else window_size
        with self._lock:
            events = self._store.recent(window)
            digest = build_digest(events)
        if not events:
            return None

        result = self._query_layer.query_purpose(
            PURPOSE_CONTEXTUAL, render_periodic_analysis(digest)
        )
        self._hub.publish(TOPIC_PERIODIC_ANALYSIS, result)
        return result

    def update_learning(self) -> int:
        """Recompute learning snapshots for every source. Returns the source count."""
        with self._lock:
            count = self._aggregator.refresh_all()
        logger.debug(f"Context learning updated for {count} source(s)")
        return count

    # =========================================================================
    # On-demand requests
    # =========================================================================

    def generate_suggestions(
        self, operation_context: dict[str, Any] | None = None
    ) -> AnalysisResult:
        """Ask the model for next-step suggestions given current state.

        Raises:
            SuggestionError: If the request cannot be built or answered.
        """
        try:
            with self._lock:
                context_data = {
                    "current_activities": [
                        e.to_dict() for e in self._store.recent(SUGGESTION_EVENT_WINDOW)
                    ],
                    "operation_context": operation_context or {},
                    "learning_data": {
                        sid: snap.to_dict()
                        for sid, snap in self._aggregator.learning_data.items()
                    },
                    "active_sources": list(self._aggregator.contexts),
                }
                prompt = render_suggestions(json.dumps(context_data, indent=2, default=str))
            result = self._query_layer.query_purpose(PURPOSE_SUGGESTIONS, prompt)
        except (TypeError, ValueError, MonitorError) as e:
            logger.error(f"Suggestion generation failed: {e}")
            raise SuggestionError("Suggestion generation failed", cause=e) from e

        logger.info("Suggestions generated")
        return result

    def generate_report(
        self,
        report_type: str = DEFAULT_REPORT_TYPE,
        timeframe: str = DEFAULT_REPORT_TIMEFRAME,
    ) -> Report:
        """Build, query and persist a report over a lookback window.

        Raises:
            ValidationError: If the timeframe is not recognized.
            ReportGenerationError: If the report cannot be produced. A failed save is logged
                and leaves ``location`` unset.
        """
        cutoff = utc_now() - parse_timeframe(timeframe)

        with self._lock:
            events = self._store.since(cutoff)
            summary = build_summary(timeframe, events)
            report_data = {
                "summary": summary,
                "activities": [e.to_dict() for e in events],
                "contexts": {
                    sid: ctx.to_dict() for sid, ctx in self._aggregator.contexts.items()
                },
                "learning_insights": {
                    sid: snap.to_dict() for sid, snap in self._aggregator.learning_data.items()
                },
            }

        try:
            prompt = render_report(payload_json(report_data, indent=2))
            content = self._query_layer.query_purpose(PURPOSE_REPORTING, prompt)
        except (TypeError, ValueError, MonitorError) as e:
            logger.error(f"Report generation failed: {e}")
            raise ReportGenerationError("Report generation failed", cause=e) from e

        location = None
        if self._persistence is not None:
            try:
                location = self._persistence.save_report(content, report_type)
            except PersistenceError as e:
                logger.error(f"Failed to save {report_type} report: {e}")

        logger.info(f"Report generated: {report_type} ({summary['total_events']} events)")
        return Report(
            report_type=report_type,
            timeframe=timeframe,
            summary=summary,
            content=content,
            location=location,
        )

    # =========================================================================
    # Status
    # =========================================================================

    def _public_config(self) -> dict[str, Any]:
        data = self.config.to_dict()
        for remote in data["providers"]["remotes"]:
            key = remote.get("api_key")
            if key and not key.startswith("${"):
                remote["api_key"] = "***"
        return data

    def get_status(self) -> MonitorStatus:
        with self._lock:
            last = self._store.last()
            total = len(self._store)
            sources = len(self._aggregator.contexts)
            snapshots = len(self._aggregator.learning_data)

        chain = self._query_layer.get_status()
        return MonitorStatus(
            is_active=self.is_active,
            state=self._state,
            total_events=total,
            active_sources=sources,
            learning_data_points=snapshots,
            last_event_at=last.timestamp if last else None,
            config=self._public_config(),
            available_models=chain["models"],
            providers=[
                ProviderUsage(name=p["name"], local=p["local"], **p["usage"])
                for p in chain["providers"]
            ],
        )
