"""Report data assembly: timeframe parsing, breakdowns and digests."""

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from op_monitor.constants import DIGEST_PAYLOAD_CHARS, TIMEFRAME_PATTERN
from op_monitor.exceptions import ValidationError
from op_monitor.models import AnalysisResult, Event, utc_now

_TIMEFRAME = re.compile(TIMEFRAME_PATTERN)
_UNIT_SECONDS = {"m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def parse_timeframe(timeframe: str) -> timedelta:
    """Convert ``<N>m``, ``<N>h`` or ``<N>d`` into a lookback window.

    Raises:
        ValidationError: For anything else, including zero-length windows.
    """
    match = _TIMEFRAME.match(timeframe.strip().lower()) if isinstance(timeframe, str) else None
    if not match or int(match.group(1)) == 0:
        raise ValidationError(
            f"Unrecognized report timeframe: {timeframe!r}",
            field="timeframe",
            value=timeframe,
            expected="positive duration like 1h, 24h, 30m or 7d",
        )
    amount, unit = int(match.group(1)), match.group(2)
    return timedelta(seconds=amount * _UNIT_SECONDS[unit])


def source_breakdown(events: list[Event]) -> dict[str, int]:
    return dict(Counter(e.source_id for e in events))


def risk_breakdown(events: list[Event]) -> dict[str, int]:
    return dict(Counter(e.risk_level.value for e in events))


def payload_json(data: Any, indent: int | None = None) -> str:
    """JSON text for logs and prompts; falls back to ``repr`` for unserializable data."""
    try:
        return json.dumps(data, indent=indent, default=str)
    except (TypeError, ValueError):
        # Non-string keys and circular references
        return repr(data)


def build_digest(events: list[Event]) -> str:
    """One line per event: ``[timestamp] source:action - payload``."""
    return "\n".join(
        f"[{e.timestamp.isoformat()}] {e.source_id}:{e.action} - "
        f"{payload_json(e.payload)[:DIGEST_PAYLOAD_CHARS]}"
        for e in events
    )


@dataclass
class Report:
    """A generated report.

    ``content`` is the raw model result; it is what gets persisted.
    ``summary`` is computed locally from the event store.
    """

    report_type: str
    timeframe: str
    summary: dict[str, Any]
    content: AnalysisResult
    location: str | None = None
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def total_events(self) -> int:
        return int(self.summary.get("total_events", 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_type": self.report_type,
            "timeframe": self.timeframe,
            "summary": self.summary,
            "content": self.content,
            "location": self.location,
            "generated_at": self.generated_at.isoformat(),
        }


def build_summary(timeframe: str, events: list[Event]) -> dict[str, Any]:
    return {
        "timeframe": timeframe,
        "total_events": len(events),
        "source_breakdown": source_breakdown(events),
        "risk_levels": risk_breakdown(events),
    }
