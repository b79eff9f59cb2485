"""Persistence bridge for context snapshots and generated reports.

The monitor only needs three capabilities from storage: load the last
context snapshot, save the current one, and store a report. Failures are
reported as PersistenceError; the monitor decides whether they are fatal.
"""

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from op_monitor.constants import CONTEXTS_FILENAME, DEFAULT_DATA_DIR, REPORTS_DIRNAME
from op_monitor.exceptions import PersistenceError
from op_monitor.models import utc_now

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class PersistenceBridge(ABC):
    """Storage capabilities used by the activity monitor."""

    @abstractmethod
    def load_context(self) -> dict[str, Any] | None:
        """Return ``{contexts, learning_data}`` from the last save, or None if absent."""
        pass

    @abstractmethod
    def save_context(self, data: dict[str, Any]) -> None:
        """Store ``{contexts, learning_data}``."""
        pass

    @abstractmethod
    def save_report(self, report: Any, report_type: str) -> str:
        """Store a report and return its location."""
        pass


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a sibling temp file, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FilePersistenceBridge(PersistenceBridge):
    """JSON files under a data directory.

    Layout:
        <data_dir>/contexts.json
        <data_dir>/reports/<type>_report_<timestamp>.json
    """

    def __init__(self, data_dir: Path | str = DEFAULT_DATA_DIR):
        self.data_dir = Path(data_dir)

    @property
    def contexts_path(self) -> Path:
        return self.data_dir / CONTEXTS_FILENAME

    @property
    def reports_dir(self) -> Path:
        return self.data_dir / REPORTS_DIRNAME

    def load_context(self) -> dict[str, Any] | None:
        path = self.contexts_path
        if not path.exists():
            logger.debug(f"No stored contexts at {path}")
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError("Failed to load stored contexts", path=path, cause=e) from e
        if not isinstance(data, dict):
            raise PersistenceError("Stored contexts are not a JSON object", path=path)
        return {
            "contexts": data.get("contexts") or {},
            "learning_data": data.get("learning_data") or {},
        }

    def save_context(self, data: dict[str, Any]) -> None:
        path = self.contexts_path
        document = {
            "contexts": data.get("contexts", {}),
            "learning_data": data.get("learning_data", {}),
            "last_saved": utc_now().isoformat(),
        }
        try:
            _write_json_atomic(path, document)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError("Failed to save contexts", path=path, cause=e) from e
        logger.debug(f"Saved contexts to {path}")

    def save_report(self, report: Any, report_type: str) -> str:
        safe_type = _UNSAFE_FILENAME_CHARS.sub("_", report_type).strip("_") or "report"
        stamp = utc_now().strftime("%Y-%m-%dT%H%M%S")
        path = self.reports_dir / f"{safe_type}_report_{stamp}.json"
        try:
            _write_json_atomic(path, report)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError("Failed to save report", path=path, cause=e) from e
        logger.info(f"Report saved to {path}")
        return str(path)
