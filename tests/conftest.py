"""Pytest configuration and fixtures for op-monitor tests."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from op_monitor.config import MonitorConfig, ProvidersConfig
from op_monitor.constants import LOGGER_NAME
from op_monitor.exceptions import QueryError
from op_monitor.monitor import ActivityMonitor
from op_monitor.persistence import FilePersistenceBridge
from op_monitor.providers.base import ModelProvider
from op_monitor.providers.chain import ModelQueryLayer

DEFAULT_REPLY = '{"summary": "Routine activity", "riskLevel": "low"}'


class FakeProvider(ModelProvider):
    """In-memory provider that records calls and returns canned replies."""

    def __init__(
        self,
        name: str = "fake",
        local: bool = False,
        available: bool = True,
        reply: str = DEFAULT_REPLY,
        error: str | None = None,
    ):
        self._name = name
        self._local = local
        self.available = available
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str, str]] = []
        self.probes = 0
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_local(self) -> bool:
        return self._local

    def is_available(self) -> bool:
        self.probes += 1
        return self.available

    def try_query(self, model: str, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((model, system_prompt, user_prompt))
        if self.error:
            raise QueryError(self.error, provider=self._name)
        return self.reply

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Let caplog see package records even after configure_logging ran."""
    yield
    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.handlers.clear()
    app_logger.propagate = True
    app_logger.setLevel(logging.NOTSET)


@pytest.fixture
def quiet_config() -> MonitorConfig:
    """Monitor config with both timers off and no remote providers.

    Returns:
        MonitorConfig suitable for deterministic tests
    """
    return MonitorConfig(
        enable_realtime_monitoring=False,
        enable_context_learning=False,
        providers=ProvidersConfig(remotes=[]),
    )


@pytest.fixture
def make_provider() -> type[FakeProvider]:
    """Factory for extra fake providers within a test."""
    return FakeProvider


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def query_layer(fake_provider: FakeProvider) -> ModelQueryLayer:
    return ModelQueryLayer([fake_provider])


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def persistence(data_dir: Path) -> FilePersistenceBridge:
    return FilePersistenceBridge(data_dir)


@pytest.fixture
def monitor(
    quiet_config: MonitorConfig,
    query_layer: ModelQueryLayer,
    persistence: FilePersistenceBridge,
) -> Iterator[ActivityMonitor]:
    """Started monitor backed by a fake provider and a temp data dir.

    Yields:
        Active ActivityMonitor
    """
    mon = ActivityMonitor(quiet_config, query_layer=query_layer, persistence=persistence)
    mon.start()
    try:
        yield mon
    finally:
        mon.close()
