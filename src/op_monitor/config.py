"""Configuration management for the activity monitor.

Configuration follows a priority hierarchy:
1. Environment variables (OPMON_*, provider API keys)
2. Config file (.opmon/config.yaml, under the 'monitor' key)
3. Hardcoded defaults in this module
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from op_monitor.constants import (
    CONFIG_ROOT_KEY,
    DEFAULT_ANALYSIS_INTERVAL_SECONDS,
    DEFAULT_ANALYSIS_WINDOW,
    DEFAULT_CRITICAL_ACTIONS,
    DEFAULT_CRITICAL_SOURCES,
    DEFAULT_DATA_DIR,
    DEFAULT_LEARNING_INTERVAL_SECONDS,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_MAX_SIZE_MB,
    DEFAULT_LOG_ROTATION_ENABLED,
    DEFAULT_MAX_EVENTS,
    DEFAULT_MODELS,
    DEFAULT_OLLAMA_URL,
    DEFAULT_PROVIDER_TIMEOUT,
    DEFAULT_REMOTE_MAX_TOKENS,
    DEFAULT_REMOTE_PROVIDERS,
    DEFAULT_REMOTE_TEMPERATURE,
    LOG_LEVEL_INFO,
    MAX_LOG_BACKUP_COUNT,
    MAX_LOG_MAX_SIZE_MB,
    MIN_INTERVAL_SECONDS,
    MIN_LOG_MAX_SIZE_MB,
    PLACEHOLDER_KEY_TEMPLATE,
    VALID_LOG_LEVELS,
    VALID_PURPOSES,
)
from op_monitor.exceptions import ValidationError

logger = logging.getLogger(__name__)

_URL_PATTERN = re.compile(r"^https?://[a-zA-Z0-9.-]+(:\d+)?(/.*)?$", re.IGNORECASE)


def _is_valid_url(url: str) -> bool:
    """Check if URL is valid HTTP(S) URL."""
    return bool(url) and bool(_URL_PATTERN.match(url))


def resolve_env_reference(value: str | None) -> str | None:
    """Resolve ``${ENV_VAR}`` references to their environment value.

    Plain values are returned unchanged; unset variables resolve to None.
    """
    if value and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1])
    return value


@dataclass
class TriggerConfig:
    """Rules deciding which events get synchronous model analysis.

    Attributes:
        critical_sources: Source ids whose every event is analyzed.
        critical_actions: Substrings that mark an action as critical.
    """

    critical_sources: list[str] = field(default_factory=lambda: list(DEFAULT_CRITICAL_SOURCES))
    critical_actions: list[str] = field(default_factory=lambda: list(DEFAULT_CRITICAL_ACTIONS))

    def __post_init__(self) -> None:
        if any(not a for a in self.critical_actions):
            # An empty substring would match every action
            raise ValidationError(
                "Critical action patterns cannot be empty",
                field="critical_actions",
                value=self.critical_actions,
                expected="non-empty substrings",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TriggerConfig":
        return cls(
            critical_sources=list(data.get("critical_sources", DEFAULT_CRITICAL_SOURCES)),
            critical_actions=list(data.get("critical_actions", DEFAULT_CRITICAL_ACTIONS)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "critical_sources": list(self.critical_sources),
            "critical_actions": list(self.critical_actions),
        }


@dataclass
class LocalProviderConfig:
    """Configuration for the local (Ollama) model provider.

    Attributes:
        enabled: Whether the local provider participates in the chain.
        base_url: Ollama API base URL.
        timeout: Per-call timeout in seconds.
    """

    enabled: bool = True
    base_url: str = DEFAULT_OLLAMA_URL
    timeout: float = DEFAULT_PROVIDER_TIMEOUT

    def __post_init__(self) -> None:
        if not _is_valid_url(self.base_url):
            raise ValidationError(
                f"Invalid base URL: {self.base_url}",
                field="base_url",
                value=self.base_url,
                expected="valid HTTP(S) URL",
            )
        if self.timeout <= 0:
            raise ValidationError(
                "Timeout must be positive",
                field="timeout",
                value=self.timeout,
                expected="positive number",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocalProviderConfig":
        return cls(
            enabled=data.get("enabled", True),
            base_url=data.get("base_url", DEFAULT_OLLAMA_URL),
            timeout=data.get("timeout", DEFAULT_PROVIDER_TIMEOUT),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "base_url": self.base_url,
            "timeout": self.timeout,
        }


@dataclass
class RemoteProviderConfig:
    """Configuration for a hosted OpenAI-compatible provider.

    Attributes:
        name: Provider name (groq, together, perplexity, ...).
        base_url: API base URL including the version segment.
        api_key: API key, or ``${ENV_VAR}`` reference resolved at use.
        model: Hosted model identifier.
        max_tokens: Completion token limit.
        temperature: Sampling temperature.
        timeout: Per-call timeout in seconds.
    """

    name: str
    base_url: str
    api_key: str | None = None
    model: str = ""
    max_tokens: int = DEFAULT_REMOTE_MAX_TOKENS
    temperature: float = DEFAULT_REMOTE_TEMPERATURE
    timeout: float = DEFAULT_PROVIDER_TIMEOUT

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError(
                "Remote provider name cannot be empty",
                field="name",
                expected="non-empty string",
            )
        if not _is_valid_url(self.base_url):
            raise ValidationError(
                f"Invalid base URL: {self.base_url}",
                field="base_url",
                value=self.base_url,
                expected="valid HTTP(S) URL",
            )
        if self.timeout <= 0:
            raise ValidationError(
                "Timeout must be positive",
                field="timeout",
                value=self.timeout,
                expected="positive number",
            )
        if self.api_key and not self.api_key.startswith("${"):
            logger.warning(
                f"API key for {self.name} appears to be hardcoded in config. "
                "For security, use ${ENV_VAR_NAME} syntax instead."
            )

    def resolved_api_key(self) -> str | None:
        """Return the usable API key, or None when unset or a placeholder."""
        key = resolve_env_reference(self.api_key)
        if not key or key == PLACEHOLDER_KEY_TEMPLATE.format(name=self.name):
            return None
        return key

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteProviderConfig":
        return cls(
            name=data.get("name", ""),
            base_url=data.get("base_url", ""),
            api_key=data.get("api_key"),
            model=data.get("model", ""),
            max_tokens=data.get("max_tokens", DEFAULT_REMOTE_MAX_TOKENS),
            temperature=data.get("temperature", DEFAULT_REMOTE_TEMPERATURE),
            timeout=data.get("timeout", DEFAULT_PROVIDER_TIMEOUT),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "api_key": self.api_key,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "timeout": self.timeout,
        }


def _default_remotes() -> list[RemoteProviderConfig]:
    return [RemoteProviderConfig.from_dict(dict(r)) for r in DEFAULT_REMOTE_PROVIDERS]


@dataclass
class ProvidersConfig:
    """Ordered model provider chain: local first, then remotes in order."""

    local: LocalProviderConfig = field(default_factory=LocalProviderConfig)
    remotes: list[RemoteProviderConfig] = field(default_factory=_default_remotes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvidersConfig":
        remotes_data = data.get("remotes")
        return cls(
            local=LocalProviderConfig.from_dict(data.get("local", {})),
            remotes=(
                [RemoteProviderConfig.from_dict(r) for r in remotes_data]
                if remotes_data is not None
                else _default_remotes()
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "local": self.local.to_dict(),
            "remotes": [r.to_dict() for r in self.remotes],
        }


@dataclass
class LogRotationConfig:
    """Configuration for log file rotation.

    Attributes:
        enabled: Whether to enable log rotation.
        max_size_mb: Maximum log file size in megabytes before rotation.
        backup_count: Number of backup files to keep.
    """

    enabled: bool = DEFAULT_LOG_ROTATION_ENABLED
    max_size_mb: int = DEFAULT_LOG_MAX_SIZE_MB
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    def __post_init__(self) -> None:
        if not MIN_LOG_MAX_SIZE_MB <= self.max_size_mb <= MAX_LOG_MAX_SIZE_MB:
            raise ValidationError(
                f"max_size_mb must be between {MIN_LOG_MAX_SIZE_MB} and {MAX_LOG_MAX_SIZE_MB}",
                field="max_size_mb",
                value=self.max_size_mb,
                expected=f"{MIN_LOG_MAX_SIZE_MB}-{MAX_LOG_MAX_SIZE_MB}",
            )
        if not 0 <= self.backup_count <= MAX_LOG_BACKUP_COUNT:
            raise ValidationError(
                f"backup_count must be between 0 and {MAX_LOG_BACKUP_COUNT}",
                field="backup_count",
                value=self.backup_count,
                expected=f"0-{MAX_LOG_BACKUP_COUNT}",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogRotationConfig":
        return cls(
            enabled=data.get("enabled", DEFAULT_LOG_ROTATION_ENABLED),
            max_size_mb=data.get("max_size_mb", DEFAULT_LOG_MAX_SIZE_MB),
            backup_count=data.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "max_size_mb": self.max_size_mb,
            "backup_count": self.backup_count,
        }

    def get_max_bytes(self) -> int:
        """Get maximum log file size in bytes."""
        return self.max_size_mb * 1024 * 1024


@dataclass
class MonitorConfig:
    """Activity monitor configuration.

    Attributes:
        enable_realtime_monitoring: Run the periodic analysis timer.
        enable_context_learning: Run the periodic learning timer.
        analysis_interval_seconds: Seconds between periodic analyses.
        learning_interval_seconds: Seconds between learning passes.
        max_events: Event store capacity; oldest events are evicted first.
        analysis_window: Number of recent events in a periodic analysis.
        data_dir: Directory for context snapshots and reports.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        triggers: Immediate-analysis trigger rules.
        providers: Model provider chain.
        models: Query purpose to model identifier mapping.
        log_rotation: Log file rotation configuration.
    """

    enable_realtime_monitoring: bool = True
    enable_context_learning: bool = True
    analysis_interval_seconds: float = DEFAULT_ANALYSIS_INTERVAL_SECONDS
    learning_interval_seconds: float = DEFAULT_LEARNING_INTERVAL_SECONDS
    max_events: int = DEFAULT_MAX_EVENTS
    analysis_window: int = DEFAULT_ANALYSIS_WINDOW
    data_dir: str = DEFAULT_DATA_DIR
    log_level: str = LOG_LEVEL_INFO
    triggers: TriggerConfig = field(default_factory=TriggerConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    models: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MODELS))
    log_rotation: LogRotationConfig = field(default_factory=LogRotationConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValidationError: If any configuration value is invalid.
        """
        if self.max_events < 1:
            raise ValidationError(
                "max_events must be at least 1",
                field="max_events",
                value=self.max_events,
                expected=">= 1",
            )
        if self.analysis_window < 1:
            raise ValidationError(
                "analysis_window must be at least 1",
                field="analysis_window",
                value=self.analysis_window,
                expected=">= 1",
            )
        for name in ("analysis_interval_seconds", "learning_interval_seconds"):
            value = getattr(self, name)
            if value < MIN_INTERVAL_SECONDS:
                raise ValidationError(
                    f"{name} must be at least {MIN_INTERVAL_SECONDS}",
                    field=name,
                    value=value,
                    expected=f">= {MIN_INTERVAL_SECONDS}",
                )
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValidationError(
                f"Invalid log level: {self.log_level}",
                field="log_level",
                value=self.log_level,
                expected=f"one of {VALID_LOG_LEVELS}",
            )
        unknown = sorted(set(self.models) - set(VALID_PURPOSES))
        if unknown:
            raise ValidationError(
                f"Unknown query purpose(s): {', '.join(unknown)}",
                field="models",
                value=unknown,
                expected=f"keys from {VALID_PURPOSES}",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitorConfig":
        """Create config from dictionary.

        Raises:
            ValidationError: If configuration values are invalid.
        """
        models = dict(DEFAULT_MODELS)
        models.update(data.get("models", {}))
        return cls(
            enable_realtime_monitoring=data.get("enable_realtime_monitoring", True),
            enable_context_learning=data.get("enable_context_learning", True),
            analysis_interval_seconds=data.get(
                "analysis_interval_seconds", DEFAULT_ANALYSIS_INTERVAL_SECONDS
            ),
            learning_interval_seconds=data.get(
                "learning_interval_seconds", DEFAULT_LEARNING_INTERVAL_SECONDS
            ),
            max_events=data.get("max_events", DEFAULT_MAX_EVENTS),
            analysis_window=data.get("analysis_window", DEFAULT_ANALYSIS_WINDOW),
            data_dir=data.get("data_dir", DEFAULT_DATA_DIR),
            log_level=data.get("log_level", LOG_LEVEL_INFO),
            triggers=TriggerConfig.from_dict(data.get("triggers", {})),
            providers=ProvidersConfig.from_dict(data.get("providers", {})),
            models=models,
            log_rotation=LogRotationConfig.from_dict(data.get("log_rotation", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enable_realtime_monitoring": self.enable_realtime_monitoring,
            "enable_context_learning": self.enable_context_learning,
            "analysis_interval_seconds": self.analysis_interval_seconds,
            "learning_interval_seconds": self.learning_interval_seconds,
            "max_events": self.max_events,
            "analysis_window": self.analysis_window,
            "data_dir": self.data_dir,
            "log_level": self.log_level,
            "triggers": self.triggers.to_dict(),
            "providers": self.providers.to_dict(),
            "models": dict(self.models),
            "log_rotation": self.log_rotation.to_dict(),
        }


def load_config(config_file: Path) -> MonitorConfig:
    """Load monitor configuration from a YAML file.

    Reads the 'monitor' key of the file.

    Note:
        Returns defaults on error rather than raising, so a broken config
        file never prevents the monitor from starting.
    """
    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using defaults")
        return MonitorConfig()

    try:
        with open(config_file, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValidationError(
                "Config file must contain a mapping",
                field=CONFIG_ROOT_KEY,
                value=type(config_data).__name__,
                expected="mapping",
            )
        config = MonitorConfig.from_dict(config_data.get(CONFIG_ROOT_KEY) or {})
        logger.debug(
            f"Loaded monitor config: max_events={config.max_events}, "
            f"remotes={[r.name for r in config.providers.remotes]}"
        )
        return config

    except (ValidationError, TypeError, AttributeError) as e:
        logger.warning(f"Invalid monitor config in {config_file}: {e}")
        logger.info("Using default configuration")
        return MonitorConfig()

    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config YAML from {config_file}: {e}")
        return MonitorConfig()

    except OSError as e:
        logger.warning(f"Failed to read config from {config_file}: {e}")
        return MonitorConfig()


def save_config(config_file: Path, config: MonitorConfig) -> None:
    """Write monitor configuration to a YAML file, preserving other top-level keys."""
    existing: dict[str, Any] = {}
    if config_file.exists():
        with open(config_file, encoding="utf-8") as f:
            existing = yaml.safe_load(f) or {}

    existing[CONFIG_ROOT_KEY] = config.to_dict()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.safe_dump(existing, f, default_flow_style=False, sort_keys=False)
