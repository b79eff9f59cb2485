"""Constants for the activity monitor.

Centralizes the magic strings and numbers used across the package so that
configuration defaults, notification topics and provider names live in one
place.

Constants are organized by domain:
- Query purposes
- Notification topics
- Monitor defaults
- Trigger policy defaults
- Provider defaults
- Persistence layout
- Logging
"""

from datetime import UTC, datetime
from typing import Final

# =============================================================================
# Query Purposes
# =============================================================================

PURPOSE_ANALYSIS: Final[str] = "analysis"
PURPOSE_REPORTING: Final[str] = "reporting"
PURPOSE_SUGGESTIONS: Final[str] = "suggestions"
PURPOSE_CONTEXTUAL: Final[str] = "contextual"
VALID_PURPOSES: Final[tuple[str, ...]] = (
    PURPOSE_ANALYSIS,
    PURPOSE_REPORTING,
    PURPOSE_SUGGESTIONS,
    PURPOSE_CONTEXTUAL,
)

# Purposes that never go to the local provider (real-time path uses hosted models)
REMOTE_ONLY_PURPOSES: Final[frozenset[str]] = frozenset({PURPOSE_CONTEXTUAL})

# =============================================================================
# Notification Topics
# =============================================================================

TOPIC_ACTIVITY: Final[str] = "activity"
TOPIC_ANALYSIS: Final[str] = "analysis"
TOPIC_PERIODIC_ANALYSIS: Final[str] = "periodic-analysis"
TOPIC_STARTED: Final[str] = "started"
TOPIC_STOPPED: Final[str] = "stopped"
VALID_TOPICS: Final[tuple[str, ...]] = (
    TOPIC_ACTIVITY,
    TOPIC_ANALYSIS,
    TOPIC_PERIODIC_ANALYSIS,
    TOPIC_STARTED,
    TOPIC_STOPPED,
)

# =============================================================================
# Monitor Defaults
# =============================================================================

DEFAULT_MAX_EVENTS: Final[int] = 10000
DEFAULT_ANALYSIS_INTERVAL_SECONDS: Final[float] = 30.0
DEFAULT_LEARNING_INTERVAL_SECONDS: Final[float] = 60.0
DEFAULT_ANALYSIS_WINDOW: Final[int] = 20
SUGGESTION_EVENT_WINDOW: Final[int] = 10
MIN_INTERVAL_SECONDS: Final[float] = 0.01

# Learning snapshot
TOP_ACTIONS_LIMIT: Final[int] = 5
# averageEventsPerDay is measured from this fixed reference, not first-seen time
LEARNING_EPOCH: Final[datetime] = datetime(2024, 1, 1, tzinfo=UTC)
SECONDS_PER_DAY: Final[int] = 24 * 60 * 60

# Digest / summary truncation
ACTIVITY_LOG_PAYLOAD_CHARS: Final[int] = 100
DIGEST_PAYLOAD_CHARS: Final[int] = 200
UNPARSED_SUMMARY_CHARS: Final[int] = 500
UNPARSED_ELLIPSIS: Final[str] = "..."

# Report timeframes
DEFAULT_REPORT_TYPE: Final[str] = "comprehensive"
DEFAULT_REPORT_TIMEFRAME: Final[str] = "24h"
TIMEFRAME_PATTERN: Final[str] = r"^(\d+)([mhd])$"

# =============================================================================
# Trigger Policy Defaults
# =============================================================================

DEFAULT_CRITICAL_SOURCES: Final[tuple[str, ...]] = ("c2", "phishing")
DEFAULT_CRITICAL_ACTIONS: Final[tuple[str, ...]] = (
    "payload_deployed",
    "credential_harvested",
    "session_established",
)

# =============================================================================
# Providers
# =============================================================================

PROVIDER_OLLAMA: Final[str] = "ollama"
PROVIDER_GROQ: Final[str] = "groq"
PROVIDER_TOGETHER: Final[str] = "together"
PROVIDER_PERPLEXITY: Final[str] = "perplexity"

DEFAULT_OLLAMA_URL: Final[str] = "http://localhost:11434"
DEFAULT_PROVIDER_TIMEOUT: Final[float] = 60.0
DEFAULT_REMOTE_MAX_TOKENS: Final[int] = 2000
DEFAULT_REMOTE_TEMPERATURE: Final[float] = 0.7

DEFAULT_MODELS: Final[dict[str, str]] = {
    PURPOSE_ANALYSIS: "llama3.2:latest",
    PURPOSE_REPORTING: "mistral:7b",
    PURPOSE_SUGGESTIONS: "codellama:7b",
    PURPOSE_CONTEXTUAL: PROVIDER_GROQ,
}

DEFAULT_REMOTE_PROVIDERS: Final[tuple[dict[str, str], ...]] = (
    {
        "name": PROVIDER_GROQ,
        "base_url": "https://api.groq.com/openai/v1",
        "api_key": "${GROQ_API_KEY}",
        "model": "llama-3.1-8b-instant",
    },
    {
        "name": PROVIDER_TOGETHER,
        "base_url": "https://api.together.xyz/v1",
        "api_key": "${TOGETHER_API_KEY}",
        "model": "meta-llama/Llama-3.2-3B-Instruct-Turbo",
    },
    {
        "name": PROVIDER_PERPLEXITY,
        "base_url": "https://api.perplexity.ai",
        "api_key": "${PERPLEXITY_API_KEY}",
        "model": "sonar",
    },
)

# Keys like "your_groq_key_here" from sample .env files are not real keys
PLACEHOLDER_KEY_TEMPLATE: Final[str] = "your_{name}_key_here"

FALLBACK_REASON_NO_PROVIDERS: Final[str] = "No LLM providers available"

# =============================================================================
# Persistence
# =============================================================================

DEFAULT_DATA_DIR: Final[str] = "data"
CONTEXTS_FILENAME: Final[str] = "contexts.json"
REPORTS_DIRNAME: Final[str] = "reports"
DEFAULT_CONFIG_FILE: Final[str] = ".opmon/config.yaml"
CONFIG_ROOT_KEY: Final[str] = "monitor"

# =============================================================================
# Logging
# =============================================================================

LOGGER_NAME: Final[str] = "op_monitor"
LOG_LEVEL_DEBUG: Final[str] = "DEBUG"
LOG_LEVEL_INFO: Final[str] = "INFO"
LOG_LEVEL_WARNING: Final[str] = "WARNING"
LOG_LEVEL_ERROR: Final[str] = "ERROR"
VALID_LOG_LEVELS: Final[tuple[str, ...]] = (
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_INFO,
    LOG_LEVEL_WARNING,
    LOG_LEVEL_ERROR,
)
DEFAULT_LOG_ROTATION_ENABLED: Final[bool] = True
DEFAULT_LOG_MAX_SIZE_MB: Final[int] = 10
DEFAULT_LOG_BACKUP_COUNT: Final[int] = 3
MIN_LOG_MAX_SIZE_MB: Final[int] = 1
MAX_LOG_MAX_SIZE_MB: Final[int] = 100
MAX_LOG_BACKUP_COUNT: Final[int] = 10
