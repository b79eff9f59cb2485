"""Runtime settings for op-monitor.

Uses Pydantic Settings so deployment-specific values can be overridden via
environment variables with the OPMON_ prefix without touching the config
file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from op_monitor.constants import DEFAULT_CONFIG_FILE


class RuntimeSettings(BaseSettings):
    """Process-level overrides applied on top of the loaded MonitorConfig."""

    model_config = SettingsConfigDict(env_prefix="OPMON_")

    config_file: str = Field(
        default=DEFAULT_CONFIG_FILE,
        description="Path to the YAML configuration file",
    )
    data_dir: str | None = Field(
        default=None,
        description="Overrides monitor.data_dir from the config file",
    )
    log_level: str | None = Field(
        default=None,
        description="Overrides monitor.log_level from the config file",
    )
    log_file: str | None = Field(
        default=None,
        description="Write logs to this file instead of stderr",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Overrides the local provider base URL",
    )
