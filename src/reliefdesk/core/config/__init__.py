"""Configuration loading and validation."""

from .models import (
    # Enums
    CapitalSourceStatus,
    CapitalSourceType,
    CriterionType,
    OpportunityStatus,
    RunStatus,
    # Config models
    ApiConfig,
    AppConfig,
    ClientConfig,
    DatabaseConfig,
    LoggingConfig,
    SchedulerConfig,
)
from .loader import ConfigError, load_app_config, validate_app_config_file

__all__ = [
    # Enums
    "CapitalSourceStatus",
    "CapitalSourceType",
    "CriterionType",
    "OpportunityStatus",
    "RunStatus",
    # Config models
    "ApiConfig",
    "AppConfig",
    "ClientConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "SchedulerConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_app_config_file",
]
