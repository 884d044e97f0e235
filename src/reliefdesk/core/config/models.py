"""
Pydantic configuration models for ReliefDesk.

These models provide type-safe configuration with validation for:
- Application settings
- Database and logging
- The matching scheduler
- The REST API server and the API client
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class OpportunityStatus(str, Enum):
    """Funding opportunity status. Only ACTIVE opportunities are matched."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


class CapitalSourceType(str, Enum):
    """Kinds of money in a client's capital stack."""

    FEMA = "FEMA"
    INSURANCE = "Insurance"
    GRANT = "Grant"


class CapitalSourceStatus(str, Enum):
    """Whether the funds are available yet."""

    CURRENT = "current"
    PROJECTED = "projected"


class CriterionType(str, Enum):
    """Eligibility criterion kinds understood by the matching engine."""

    ZIP_CODE = "zipCode"
    INCOME = "income"
    HOUSEHOLD_SIZE = "householdSize"
    DISASTER_EVENT = "disasterEvent"
    CUSTOM = "custom"


class RunStatus(str, Enum):
    """Matching run status."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# =============================================================================
# Scheduler Configuration
# =============================================================================


class SchedulerConfig(BaseModel):
    """Background matching scheduler settings."""

    enabled: bool = Field(
        default=True,
        description="Master scheduler enable/disable",
    )
    matching_interval_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="How often the matching engine runs",
    )
    run_on_start: bool = Field(
        default=True,
        description="Run matching once immediately when the scheduler starts",
    )
    lock_ttl_minutes: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Expiry of the overlap-protection lock",
    )


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite:///data/reliefdesk.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Connection pool size",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/reliefdesk.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def level_is_known(cls, v: str) -> str:
        """Reject levels the logging module does not know."""
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return upper


# =============================================================================
# API Server / Client Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """REST API server settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="CORS origins allowed to call the API",
    )
    expose_errors: bool = Field(
        default=False,
        description="Include exception text in 5xx problem responses",
    )


class ClientConfig(BaseModel):
    """API client settings used by the CLI."""

    base_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL of the ReliefDesk API",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for safe (GET) requests on transport errors",
    )
    user_id: int | None = Field(
        default=None,
        description="Acting user sent as X-User-Id on mutating calls",
    )


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    config_dir: Path = Field(
        default=Path("configs"),
        description="Configuration directory",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.data_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
