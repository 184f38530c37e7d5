"""
Configuration schema (``workshop_config.schema``).

Frozen dataclasses describing one configuration set.  Values are validated
in ``__post_init__`` so an invalid set can never be constructed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///workshop.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    busy_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(
                f"database.max_overflow must be >= 0, got {self.max_overflow}"
            )
        if self.busy_timeout <= 0:
            raise ValueError(
                f"database.busy_timeout must be > 0, got {self.busy_timeout}"
            )


@dataclass(frozen=True)
class ReservationConfig:
    """
    transactional=True: create/approve and every decrement share one
    database transaction.  False: each step commits on its own and failures
    are undone with compensating writes.
    """

    transactional: bool = True


@dataclass(frozen=True)
class StatusHistoryConfig:
    """strict=True makes a failed history write roll back the status change."""

    strict: bool = False


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = 10
    max_limit: int = 100

    def __post_init__(self) -> None:
        if self.default_limit < 1:
            raise ValueError(
                f"pagination.default_limit must be >= 1, got {self.default_limit}"
            )
        if self.max_limit < self.default_limit:
            raise ValueError(
                "pagination.max_limit must be >= pagination.default_limit"
            )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {', '.join(_LOG_LEVELS)}, got {self.level}"
            )


@dataclass(frozen=True)
class WorkshopConfig:
    """Root of one configuration set."""

    name: str = "default"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    reservations: ReservationConfig = field(default_factory=ReservationConfig)
    status_history: StatusHistoryConfig = field(default_factory=StatusHistoryConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
