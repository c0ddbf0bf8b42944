"""
Common Utilities

Shared modules used across all services:
- state.py - File-based key-value store
- config.py - Configuration dataclasses
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Unique periodic work scheduling
- geo.py - Freshness and distance helpers
"""

from .state import KeyValueStore
from .config import (
    TrackerConfig,
    TrackingSettings,
    BackendSettings,
    ConnectivitySettings,
    ServerSettings,
    SimulatorSettings,
    ProviderType,
    load_tracker_config,
)
from .exceptions import (
    TrackerError,
    ConfigError,
    StorageError,
    LocationError,
    PermissionDeniedError,
    FixTimeoutError,
    TrackingUnavailableError,
    SyncError,
    BackendError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    set_log_level,
    LogContext,
    log_location_sample,
    log_work_result,
    log_motion_transition,
)
from .scheduler import (
    ScheduledLoop,
    WorkScheduler,
    PeriodicWork,
    WorkResult,
    WorkStatus,
    ExistingWorkPolicy,
)

__all__ = [
    # State
    "KeyValueStore",
    # Config
    "TrackerConfig",
    "TrackingSettings",
    "BackendSettings",
    "ConnectivitySettings",
    "ServerSettings",
    "SimulatorSettings",
    "ProviderType",
    "load_tracker_config",
    # Exceptions
    "TrackerError",
    "ConfigError",
    "StorageError",
    "LocationError",
    "PermissionDeniedError",
    "FixTimeoutError",
    "TrackingUnavailableError",
    "SyncError",
    "BackendError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "set_log_level",
    "LogContext",
    "log_location_sample",
    "log_work_result",
    "log_motion_transition",
    # Scheduling
    "ScheduledLoop",
    "WorkScheduler",
    "PeriodicWork",
    "WorkResult",
    "WorkStatus",
    "ExistingWorkPolicy",
]
