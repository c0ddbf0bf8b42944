"""
Custom Exception Classes for the Location Tracker

Hierarchical exception structure for error handling across services.
"""


class TrackerError(Exception):
    """Base exception for all tracker errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(TrackerError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(f"Config Error: {message}", recoverable)


class StorageError(TrackerError):
    """Local key-value store errors"""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(f"Storage Error: {message}", recoverable=True)


class LocationError(TrackerError):
    """Location provider errors"""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(f"Location Error: {message}", recoverable)


class PermissionDeniedError(LocationError):
    """Required platform permission is missing"""

    def __init__(self, permission: str):
        self.permission = permission
        super().__init__(f"Permission not granted: {permission}", recoverable=False)


class FixTimeoutError(LocationError):
    """Location fix was not obtained within the allotted time"""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"No fix within {timeout_s:.1f}s", recoverable=True)


class TrackingUnavailableError(TrackerError):
    """Tracking cannot be started"""

    def __init__(self, reason: str, recoverable: bool = False):
        self.reason = reason
        super().__init__(f"Tracking unavailable: {reason}", recoverable)


class SyncError(TrackerError):
    """Backend synchronization errors"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"Sync Error: {message}", recoverable=True)


class BackendError(SyncError):
    """Backend API call failed"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, operation)
        # 4xx other than 408/429 will not succeed on retry
        if status_code is not None and 400 <= status_code < 500:
            self.recoverable = status_code in (408, 429)

