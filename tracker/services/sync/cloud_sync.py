"""
Location Sync

Uploads the pending location queue to the backend.

Robustness Guarantees:
1. Only remove samples from the queue AFTER the backend accepted them
2. Upload oldest-first and stop at the first retryable failure, so order is kept
3. Failed uploads leave samples queued for the next opportunity
4. A sample the backend rejects outright (4xx) is dropped, not retried
5. Samples queued while a sync is running are never dropped by it
6. At most one sync runs at a time; a concurrent call returns immediately

Delivery is at-least-once: a sample accepted by the backend whose removal
from the queue did not persist will be sent again.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from tracker.common.exceptions import BackendError, StorageError
from tracker.common.logging_setup import get_service_logger
from tracker.services.location.repository import LocationRepository

from .backend_client import BackendClient

logger = get_service_logger("sync.cloud_sync")


@dataclass
class SyncResult:
    """Result of a sync attempt."""
    success: bool
    uploaded: int = 0
    remaining: int = 0
    rejected: int = 0  # Dropped after a non-retryable backend error
    skipped: bool = False  # True if another sync was already running
    error: str | None = None


class LocationSync:
    """
    Syncs pending locations to the backend.

    With no backend client configured, sync only logs what it would upload
    and leaves the queue untouched.
    """

    def __init__(
        self,
        repository: LocationRepository,
        client: BackendClient | None = None,
    ):
        self.repository = repository
        self.client = client

        self._in_flight = False

        self._sync_count = 0
        self._error_count = 0
        self._rejected_count = 0
        self._skipped_count = 0
        self._last_sync: datetime | None = None
        self._last_successful_sync: datetime | None = None
        self._consecutive_failures = 0

    @property
    def in_progress(self) -> bool:
        return self._in_flight

    async def sync_pending(self) -> SyncResult:
        """
        Upload pending locations, oldest first.

        Returns:
            SyncResult; success is False if any sample could not be delivered
        """
        if self._in_flight:
            logger.debug("Sync already in progress")
            self._skipped_count += 1
            return SyncResult(success=True, skipped=True)

        self._in_flight = True
        try:
            return await self._sync()
        finally:
            self._in_flight = False

    async def _sync(self) -> SyncResult:
        pending = self.repository.get_pending_locations()
        self._last_sync = datetime.now(timezone.utc)

        if not pending:
            logger.debug("No pending locations to sync")
            return SyncResult(success=True)

        if self.client is None:
            logger.debug(f"No backend configured, {len(pending)} locations stay queued")
            for sample in pending:
                logger.debug(
                    f"Would sync: {sample.source.value} - ({sample.latitude}, {sample.longitude})"
                )
            return SyncResult(success=True, remaining=len(pending))

        logger.debug(f"Syncing {len(pending)} locations with backend")

        delivered = []
        rejected = []
        error = None
        for sample in pending:
            try:
                await self.client.update_gps_location(sample)
            except BackendError as e:
                if e.recoverable:
                    error = e.message
                    break
                logger.error(
                    f"Backend rejected location {sample.timestamp}, dropping it: {e.message}",
                    extra={"status_code": e.status_code},
                )
                rejected.append(sample)
                continue
            delivered.append(sample)

        done = delivered + rejected
        if done:
            try:
                self.repository.remove_pending(done)
            except StorageError as e:
                # Samples stay queued and are sent again next time
                logger.error(f"Processed {len(done)} locations but could not dequeue them: {e}")
                error = error or e.message
            self._sync_count += len(delivered)
            self._rejected_count += len(rejected)

        remaining = len(pending) - len(done)

        if error is None:
            self._consecutive_failures = 0
            self._last_successful_sync = datetime.now(timezone.utc)
            logger.info(f"Synced {len(delivered)} locations")
            return SyncResult(success=True, uploaded=len(delivered), rejected=len(rejected))

        self._error_count += 1
        self._consecutive_failures += 1
        logger.warning(
            f"Location upload failed ({error}), {remaining} locations kept for retry",
            extra={"consecutive_failures": self._consecutive_failures},
        )
        return SyncResult(
            success=False,
            uploaded=len(delivered),
            remaining=remaining,
            rejected=len(rejected),
            error=error,
        )

    def get_stats(self) -> dict:
        """Get sync statistics"""
        return {
            "backend_configured": self.client is not None,
            "sync_count": self._sync_count,
            "error_count": self._error_count,
            "rejected_count": self._rejected_count,
            "skipped_count": self._skipped_count,
            "consecutive_failures": self._consecutive_failures,
            "in_progress": self.in_progress,
            "last_sync": self._last_sync.isoformat() if self._last_sync else None,
            "last_successful_sync": (
                self._last_successful_sync.isoformat() if self._last_successful_sync else None
            ),
            "pending_count": self.repository.get_pending_count(),
        }
