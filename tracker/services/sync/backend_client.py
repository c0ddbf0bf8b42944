"""
Backend API Client

Calls the two SmallBasket backend endpoints used by location tracking:
- POST location/update-gps        - report the user's current position
- POST user/connectivity/update   - report connectivity / permission state
                                    (the backend derives reachability)

Reuses a single HTTP client and retries transient failures with backoff.
"""

import asyncio
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tracker.common.config import BackendSettings
from tracker.common.exceptions import BackendError
from tracker.common.logging_setup import get_service_logger
from tracker.services.location.models import LocationSample

logger = get_service_logger("sync.backend_client")


# ============================================
# SCHEMAS
# ============================================

class UpdateGPSLocationRequest(BaseModel):
    """Update GPS location request."""
    model_config = ConfigDict(populate_by_name=True)

    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    fast_mode: bool = Field(True, alias="fastMode", description="Skip full area recomputation")


class LocationUpdateData(BaseModel):
    """Areas matched for the reported position."""
    primary_area: Optional[str] = None
    all_matching_areas: Optional[list[str]] = None
    is_on_edge: Optional[bool] = None
    latitude: float
    longitude: float


class UpdateGPSLocationResponse(BaseModel):
    """Update GPS location response."""
    success: bool
    message: str = ""
    fast_mode: bool = False
    data: Optional[LocationUpdateData] = None


class ConnectivityUpdateRequest(BaseModel):
    """Connectivity status update request."""
    is_connected: bool
    location_permission_granted: bool


class SuccessResponse(BaseModel):
    """Generic success response."""
    success: bool
    message: str = ""
    data: Optional[dict[str, Any]] = None


class BackendClient:
    """Async client for the SmallBasket backend"""

    def __init__(
        self,
        settings: BackendSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.base_url = settings.url.rstrip("/") + "/"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.settings.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.auth_token:
            headers["Authorization"] = f"Bearer {self.settings.auth_token}"
        return headers

    async def update_gps_location(self, sample: LocationSample) -> UpdateGPSLocationResponse:
        """
        Report a sample's position.

        Raises:
            BackendError: After all retries failed, or on a non-retryable response
        """
        request = UpdateGPSLocationRequest(
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy=sample.accuracy,
            fast_mode=self.settings.fast_mode,
        )
        body = await self._post_with_retry(
            "location/update-gps",
            request.model_dump(by_alias=True),
        )

        try:
            response = UpdateGPSLocationResponse.model_validate(body)
        except ValidationError as e:
            raise BackendError(f"Unexpected response: {e}", operation="update_gps") from e

        if response.data:
            logger.debug(
                f"Location synced: primary area={response.data.primary_area}, "
                f"all areas={response.data.all_matching_areas}, "
                f"on edge={response.data.is_on_edge}"
            )
        return response

    async def update_connectivity(
        self,
        is_connected: bool,
        location_permission_granted: bool,
    ) -> SuccessResponse:
        """
        Report connectivity state. Not retried: the next periodic update
        supersedes a lost one.

        Raises:
            BackendError: On HTTP or transport failure
        """
        request = ConnectivityUpdateRequest(
            is_connected=is_connected,
            location_permission_granted=location_permission_granted,
        )
        body = await self._post_once("user/connectivity/update", request.model_dump())

        try:
            return SuccessResponse.model_validate(body)
        except ValidationError as e:
            raise BackendError(f"Unexpected response: {e}", operation="update_connectivity") from e

    async def _post_once(self, path: str, payload: dict) -> Any:
        client = await self._get_client()
        try:
            response = await client.post(path, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            try:
                error_body = e.response.text
            except Exception:
                error_body = "Could not read response body"
            raise BackendError(
                f"HTTP {e.response.status_code} from {path}: {error_body}",
                operation=path,
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise BackendError(f"Timeout calling {path}", operation=path) from e
        except httpx.HTTPError as e:
            raise BackendError(f"{e.__class__.__name__}: {e}", operation=path) from e
        except ValueError as e:
            raise BackendError(f"Invalid JSON from {path}", operation=path) from e

    async def _post_with_retry(self, path: str, payload: dict) -> Any:
        backoff = list(self.settings.retry_backoff)
        attempts = len(backoff) + 1
        last_error: BackendError | None = None

        for attempt, delay in enumerate(backoff + [0]):
            try:
                return await self._post_once(path, payload)
            except BackendError as e:
                last_error = e
                logger.warning(
                    f"[ERROR] {path} failed (attempt {attempt + 1}/{attempts}): {e.message}"
                )
                if not e.recoverable:
                    break

            if delay > 0:
                logger.debug(f"Retrying in {delay:.0f}s...")
                await asyncio.sleep(delay)

        logger.error(f"[ERROR] {path} failed, giving up. Last error: {last_error.message}")
        raise last_error
