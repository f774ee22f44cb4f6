"""Custom exception hierarchy for parkwatch."""

from __future__ import annotations

from collections.abc import Sequence


class ParkwatchError(Exception):
    """Base exception for all parkwatch errors."""


class ParkwatchConfigError(ParkwatchError):
    """Invalid or missing configuration."""


class ParkwatchTransportError(ParkwatchError):
    """A single upstream attempt failed (network, non-2xx, timeout, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class UpstreamUnavailableError(ParkwatchTransportError):
    """Every mirror attempt was exhausted.

    Callers should treat this as a signal to fall back to locally stored
    data rather than as a fatal condition.  ``last_error`` holds the
    failure observed on the final attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        status_code = getattr(last_error, "status_code", None)
        endpoint = getattr(last_error, "endpoint", "")
        super().__init__(message, status_code=status_code, endpoint=endpoint)


class FacilityNotFoundError(ParkwatchError):
    """No facility exists for the requested identifier."""

    def __init__(self, facility_id: str, message: str | None = None) -> None:
        self.facility_id = facility_id
        super().__init__(message or f"Parking facility not found: {facility_id}")


class FacilityValidationError(ParkwatchError):
    """A creation or update payload was malformed."""

    def __init__(self, message: str, *, errors: Sequence[str] = ()) -> None:
        self.errors = list(errors)
        super().__init__(message)
