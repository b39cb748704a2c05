"""
Error types raised at the external service and persistence boundaries.

Service clients raise ServiceTransientError or ServicePermanentError; the
orchestrator retries the former internally and turns both into recorded
attempts. Gate rejections are never exceptions.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for failures reported by an external service call."""

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.service}: {self.message} (HTTP {self.status_code})"
        return f"{self.service}: {self.message}"


class ServiceTransientError(ServiceError):
    """Network errors, timeouts, rate limits and 5xx. Eligible for retry."""


class ServicePermanentError(ServiceError):
    """4xx responses and malformed payloads. Never retried."""


class AssetStoreError(Exception):
    """Raised when the asset store cannot read or persist reference data."""


def classify_status(status_code: int) -> Optional[type[ServiceError]]:
    """Map an HTTP status code to the error class it should raise, if any."""
    if status_code < 400:
        return None
    if status_code == 429 or status_code >= 500:
        return ServiceTransientError
    return ServicePermanentError
