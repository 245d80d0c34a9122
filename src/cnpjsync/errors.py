"""Error taxonomy for registry lookups and the bulk failure classification."""

from __future__ import annotations

import re
from enum import Enum


class CompanyLookupError(Exception):
    """Base exception for registry lookup errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        registry_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.registry_id = registry_id
        self.status_code = status_code


class InvalidIdentifier(CompanyLookupError):
    """Raised locally, before any network call, for a malformed CNPJ."""

    kind = "invalid_identifier"


class NotFound(CompanyLookupError):
    """Raised when the upstream has no record (or no legal name) for a CNPJ."""

    kind = "not_found"


class Unavailable(CompanyLookupError):
    """Raised when the upstream is unreachable, throttling or answers garbage."""

    kind = "unavailable"

    def __init__(
        self,
        message: str,
        *,
        registry_id: str | None = None,
        status_code: int | None = None,
        transient: bool = True,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message, registry_id=registry_id, status_code=status_code)
        self.transient = transient
        self.rate_limited = rate_limited


class Unauthorized(CompanyLookupError):
    """Raised when credentials are missing or rejected (401/403)."""

    kind = "unauthorized"


class RequestRejected(CompanyLookupError):
    """Raised when the upstream rejects the request itself (400/422)."""

    kind = "request_rejected"


class ResolutionFailed(CompanyLookupError):
    """Both providers failed for the same CNPJ."""

    kind = "resolution_failed"

    def __init__(
        self,
        registry_id: str,
        primary_error: CompanyLookupError,
        fallback_error: CompanyLookupError,
    ) -> None:
        super().__init__(
            f"Could not resolve CNPJ {registry_id} with any provider "
            f"(primary: {primary_error}; fallback: {fallback_error})",
            registry_id=registry_id,
            status_code=fallback_error.status_code or primary_error.status_code,
        )
        self.primary_error = primary_error
        self.fallback_error = fallback_error

    @property
    def errors(self) -> tuple[CompanyLookupError, CompanyLookupError]:
        return (self.primary_error, self.fallback_error)


class SellerNotFound(NotFound):
    """Raised by record stores when a seller id does not exist."""


class FailureKind(str, Enum):
    INVALID_ID = "invalid_id"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    TRANSIENT = "transient"
    OTHER = "other"


_INVALID_ID_MESSAGE = re.compile(r"cnpj\s+(inv[aá]lido|invalid)|invalid\s+cnpj", re.IGNORECASE)

# Precedence when a ResolutionFailed carries two different kinds.
_KIND_PRECEDENCE = (
    FailureKind.NOT_FOUND,
    FailureKind.VALIDATION_ERROR,
    FailureKind.INVALID_ID,
    FailureKind.TRANSIENT,
)


def classify_failure(error: BaseException) -> FailureKind:
    """Map a terminal error of the lookup chain to a :class:`FailureKind`."""

    if isinstance(error, ResolutionFailed):
        kinds = {classify_failure(inner) for inner in error.errors}
        for kind in _KIND_PRECEDENCE:
            if kind in kinds:
                return kind
        return FailureKind.OTHER
    if isinstance(error, InvalidIdentifier):
        return FailureKind.INVALID_ID
    if isinstance(error, NotFound):
        return FailureKind.NOT_FOUND
    if isinstance(error, RequestRejected):
        if _INVALID_ID_MESSAGE.search(str(error)):
            return FailureKind.INVALID_ID
        return FailureKind.VALIDATION_ERROR
    if isinstance(error, Unavailable) and error.transient:
        return FailureKind.TRANSIENT
    if isinstance(error, CompanyLookupError):
        status = error.status_code
        if status == 404:
            return FailureKind.NOT_FOUND
        if status == 400:
            return FailureKind.VALIDATION_ERROR
    if _INVALID_ID_MESSAGE.search(str(error)):
        return FailureKind.INVALID_ID
    return FailureKind.OTHER


def is_retryable(error: BaseException) -> bool:
    """Return True for network resets, timeouts and explicit throttling."""

    if isinstance(error, ResolutionFailed):
        if any(isinstance(inner, NotFound) for inner in error.errors):
            return False
        return any(is_retryable(inner) for inner in error.errors)
    return isinstance(error, Unavailable) and error.transient


def is_credential_failure(error: BaseException) -> bool:
    """Return True when every provider in the chain rejected our credentials."""

    if isinstance(error, ResolutionFailed):
        return all(is_credential_failure(inner) for inner in error.errors)
    return isinstance(error, Unauthorized)


__all__ = [
    "CompanyLookupError",
    "FailureKind",
    "InvalidIdentifier",
    "NotFound",
    "RequestRejected",
    "ResolutionFailed",
    "SellerNotFound",
    "Unauthorized",
    "Unavailable",
    "classify_failure",
    "is_credential_failure",
    "is_retryable",
]
