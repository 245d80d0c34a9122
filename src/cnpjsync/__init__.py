"""Central exports for the ``cnpjsync`` package."""

from .errors import (
    CompanyLookupError,
    FailureKind,
    InvalidIdentifier,
    NotFound,
    RequestRejected,
    ResolutionFailed,
    SellerNotFound,
    Unauthorized,
    Unavailable,
    classify_failure,
)
from .providers import Address, BrasilApiProvider, CnpjwsProvider, CompanyRecord
from .rate_limiter import RateLimiter
from .registry_id import format_registry_id, is_valid_registry_id, validate_registry_id
from .resolver import LookupResolver
from .store import ADDRESS_PENDING, InMemoryRecordStore, RecordStore, StoredSeller
from .sync import (
    BulkSynchronizer,
    SellerUpdater,
    SyncFailure,
    SyncReport,
    format_address,
    sync_all,
    sync_remaining,
)
from .utils.logging_setup import setup_logger

__all__ = [
    "ADDRESS_PENDING",
    "Address",
    "BrasilApiProvider",
    "BulkSynchronizer",
    "CnpjwsProvider",
    "CompanyLookupError",
    "CompanyRecord",
    "FailureKind",
    "InMemoryRecordStore",
    "InvalidIdentifier",
    "LookupResolver",
    "NotFound",
    "RateLimiter",
    "RecordStore",
    "RequestRejected",
    "ResolutionFailed",
    "SellerNotFound",
    "SellerUpdater",
    "StoredSeller",
    "SyncFailure",
    "SyncReport",
    "Unauthorized",
    "Unavailable",
    "classify_failure",
    "format_address",
    "format_registry_id",
    "is_valid_registry_id",
    "setup_logger",
    "sync_all",
    "sync_remaining",
    "validate_registry_id",
]
