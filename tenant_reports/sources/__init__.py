from .base import (
    FetchResult,
    PartialDataWarning,
    RecordSource,
    SourceError,
    allow_list_filter,
    odata_quote,
    warn_partial,
)
from .devices import ManagedDeviceSource
from .history import DeletedDeviceSource
from .licenses import LicensedUserSource

__all__ = [
    "FetchResult",
    "PartialDataWarning",
    "RecordSource",
    "SourceError",
    "allow_list_filter",
    "odata_quote",
    "warn_partial",
    "ManagedDeviceSource",
    "DeletedDeviceSource",
    "LicensedUserSource",
]
