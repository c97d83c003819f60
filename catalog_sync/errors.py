#===========================================================================
# catalog_sync/errors.py
# Error taxonomy for the catalog sync.
#   UpstreamError      → source catalog unreachable/malformed (aborts a tree collection)
#   TargetWriteError   → one Woo create/update failed (isolated to its item/row)
#   ValidationError    → malformed input, rejected before any network call
#   ConsistencyWarning → plan-time anomaly, logged and degraded, never raised
#===========================================================================
from __future__ import annotations

from typing import Any, Dict, Optional


class CatalogSyncError(Exception):
    """Base class for errors raised by the sync core."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": False, "error": self.message}
        if self.details:
            out["details"] = self.details
        return out


class UpstreamError(CatalogSyncError):
    """The source catalog failed (network, non-2xx or malformed body)."""

    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.status = status
        super().__init__(message, details=details)


class TargetWriteError(CatalogSyncError):
    """A single write against the target store failed."""

    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message, details={"status": status} if status is not None else None)


class ValidationError(CatalogSyncError):
    status_code = 400


class ConsistencyWarning(UserWarning):
    """Plan-time anomaly such as a node whose parent never resolved."""
