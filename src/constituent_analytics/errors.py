"""
Error types raised by the analytics engine.

Hierarchy:
    AnalyticsError
    ├── NotFoundError
    │   ├── AccountNotFoundError
    │   └── ContactNotFoundError
    ├── ComputationError
    ├── NoDataError
    ├── InvalidParameterError
    └── CacheError

``NotFoundError`` is meant to reach the caller untouched so a boundary layer
can turn it into a "missing resource" response. Everything else that goes
wrong while computing a report surfaces as a ``ComputationError`` whose
message is safe to show to users; the original exception stays on
``__cause__``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base exception for the analytics engine."""

    def __init__(self, message: str, code: str = "ANALYTICS_ERROR", details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.details = details or {}
        self.message = message
        super().__init__(message)


class NotFoundError(AnalyticsError):
    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            f"{resource.capitalize()} not found",
            code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str):
        super().__init__("account", account_id)


class ContactNotFoundError(NotFoundError):
    def __init__(self, contact_id: str):
        super().__init__("contact", contact_id)


class ComputationError(AnalyticsError):
    """A report could not be produced. ``subject`` names what was requested."""

    def __init__(self, subject: str, details: Optional[Dict[str, Any]] = None):
        self.subject = subject
        super().__init__(f"Failed to retrieve {subject}", code="COMPUTATION_FAILED", details=details)


class NoDataError(AnalyticsError):
    def __init__(self, analysis: str):
        super().__init__(f"No data available for {analysis}", code="NO_DATA")


class InvalidParameterError(AnalyticsError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="INVALID_PARAMETER", details={"field": field})


class CacheError(AnalyticsError):
    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, code="CACHE_ERROR", details={"key": key})
