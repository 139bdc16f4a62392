"""Run-level failures raised by the allocation engine."""

from __future__ import annotations


class AllocationError(Exception):
    """Base exception for allocation engine failures."""


class ConfigurationError(AllocationError):
    """Raised before computation when engine configuration or input shape is unusable."""


class CancellationError(AllocationError):
    """Raised when the caller aborts a run; no partial result is produced."""


class InvariantViolation(AllocationError):
    """Raised when an internal allocation invariant breaks. Indicates a bug."""
