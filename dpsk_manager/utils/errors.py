"""
Exception hierarchy for the DPSK manager

Usage and validation errors are raised before any request reaches the
controller. Transport errors carry the underlying cause.
"""

from typing import Iterable, List, Optional


class DpskManagerError(Exception):
    """Base class for every error raised by this package."""


# ============================================================================
# Usage errors - bad command line input
# ============================================================================

class UsageError(DpskManagerError):
    """Missing or invalid input. Reported together with usage text."""

    def __init__(self, message: str, usage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.usage = usage

    def with_usage(self, usage: str) -> "UsageError":
        """Attach usage text if none is set yet and return self."""
        if self.usage is None:
            self.usage = usage
        return self


class UnknownField(UsageError):
    def __init__(self, field: str):
        super().__init__(f"unknown field: {field}")
        self.field = field


class ReadOnlyField(UsageError):
    def __init__(self, field: str):
        super().__init__(f"field {field} is assigned by the controller and cannot be set")
        self.field = field


class NoFiltersSpecified(UsageError):
    def __init__(self):
        super().__init__("no filters specified")


class NoPropertiesSpecified(UsageError):
    def __init__(self):
        super().__init__("no properties specified")


class DuplicateFilter(UsageError):
    def __init__(self, field: str):
        super().__init__(f"duplicate property filter: {field}")
        self.field = field


class MissingSetSeparator(UsageError):
    def __init__(self):
        super().__init__("set directive not found")


class InvalidCommand(UsageError):
    def __init__(self, message: str, commands: Iterable[tuple] = ()):
        lines = [f"    {name}: {description}" for name, description in commands]
        usage = "available commands:\n" + "\n".join(lines) if lines else None
        super().__init__(message, usage)


# ============================================================================
# Validation errors - malformed typed values
# ============================================================================

class ValidationError(DpskManagerError, ValueError):
    """A raw value could not be parsed or normalized."""


class InvalidPattern(ValidationError):
    def __init__(self, field: str, pattern: str, detail: str):
        super().__init__(f"failed to compile regex pattern {pattern!r} for {field}: {detail}")
        self.field = field
        self.pattern = pattern
        self.detail = detail


class InvalidTimestamp(ValidationError):
    def __init__(self, raw: str, field: Optional[str] = None):
        label = f"{field} timestamp" if field else "timestamp"
        super().__init__(
            f"invalid {label} '{raw}': expected Unix timestamp, RFC3339 or YYYY-MM-DD HH:MM:SS"
        )
        self.raw = raw
        self.field = field


class InvalidMAC(ValidationError):
    def __init__(self, raw: str, field: Optional[str] = None):
        super().__init__(f"invalid {field or 'mac'} address: {raw}")
        self.raw = raw
        self.field = field


class InvalidValue(ValidationError):
    def __init__(self, field: str, raw: str, detail: str):
        super().__init__(f"invalid {field} value '{raw}': {detail}")
        self.field = field
        self.raw = raw


# ============================================================================
# Remote errors
# ============================================================================

class TransportError(DpskManagerError):
    """A request to the controller failed or returned an unusable response."""


class LoginError(TransportError):
    """The controller rejected the login."""


class UpdateBatchError(TransportError):
    """An update failed part way through a modify batch.

    Updates issued before the failing record are not rolled back.
    """

    def __init__(self, record_id: int, updated_ids: List[int], cause: Exception):
        done = ", ".join(str(i) for i in updated_ids) or "none"
        super().__init__(
            f"error modifying DPSK {record_id}: {cause} (already updated: {done})"
        )
        self.record_id = record_id
        self.updated_ids = list(updated_ids)
        self.cause = cause


class NotFoundError(DpskManagerError):
    """A record the controller just created is missing from the next listing."""


class OutputError(DpskManagerError):
    """A local output file could not be written."""


class UnsupportedFieldType(DpskManagerError):
    def __init__(self, field: str, value: object):
        super().__init__(f"unsupported value type {type(value).__name__} for field {field}")
        self.field = field
