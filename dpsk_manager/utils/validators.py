"""
Value normalization for typed DPSK fields
Timestamps become epoch seconds, MAC addresses become lowercase colon form
"""

import re
from datetime import datetime
from typing import Optional

from .errors import InvalidMAC, InvalidTimestamp
from .schema import TypeClass, resolve


# Six octets with one consistent separator
MAC_PATTERN = re.compile(r'[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}')

INTEGER_PATTERN = re.compile(r"-?\d+")

# strptime reads at most six fractional digits
FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")

# Tried in order, first match wins
TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S%z",      # RFC3339, Z or numeric offset
    "%Y-%m-%dT%H:%M:%S.%f%z",   # RFC3339 with fractional seconds
    "%Y-%m-%d %H:%M:%S",        # local time
]


def validate_mac(mac: str) -> bool:
    """
    Validate MAC address format.

    Args:
        mac: MAC address string, colon or hyphen separated

    Returns:
        True if the address has six hex octets with a consistent separator
    """
    return MAC_PATTERN.fullmatch(mac) is not None


def normalize_mac(raw: str, field: Optional[str] = None) -> str:
    """Return the lowercase colon form of a MAC address or raise InvalidMAC."""
    if not validate_mac(raw):
        raise InvalidMAC(raw, field)
    return raw.replace("-", ":").lower()


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an RFC3339 or local date-time.

    The RFC3339 'T' and 'Z' may be lowercase, and fractional seconds
    beyond microseconds are dropped. Naive date-times are interpreted in
    local time, so timestamp() on the result gives the matching epoch.

    Raises:
        ValueError: no format matched
    """
    value = FRACTION_PATTERN.sub(r"\1", raw.strip().upper())

    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    raise ValueError(f"no timestamp format matched {raw!r}")


def normalize_timestamp(raw: str, field: Optional[str] = None) -> str:
    """Return epoch seconds as text or raise InvalidTimestamp."""
    value = raw.strip()
    if INTEGER_PATTERN.fullmatch(value):
        return str(int(value))

    try:
        parsed = parse_timestamp(value)
    except (ValueError, OverflowError, OSError):
        raise InvalidTimestamp(raw, field) from None
    return str(int(parsed.timestamp()))


def normalize_value(identifier: str, raw: str) -> str:
    """
    Normalize a raw value for the given field identifier.

    Args:
        identifier: Field identifier, must resolve in the schema
        raw: Value as typed by the user

    Returns:
        Normalized string ready for exact comparison or update

    Raises:
        UnknownField: identifier has no schema entry
        InvalidTimestamp / InvalidMAC: value does not parse for its type
    """
    spec = resolve(identifier)

    if spec.type_class is TypeClass.TIMESTAMP:
        return normalize_timestamp(raw, identifier)
    if spec.type_class is TypeClass.MAC:
        return normalize_mac(raw, identifier)
    # no additional rules for plain strings and integers yet
    return raw
