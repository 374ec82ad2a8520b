"""Date and time parsing and formatting.

Incoming values are tried against four tiers in order:

1. the configured epoch unit, when the format is an epoch keyword,
2. an epoch in milliseconds, for producers that always send numbers,
3. the configured strftime pattern,
4. ISO 8601.

Only when every tier fails is the value rejected.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from typed_wire.errors import ConversionConfigError

logger = logging.getLogger(__name__)

DEFAULT_DATE_PATTERN = "%Y-%m-%dT%H:%M:%S.%f%z"
DEFAULT_ZONE = "UTC"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Epoch unit keywords accepted in place of a pattern, with their aliases
EPOCH_UNITS = {
    "millis": "millis",
    "time": "millis",
    "long": "millis",
    "unix": "unix",
    "nanos": "nanos",
}

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
# Epoch counts with more digits are out of range for every unit
_MAX_EPOCH_DIGITS = 24


def resolve_zone(name: str) -> tzinfo:
    """Return the tzinfo for an IANA zone name."""
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConversionConfigError(f"Unknown time zone '{name}'") from e


@dataclass(frozen=True)
class DateFormatConfig:
    """How dates travel on the wire: a strftime pattern or an epoch unit."""

    pattern: str = DEFAULT_DATE_PATTERN
    zone: str = DEFAULT_ZONE
    tz: tzinfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.pattern:
            raise ConversionConfigError("Date format must not be empty")
        object.__setattr__(self, "tz", resolve_zone(self.zone))

    @property
    def epoch_unit(self) -> str | None:
        """Return the epoch unit (millis, unix or nanos) if the pattern is a keyword."""
        return EPOCH_UNITS.get(self.pattern.lower())

    def parse(self, value: Any) -> datetime:
        """Parse a wire value into an aware datetime.

        Raises:
            ValueError: if no tier can make sense of the value.
        """
        if isinstance(value, bool):
            raise ValueError(f"Cannot parse {value!r} as a date")
        unit = self.epoch_unit
        epoch_value = _as_integer(value)
        if unit is not None and epoch_value is not None:
            try:
                return from_epoch(epoch_value, unit)
            except OverflowError:
                logger.debug("Epoch value out of range for unit %s", unit)
        if epoch_value is not None:
            try:
                return from_epoch(epoch_value, "millis")
            except OverflowError:
                logger.debug("Epoch value out of range for milliseconds")
        if not isinstance(value, str):
            raise ValueError(f"Cannot parse this {type(value).__name__} as a date")
        if unit is None:
            try:
                return self._localize(datetime.strptime(value, self.pattern))
            except ValueError:
                pass
        try:
            return self._localize(datetime.fromisoformat(value))
        except ValueError:
            pass
        raise ValueError(f"Cannot parse '{value}' as a date (format '{self.pattern}')")

    def format(self, value: date) -> Any:
        """Format a date for the wire: an epoch integer or a pattern string."""
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        value = self._localize(value)
        unit = self.epoch_unit
        if unit is not None:
            return to_epoch(value, unit)
        return value.astimezone(self.tz).strftime(self.pattern)

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value


def _as_integer(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            return None
        if value.is_zero():
            return 0
        if value.adjusted() >= _MAX_EPOCH_DIGITS:
            return None
        return int(value)
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER_RE.match(value.strip()):
        text = value.strip()
        if len(text.lstrip("+-").lstrip("0")) > _MAX_EPOCH_DIGITS:
            return None
        return int(text)
    return None


def from_epoch(value: int, unit: str) -> datetime:
    """Convert an epoch count in ``unit`` to an aware UTC datetime."""
    if unit == "unix":
        delta = timedelta(seconds=value)
    elif unit == "nanos":
        delta = timedelta(microseconds=value // 1000)
    else:
        delta = timedelta(milliseconds=value)
    return EPOCH + delta


def to_epoch(value: datetime, unit: str) -> int:
    """Convert an aware datetime to an epoch count in ``unit``."""
    micros = (value - EPOCH) // timedelta(microseconds=1)
    if unit == "unix":
        return micros // 1_000_000
    if unit == "nanos":
        return micros * 1000
    return micros // 1000
