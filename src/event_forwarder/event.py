"""
Event record passed to output plugins.

An event is a dynamically-shaped mapping (strings, numbers, booleans, None,
nested mappings, sequences) plus a mandatory timestamp. Plugins never mutate
an event; they work on the deep copy returned by to_dict().
"""

import copy
import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

TIMESTAMP_FIELDS = ("timestamp", "@timestamp")

# %{name}, %{[a][b]} and %{+pattern}
_PLACEHOLDER_PATTERN = re.compile(r"%\{([^}]+)\}")
_REFERENCE_PATTERN = re.compile(r"\[([^\[\]]+)\]")

# Joda-style tokens supported in %{+pattern}, longest first
_JODA_TOKENS = [
    ("yyyy", "%Y"),
    ("YYYY", "%Y"),
    ("SSS", None),
    ("yy", "%y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("dd", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
    ("Z", "+0000"),
]


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an event timestamp into an aware UTC datetime.

    Accepts epoch seconds (int/float), datetime (naive values are UTC) and
    ISO-8601 strings (a trailing "Z" is allowed).

    Raises:
        ValueError: If the value cannot be interpreted as a point in time
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, datetime):
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError):
            raise ValueError(f"Timestamp out of range: {value!r}") from None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
        return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)
    raise ValueError(f"Invalid timestamp type: {type(value).__name__}")


def format_value(value: Any) -> str:
    """Render a field value for placeholder substitution."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return json.dumps(value, separators=(",", ":"), default=str)
    if isinstance(value, (list, tuple)):
        return ",".join(format_value(v) for v in value)
    return str(value)


def _joda_to_strftime(pattern: str, timestamp: datetime) -> str:
    out = []
    i = 0
    while i < len(pattern):
        for token, directive in _JODA_TOKENS:
            if pattern.startswith(token, i):
                if directive is None:
                    out.append(f"{timestamp.microsecond // 1000:03d}")
                else:
                    out.append(timestamp.strftime(directive))
                i += len(token)
                break
        else:
            out.append(pattern[i])
            i += 1
    return "".join(out)


class Event:
    """
    One structured record submitted for forwarding.

    Args:
        fields: Field map of the event. The timestamp is read from the
            "timestamp" (or "@timestamp") field unless given explicitly.
        timestamp: Explicit timestamp, overrides the field lookup

    Raises:
        ValueError: If no usable timestamp is available
    """

    def __init__(self, fields: Mapping[str, Any], timestamp: Any = None):
        if not isinstance(fields, Mapping):
            raise ValueError(f"Event fields must be a mapping, got {type(fields).__name__}")

        self._fields = dict(fields)

        if timestamp is None:
            for key in TIMESTAMP_FIELDS:
                if self._fields.get(key) is not None:
                    timestamp = self._fields[key]
                    break
            else:
                raise ValueError("Event has no timestamp")

        self._timestamp = parse_timestamp(timestamp)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Event":
        """
        Build an event from a decoded JSON object.

        Stamps the current time into "timestamp" when the record carries no
        timestamp field of its own.
        """
        if not isinstance(raw, Mapping):
            raise ValueError(f"Event must be a JSON object, got {type(raw).__name__}")

        fields = dict(raw)
        if all(fields.get(key) is None for key in TIMESTAMP_FIELDS):
            fields["timestamp"] = datetime.now(UTC).isoformat()
        return cls(fields)

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def epoch_seconds(self) -> int:
        return int(self._timestamp.timestamp())

    def to_dict(self) -> dict[str, Any]:
        """Return an independent deep copy of the field map."""
        return copy.deepcopy(self._fields)

    def get(self, reference: str, default: Any = None) -> Any:
        """
        Look up a field by name or nested reference.

        "user" reads a top-level field, "[user][name]" walks nested mappings.
        Missing paths, and paths crossing a non-mapping value, give default.
        """
        parts = _REFERENCE_PATTERN.findall(reference) if reference.startswith("[") else [reference]
        if not parts:
            return default

        value: Any = self._fields
        for part in parts:
            if not isinstance(value, Mapping) or part not in value:
                return default
            value = value[part]
        return value

    def sprintf(self, template: str) -> str:
        """
        Substitute %{...} placeholders in template with event values.

        - %{name} / %{[a][b]}: field value, rendered by format_value()
        - %{+%s}: epoch seconds of the event timestamp
        - %{+yyyy-MM-dd}: timestamp in UTC using a Joda-style pattern

        Placeholders that resolve to a missing or None field are left as-is.
        """

        def replace(match: re.Match) -> str:
            key = match.group(1)
            if key == "+%s":
                return str(self.epoch_seconds)
            if key.startswith("+"):
                return _joda_to_strftime(key[1:], self._timestamp)

            value = self.get(key)
            if value is None:
                return match.group(0)
            return format_value(value)

        return _PLACEHOLDER_PATTERN.sub(replace, template)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self._fields == other._fields and self._timestamp == other._timestamp

    def __repr__(self) -> str:
        return f"Event(timestamp={self._timestamp.isoformat()}, fields={sorted(self._fields)})"
