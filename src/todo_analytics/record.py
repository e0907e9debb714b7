"""Task record model consumed by the analytics engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .utils.datetime import ensure_aware, parse_datetime, to_iso_string


_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off", ""}

# Storage layer field name -> TaskRecord attribute
_FIELD_ALIASES = {
    "createTime": "create_time",
    "updateTime": "update_time",
    "created": "create_time",
    "text": "title",
}


@dataclass(frozen=True)
class TaskRecord:
    """A single task as supplied by the persistence layer.

    Records are never modified by the analytics engine. ``update_time`` is the
    time of the last state change and is only meaningful for completed tasks.
    """

    id: str
    create_time: datetime
    title: str = ""
    description: str = ""
    completed: bool = False
    update_time: Optional[datetime] = None

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "create_time", ensure_aware(self.create_time))
        object.__setattr__(self, "update_time", ensure_aware(self.update_time))

    @property
    def completion_time(self) -> Optional[datetime]:
        """When the task was completed, if known."""
        if self.completed and self.update_time is not None:
            return self.update_time
        return None

    @property
    def has_consistent_timestamps(self) -> bool:
        return self.update_time is None or self.create_time <= self.update_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "create_time": to_iso_string(self.create_time),
            "update_time": to_iso_string(self.update_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskRecord":
        """Build a record from a storage dictionary.

        Accepts both the storage layer's camelCase keys and snake_case keys.
        Missing optional fields fall back to neutral defaults.

        Raises:
            KeyError: If ``id`` or ``create_time`` is missing
            ValueError: If a timestamp cannot be parsed
        """
        normalized = {}
        for key, value in data.items():
            normalized[_FIELD_ALIASES.get(key, key)] = value

        if normalized.get("id") is None:
            raise KeyError("id")
        if normalized.get("create_time") is None:
            raise KeyError("create_time")

        return cls(
            id=str(normalized["id"]),
            title=normalized.get("title") or "",
            description=normalized.get("description") or "",
            completed=parse_completed(normalized.get("completed", False)),
            create_time=parse_datetime(normalized["create_time"]),
            update_time=parse_datetime(normalized.get("update_time")),
        )


@dataclass(frozen=True)
class TimeRange:
    """Closed interval ``[start, end]`` bounding an aggregation."""

    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_aware(self.start))
        object.__setattr__(self, "end", ensure_aware(self.end))

    def contains(self, instant: Optional[datetime]) -> bool:
        if instant is None:
            return False
        return self.start <= instant <= self.end

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {"start": to_iso_string(self.start), "end": to_iso_string(self.end)}


def parse_completed(value: Any) -> bool:
    """Interpret a stored completion flag.

    Booleans, 0/1 and the usual string spellings ("true", "false", "yes",
    "no", ...) are accepted; anything else is rejected.

    Raises:
        ValueError: If the value is not a recognizable flag
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"Invalid completed flag: {value!r}")
