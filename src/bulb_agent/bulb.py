"""
Bulb state and its thread-safe store

This module provides:
- Bulb: the name/color/brightness record, with dict conversion for the wire format
- BulbStore: a lock-guarded holder for the single Bulb of the process
- ValidationError: raised when an update is rejected
"""

import threading
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Union


DEFAULT_NAME = "My Bulb"
DEFAULT_COLOR = "ffffff"  # white
DEFAULT_BRIGHTNESS = 100

MIN_COLOR_LENGTH = 3
MAX_BRIGHTNESS = 255  # unsigned 8-bit


class ValidationError(ValueError):
    """Raised when a field update is rejected. The store is left untouched."""

    def __init__(self, field: str, value: Any = None):
        super().__init__(f"invalid {field}")
        self.field = field
        self.value = value


@dataclass
class Bulb:
    """Bulb state dataclass"""
    name: str = DEFAULT_NAME
    color: str = DEFAULT_COLOR
    brightness: int = DEFAULT_BRIGHTNESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serialisable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bulb':
        """Create from dictionary, validating every field."""
        return cls(
            name=validate_name(data.get("name", "")),
            color=validate_color(data.get("color", "")),
            brightness=parse_brightness(data.get("brightness", "")),
        )


def validate_name(value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("name", value)
    return value


def validate_color(value: str) -> str:
    if not isinstance(value, str) or not value or len(value) < MIN_COLOR_LENGTH:
        raise ValidationError("color", value)
    return value


def parse_brightness(raw: Union[str, int]) -> int:
    """Parse *raw* as an unsigned 8-bit decimal integer.

    Strings must be plain ASCII digits: no sign, no surrounding whitespace.
    Leading zeros are accepted (``"0255"`` is 255).
    """
    if isinstance(raw, bool):
        raise ValidationError("brightness", raw)
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.isascii() and raw.isdigit():
        value = int(raw)
    else:
        raise ValidationError("brightness", raw)

    if not 0 <= value <= MAX_BRIGHTNESS:
        raise ValidationError("brightness", raw)
    return value


class BulbStore:
    """Thread-safe holder for the process's single Bulb."""

    def __init__(self, bulb: Bulb = None):
        self._lock = threading.Lock()
        self._bulb = bulb if bulb is not None else Bulb()

    def get_name(self) -> str:
        with self._lock:
            return self._bulb.name

    def get_color(self) -> str:
        with self._lock:
            return self._bulb.color

    def get_brightness(self) -> int:
        with self._lock:
            return self._bulb.brightness

    def snapshot(self) -> Bulb:
        """Return a copy of all three fields taken under one lock acquisition."""
        with self._lock:
            return replace(self._bulb)

    def set_name(self, value: str) -> None:
        name = validate_name(value)
        with self._lock:
            self._bulb.name = name

    def set_color(self, value: str) -> None:
        color = validate_color(value)
        with self._lock:
            self._bulb.color = color

    def set_brightness(self, value: Union[str, int]) -> None:
        brightness = parse_brightness(value)
        with self._lock:
            self._bulb.brightness = brightness
