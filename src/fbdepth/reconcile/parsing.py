"""
Parsers for the values operators pass on the command line.
"""

from .errors import ParseError
from .models import (
    AUTO_PORTRAIT,
    CanonicalRotation,
    NightMode,
    SUPPORTED_BITDEPTHS,
)


_TRUE_VALUES = ("true", "yes", "1", "on")
_FALSE_VALUES = ("false", "no", "0", "off")
_TOGGLE_VALUES = ("toggle", "-1")

_ROTATION_TOKENS = {
    "ur": 0, "0": 0,
    "cw": 1, "1": 1,
    "ud": 2, "2": 2,
    "ccw": 3, "3": 3,
}


def parse_tristate(value: str) -> NightMode:
    """Parse an on/off/toggle value (KFMon-style booleans are accepted too)."""
    if not value:
        raise ParseError("Passed an empty value to a key expecting a tri-state value")
    key = value.strip().lower()
    if key in _TRUE_VALUES:
        return NightMode.ON
    if key in _FALSE_VALUES:
        return NightMode.OFF
    if key in _TOGGLE_VALUES:
        return NightMode.TOGGLE
    raise ParseError(f"Invalid nightmode state '{value}'")


def parse_bitdepth(value: str) -> int:
    """Parse a bitdepth, only accepting the depths eInk framebuffers support."""
    try:
        bitdepth = int(value, 10)
    except (TypeError, ValueError):
        raise ParseError(f"Unsupported bitdepth '{value}'") from None
    if bitdepth not in SUPPORTED_BITDEPTHS:
        raise ParseError(f"Unsupported bitdepth '{value}'")
    return bitdepth


def parse_native_rotation(value: str):
    """Parse a -r value: a native rotation, or -1 for the device's Portrait orientation."""
    key = value.strip().lower()
    if key == "-1":
        return AUTO_PORTRAIT
    if key in _ROTATION_TOKENS:
        return _ROTATION_TOKENS[key]
    raise ParseError(f"Invalid rotation '{value}'")


def parse_canonical_rotation(value: str) -> CanonicalRotation:
    """Parse a -R value into a canonical rotation."""
    key = value.strip().lower()
    if key in _ROTATION_TOKENS:
        return CanonicalRotation(_ROTATION_TOKENS[key])
    raise ParseError(f"Invalid rotation '{value}'")
