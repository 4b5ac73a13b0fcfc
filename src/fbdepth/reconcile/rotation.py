"""
Rotation mapping between canonical, native and legacy orientation encodings.

"Native" is whatever the device's kernel puts in (and expects from) the
fb_var_screeninfo rotate field. "Canonical" is what the user actually sees.
All functions here are pure.
"""

from .errors import InvalidRotation, UnsupportedOperation
from .models import (
    CanonicalRotation,
    FB_ROTATE_CCW,
    FB_ROTATE_CW,
    FB_ROTATE_UD,
    FB_ROTATE_UR,
    HardwareSnapshot,
    LegacyOrientation,
    RotationQuirk,
)


_ROTATION_NAMES = {
    FB_ROTATE_UR: "Upright, 0°",
    FB_ROTATE_CW: "Clockwise, 90°",
    FB_ROTATE_UD: "Upside Down, 180°",
    FB_ROTATE_CCW: "Counter Clockwise, 270°",
}


def validate_native_rotation(value) -> int:
    """Return value if it is a native rotation (0..3), raise InvalidRotation otherwise."""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 3:
        raise InvalidRotation(value)
    return value


def rotation_to_string(rotate) -> str:
    """Human readable name of a Linux fb rotation."""
    return _ROTATION_NAMES.get(rotate, "Unknown?!")


def _unmangle(rotate: int, quirk: RotationQuirk) -> int:
    # Both directions are involutions, so the same flip works either way
    if quirk is RotationQuirk.ALL_INVERTED:
        return rotate ^ 2
    if quirk is RotationQuirk.ODD_INVERTED and rotate & 1:
        return rotate ^ 2
    return rotate


def _require_canonical_support(capabilities):
    if not capabilities.supports_canonical_rotation:
        raise UnsupportedOperation(
            f"Canonical rotations are not supported on {capabilities.family} devices"
        )


def to_native(canonical: CanonicalRotation, capabilities) -> int:
    """Translate a canonical rotation to the device's native rotate value."""
    _require_canonical_support(capabilities)
    return _unmangle(canonical.value, capabilities.rotation_quirk)


def to_canonical(native: int, capabilities) -> CanonicalRotation:
    """Translate a native rotate value to the rotation the user actually sees."""
    _require_canonical_support(capabilities)
    native = validate_native_rotation(native)
    return CanonicalRotation(_unmangle(native, capabilities.rotation_quirk))


def resolve_auto_portrait(snapshot: HardwareSnapshot) -> int:
    """
    Compute the native rotation matching the device's expected Portrait orientation.

    For most devices, the reader's Portrait orientation is the boot rotation + 1.
    Devices flagged as SANE boot straight into it.
    """
    boot_rotation = validate_native_rotation(snapshot.boot_rotation)
    if snapshot.rotation_quirk is not RotationQuirk.SANE:
        return (boot_rotation + 1) & 3
    return boot_rotation


def resolve_legacy_orientation(orientation, capabilities) -> int:
    """Map an einkfb orientation to a native rotation using the device's fixed table."""
    try:
        orientation = LegacyOrientation(orientation)
    except ValueError:
        raise InvalidRotation(orientation) from None
    return validate_native_rotation(capabilities.legacy_orientation_map[orientation])


def legacy_orientation_for(native: int, capabilities) -> LegacyOrientation:
    """Reverse of resolve_legacy_orientation, used when switching rotation on einkfb."""
    native = validate_native_rotation(native)
    for orientation, rotate in capabilities.legacy_orientation_map.items():
        if rotate == native:
            return LegacyOrientation(orientation)
    raise InvalidRotation(native)
