"""
Device family capability descriptors.

Which rotation tricks a device needs depends on its family (and, on Kobo, on
the exact model's kernel). Instead of branching on the family all over the
code, the reconciliation engine receives one of these descriptors.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional

from ..reconcile.models import (
    FB_ROTATE_CCW,
    FB_ROTATE_CW,
    FB_ROTATE_UD,
    FB_ROTATE_UR,
    LegacyOrientation,
    RotationQuirk,
)


# einkfb doesn't number its orientations like the Linux fb rotate field does
EINKFB_ORIENTATION_MAP = MappingProxyType({
    LegacyOrientation.PORTRAIT: FB_ROTATE_UR,
    LegacyOrientation.LANDSCAPE: FB_ROTATE_CW,
    LegacyOrientation.PORTRAIT_UPSIDE_DOWN: FB_ROTATE_UD,
    LegacyOrientation.LANDSCAPE_UPSIDE_DOWN: FB_ROTATE_CCW,
})


@dataclass(frozen=True)
class DeviceCapabilities:
    """What a device family can do, and how its kernel mangles rotations."""

    family: str
    supports_canonical_rotation: bool = False
    supports_auto_portrait: bool = False
    rotation_quirk: RotationQuirk = RotationQuirk.STRAIGHT
    boot_rotation: int = FB_ROTATE_UR
    is_legacy_orientation_model: bool = False
    legacy_orientation_map: Mapping[LegacyOrientation, int] = field(default_factory=lambda: EINKFB_ORIENTATION_MAP)

    def with_overrides(self, rotation_quirk: Optional[RotationQuirk] = None,
                       boot_rotation: Optional[int] = None) -> 'DeviceCapabilities':
        """Return a copy with the per-device quirk metadata filled in."""
        changes = {}
        if rotation_quirk is not None:
            changes['rotation_quirk'] = rotation_quirk
        if boot_rotation is not None:
            changes['boot_rotation'] = boot_rotation
        return replace(self, **changes) if changes else self


class DeviceFamilies:
    """Known device families."""

    GENERIC = DeviceCapabilities(family="generic")

    # Kobo: NTX boards, most of which invert the rotate field one way or another
    KOBO = DeviceCapabilities(
        family="kobo",
        supports_canonical_rotation=True,
        supports_auto_portrait=True,
        rotation_quirk=RotationQuirk.ALL_INVERTED,
        boot_rotation=FB_ROTATE_CW,
    )

    # BQ Cervantes: NTX boards too, but no canonical rotation support
    CERVANTES = DeviceCapabilities(
        family="cervantes",
        supports_auto_portrait=True,
        boot_rotation=FB_ROTATE_CW,
    )

    KINDLE = DeviceCapabilities(family="kindle")

    # einkfb Kindles (K2, K3, DX, and the K4 shim) ignore the rotate field
    KINDLE_LEGACY = DeviceCapabilities(
        family="kindle_legacy",
        is_legacy_orientation_model=True,
    )

    REMARKABLE = DeviceCapabilities(family="remarkable")

    POCKETBOOK = DeviceCapabilities(family="pocketbook")

    @classmethod
    def all(cls):
        """Get a dictionary of every known family, keyed by name."""
        return {
            caps.family: caps
            for caps in (
                cls.GENERIC,
                cls.KOBO,
                cls.CERVANTES,
                cls.KINDLE,
                cls.KINDLE_LEGACY,
                cls.REMARKABLE,
                cls.POCKETBOOK,
            )
        }

    @classmethod
    def get(cls, name: str) -> DeviceCapabilities:
        """Look up a family by name (case-insensitive)."""
        families = cls.all()
        key = name.strip().lower()
        if key not in families:
            raise ValueError(
                f"Unknown device family: {name} (expected one of: {', '.join(sorted(families))})"
            )
        return families[key]

    @classmethod
    def validate_legacy_map(cls, capabilities: DeviceCapabilities):
        """Validate that a legacy orientation table is a bijection onto 0..3."""
        mapping = capabilities.legacy_orientation_map
        if set(mapping.keys()) != set(LegacyOrientation):
            raise ValueError("Legacy orientation map must cover every orientation")
        if sorted(mapping.values()) != [0, 1, 2, 3]:
            raise ValueError("Legacy orientation map must be a bijection onto 0..3")
        return True
