"""
Value types shared by the reconciliation engine.

Everything here is immutable: snapshots and requests are built once per run
and never mutated.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from .errors import InvalidRotation, ParseError


SUPPORTED_BITDEPTHS = (8, 16, 24, 32)

# Linux fb rotate field values (FB_ROTATE_*)
FB_ROTATE_UR = 0
FB_ROTATE_CW = 1
FB_ROTATE_UD = 2
FB_ROTATE_CCW = 3


class CanonicalRotation(Enum):
    """Device-independent rotation, always meaning what it says on screen."""

    UR = 0
    CW = 1
    UD = 2
    CCW = 3


class AutoPortrait(Enum):
    """Marker for "whatever the device considers its Portrait orientation"."""

    REQUESTED = -1


AUTO_PORTRAIT = AutoPortrait.REQUESTED


class NightMode(Enum):
    """Requested state of the hardware inversion flag."""

    ON = "on"
    OFF = "off"
    TOGGLE = "toggle"
    UNSPECIFIED = "unspecified"


class GrayscaleCode(IntEnum):
    """Values of the fb_var_screeninfo grayscale field, plus two request-only sentinels."""

    NO_GRAYSCALE = 0
    NONE_8BIT = 1       # GRAYSCALE_8BIT
    INVERTED_8BIT = 2   # GRAYSCALE_8BIT_INVERTED
    TOGGLE = 1 << 6     # flipped by the applier, never written verbatim
    KEEP_CURRENT = 1 << 7


class RotationQuirk(Enum):
    """How a device's kernel mangles the rotate field (NTX_ROTA_* on Kobo)."""

    STRAIGHT = "straight"
    ALL_INVERTED = "all_inverted"
    ODD_INVERTED = "odd_inverted"
    SANE = "sane"
    SUNXI = "sunxi"
    CW_TOUCH = "cw_touch"
    CCW_TOUCH = "ccw_touch"


class LegacyOrientation(IntEnum):
    """einkfb orientation_t, as returned by FBIO_EINK_GET_DISPLAY_ORIENTATION."""

    PORTRAIT = 0
    PORTRAIT_UPSIDE_DOWN = 1
    LANDSCAPE = 2
    LANDSCAPE_UPSIDE_DOWN = 3


RotationRequest = Union[CanonicalRotation, int, AutoPortrait]


@dataclass(frozen=True)
class HardwareSnapshot:
    """Framebuffer state as probed at one point in time."""

    width: int
    height: int
    bitdepth: int
    current_rotation: int
    scanline_stride: int
    boot_rotation: int
    rotation_quirk: RotationQuirk
    is_legacy_orientation_model: bool
    grayscale: int
    xres_virtual: int = 0
    yres_virtual: int = 0
    fb_id: str = ""
    smem_len: int = 0


@dataclass(frozen=True)
class TargetRequest:
    """What the operator asked for. None/UNSPECIFIED fields mean "leave it alone"."""

    bitdepth: Optional[int] = None
    rotation: Optional[RotationRequest] = None
    night_mode: NightMode = NightMode.UNSPECIFIED

    def __post_init__(self):
        if self.bitdepth is not None and self.bitdepth not in SUPPORTED_BITDEPTHS:
            raise ParseError(f"Unsupported bitdepth '{self.bitdepth}'")
        rotation = self.rotation
        if isinstance(rotation, bool):
            raise InvalidRotation(rotation)
        if isinstance(rotation, int) and not 0 <= rotation <= 3:
            raise InvalidRotation(rotation)

    @property
    def is_empty(self) -> bool:
        """True when nothing at all was requested."""
        return (
            self.bitdepth is None
            and self.rotation is None
            and self.night_mode is NightMode.UNSPECIFIED
        )


@dataclass(frozen=True)
class ResolvedTarget:
    """Effective target values after device quirks have been applied."""

    bitdepth: int
    rotation: Optional[int]
    grayscale: GrayscaleCode
    from_canonical: bool = False


@dataclass(frozen=True)
class ChangeVerdict:
    """Which parts of the framebuffer mode actually need to change."""

    bitdepth_changed: bool = False
    rotation_changed: bool = False
    grayscale_changed: bool = False

    @property
    def any_change(self) -> bool:
        return self.bitdepth_changed or self.rotation_changed or self.grayscale_changed

    def changed_kinds(self):
        """Names of the changed fields, for logging and metrics."""
        kinds = []
        if self.bitdepth_changed:
            kinds.append('bitdepth')
        if self.rotation_changed:
            kinds.append('rotation')
        if self.grayscale_changed:
            kinds.append('grayscale')
        return kinds
