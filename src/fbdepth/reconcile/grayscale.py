"""
Grayscale flag policy.

Hardware inversion is only meaningful at 8bpp: any other value of the
grayscale field at higher depths breaks rendering, so it is forced to 0 there.
Toggling depends on the live flag, which only the applier knows, so it is
passed through as its own code.
"""

from .models import GrayscaleCode, NightMode


def derive_grayscale(bitdepth: int, night_mode: NightMode) -> GrayscaleCode:
    """Compute the grayscale flag expressing night_mode at bitdepth."""
    if night_mode is NightMode.TOGGLE:
        return GrayscaleCode.TOGGLE

    if bitdepth > 8:
        return GrayscaleCode.NO_GRAYSCALE
    if bitdepth < 8:
        # 4bpp has its own GRAYSCALE_4BIT* constants, leave those alone
        return GrayscaleCode.KEEP_CURRENT

    if night_mode is NightMode.ON:
        return GrayscaleCode.INVERTED_8BIT
    return GrayscaleCode.NONE_8BIT


def toggled_grayscale(bitdepth: int, current: int) -> int:
    """Value the grayscale field takes when TOGGLE is applied at bitdepth."""
    if bitdepth < 8:
        return current
    if bitdepth > 8:
        return GrayscaleCode.NO_GRAYSCALE
    if current == GrayscaleCode.INVERTED_8BIT:
        return GrayscaleCode.NONE_8BIT
    return GrayscaleCode.INVERTED_8BIT
