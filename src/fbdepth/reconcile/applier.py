"""
Writes a resolved mode to the framebuffer.
"""

import logging
from typing import Optional

from .errors import ApplyFailure
from .grayscale import toggled_grayscale
from .models import GrayscaleCode, HardwareSnapshot, ResolvedTarget
from .rotation import legacy_orientation_for


class FramebufferApplier:
    """Switches the framebuffer to a ResolvedTarget in one attempt, no retries."""

    def __init__(self, framebuffer, capabilities, logger: Optional[logging.Logger] = None):
        self.framebuffer = framebuffer
        self.capabilities = capabilities
        self.logger = logger or logging.getLogger(__name__)

    def apply(self, snapshot: HardwareSnapshot, resolved: ResolvedTarget):
        """
        Apply the resolved mode.

        The live variable screen info is re-read right before writing, so the
        grayscale toggle flips the actual current value.

        Raises:
            ApplyFailure: if any framebuffer call fails
        """
        current_note = " (current bitdepth)" if resolved.bitdepth == snapshot.bitdepth else ""
        if resolved.rotation is not None:
            self.logger.debug(
                f"Switching fb to {resolved.bitdepth}bpp{current_note} @ rotation {resolved.rotation} . . ."
            )
        else:
            self.logger.debug(f"Switching fb to {resolved.bitdepth}bpp{current_note} . . .")

        try:
            var_info = self.framebuffer.get_var_info()

            if resolved.grayscale is GrayscaleCode.TOGGLE:
                var_info.grayscale = int(toggled_grayscale(resolved.bitdepth, var_info.grayscale))
            elif resolved.grayscale is not GrayscaleCode.KEEP_CURRENT:
                var_info.grayscale = int(resolved.grayscale)

            var_info.bits_per_pixel = resolved.bitdepth

            legacy_rotation = None
            if resolved.rotation is not None:
                if self.capabilities.is_legacy_orientation_model:
                    legacy_rotation = resolved.rotation
                else:
                    var_info.rotate = resolved.rotation

            self.framebuffer.put_var_info(var_info)

            if legacy_rotation is not None and legacy_rotation != snapshot.current_rotation:
                orientation = legacy_orientation_for(legacy_rotation, self.capabilities)
                self.framebuffer.set_legacy_orientation(int(orientation))
        except OSError as e:
            raise ApplyFailure(f"Failed to switch the framebuffer mode: {e}") from e
