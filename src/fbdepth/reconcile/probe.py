"""
Framebuffer state probing.
"""

import logging
from typing import Optional

from .errors import InvalidRotation, ProbeFailure
from .models import HardwareSnapshot, LegacyOrientation
from .rotation import resolve_legacy_orientation, rotation_to_string


class StateProbe:
    """Reads the current framebuffer state into an immutable HardwareSnapshot."""

    def __init__(self, framebuffer, capabilities, logger: Optional[logging.Logger] = None):
        """Initialize the probe for one framebuffer and device family."""
        self.framebuffer = framebuffer
        self.capabilities = capabilities
        self.logger = logger or logging.getLogger(__name__)

    def probe(self) -> HardwareSnapshot:
        """
        Query the framebuffer once.

        Any failing query aborts the whole probe: a partial snapshot is never
        returned.

        Raises:
            ProbeFailure: if the framebuffer could not be queried
        """
        try:
            var_info = self.framebuffer.get_var_info()
            fix_info = self.framebuffer.get_fix_info()
            legacy_orientation = None
            if self.capabilities.is_legacy_orientation_model:
                legacy_orientation = self.framebuffer.get_legacy_orientation()
        except OSError as e:
            raise ProbeFailure(f"Failed to query the framebuffer: {e}") from e

        current_rotation = var_info.rotate
        if legacy_orientation is not None:
            # einkfb ignores the rotate field entirely
            try:
                current_rotation = resolve_legacy_orientation(legacy_orientation, self.capabilities)
            except InvalidRotation as e:
                raise ProbeFailure(f"Unexpected einkfb orientation {legacy_orientation}") from e

        if var_info.bits_per_pixel == 0 or fix_info.line_length == 0:
            raise ProbeFailure(
                f"Framebuffer reported a bogus mode ({var_info.bits_per_pixel}bpp, "
                f"line length {fix_info.line_length})"
            )

        snapshot = HardwareSnapshot(
            width=var_info.xres,
            height=var_info.yres,
            bitdepth=var_info.bits_per_pixel,
            current_rotation=current_rotation,
            scanline_stride=fix_info.line_length,
            boot_rotation=self.capabilities.boot_rotation,
            rotation_quirk=self.capabilities.rotation_quirk,
            is_legacy_orientation_model=self.capabilities.is_legacy_orientation_model,
            grayscale=var_info.grayscale,
            xres_virtual=var_info.xres_virtual,
            yres_virtual=var_info.yres_virtual,
            fb_id=fix_info.id,
            smem_len=fix_info.smem_len,
        )
        self._log_state(snapshot, var_info, fix_info, legacy_orientation)
        return snapshot

    def _log_state(self, snapshot, var_info, fix_info, legacy_orientation):
        """Dump what we found at DEBUG level."""
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        stride_px = (snapshot.scanline_stride * 8) // snapshot.bitdepth
        stride_lines = snapshot.smem_len // snapshot.scanline_stride
        self.logger.debug(
            f"Framebuffer state: Screen is {snapshot.width}x{snapshot.height} ({stride_px}x{stride_lines}), "
            f"{snapshot.bitdepth}bpp @ rotation: {snapshot.current_rotation} "
            f"({rotation_to_string(snapshot.current_rotation)}); "
            f"buffer size is {snapshot.smem_len} bytes with a scanline stride of {snapshot.scanline_stride} bytes"
        )
        self.logger.debug(
            f"Variable fb info: {var_info.xres}x{var_info.yres} "
            f"({var_info.xres_virtual}x{var_info.yres_virtual}), {var_info.bits_per_pixel}bpp @ rotation: "
            f"{var_info.rotate} ({rotation_to_string(var_info.rotate)}), grayscale: {var_info.grayscale}"
        )
        self.logger.debug(
            f"Fixed fb info: ID is \"{fix_info.id}\", length of fb mem: {fix_info.smem_len} bytes "
            f"& line length: {fix_info.line_length} bytes"
        )
        if legacy_orientation is not None:
            self.logger.debug(
                f"Actual einkfb orientation: {legacy_orientation} "
                f"({LegacyOrientation(legacy_orientation).name.replace('_', ' ').title()})"
            )
