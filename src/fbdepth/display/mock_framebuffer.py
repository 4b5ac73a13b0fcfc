"""
Simulated framebuffer for development machines and tests.

Behaves like a cooperative fbdev driver: mode switches are honored, xres/yres
swap when going between portrait and landscape, and the stride follows the
bitdepth. Optionally saves a preview of the simulated panel after each mode
switch, the same way the display drivers save their simulated updates.
"""

import errno
import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, ImageDraw, ImageOps

from ..reconcile.errors import FramebufferError
from ..reconcile.models import GrayscaleCode, LegacyOrientation
from .framebuffer import FixScreenInfo, Framebuffer, VarScreenInfo


class MockFramebuffer(Framebuffer):
    """In-memory framebuffer with the same interface as LinuxFramebuffer."""

    def __init__(self,
                 width: int = 1072,
                 height: int = 1448,
                 bits_per_pixel: int = 32,
                 rotate: int = 0,
                 grayscale: int = GrayscaleCode.NO_GRAYSCALE,
                 legacy_orientation: int = LegacyOrientation.PORTRAIT,
                 fb_id: str = "mxc_epdc_fb",
                 preview_dir: Optional[Path] = None,
                 fail_on: Iterable[str] = (),
                 logger: Optional[logging.Logger] = None):
        """Initialize the simulated device state."""
        super().__init__(logger)
        self.var = VarScreenInfo(
            xres=width,
            yres=height,
            xres_virtual=width,
            yres_virtual=height,
            bits_per_pixel=bits_per_pixel,
            grayscale=int(grayscale),
            rotate=rotate,
        )
        self.legacy_orientation = int(legacy_orientation)
        self.fb_id = fb_id
        self.preview_dir = Path(preview_dir) if preview_dir else None
        self.fail_on = set(fail_on)

        # Call tracking, mostly for tests
        self.put_count = 0
        self.open_count = 0
        self.close_count = 0

    @classmethod
    def from_settings(cls, settings, logger: Optional[logging.Logger] = None) -> 'MockFramebuffer':
        """Build a mock framebuffer from the FBDEPTH_MOCK_* settings."""
        return cls(
            width=settings.mock_width,
            height=settings.mock_height,
            bits_per_pixel=settings.mock_bpp,
            rotate=settings.mock_rotate,
            grayscale=settings.mock_grayscale,
            legacy_orientation=settings.mock_orientation,
            preview_dir=settings.temp_dir if settings.mock_preview else None,
            logger=logger,
        )

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise OSError(errno.EIO, f"Simulated {operation} failure")

    def open(self):
        """Pretend to open the device."""
        try:
            self._maybe_fail("open")
        except OSError as e:
            raise FramebufferError(f"Failed to open the framebuffer: {e}") from e
        self.is_open = True
        self.open_count += 1
        self.logger.debug("SIMULATION: Framebuffer opened")

    def close(self):
        """Pretend to close the device."""
        if not self.is_open:
            return
        self.is_open = False
        self.close_count += 1
        try:
            self._maybe_fail("close")
        except OSError as e:
            raise FramebufferError(f"Failed to close the framebuffer: {e}") from e
        self.logger.debug("SIMULATION: Framebuffer closed")

    def _require_open(self):
        if not self.is_open:
            raise OSError(errno.EBADF, "Framebuffer is not open")

    @property
    def line_length(self) -> int:
        return self.var.xres_virtual * self.var.bits_per_pixel // 8

    def get_var_info(self) -> VarScreenInfo:
        self._require_open()
        self._maybe_fail("get_var_info")
        return VarScreenInfo(**vars(self.var))

    def get_fix_info(self) -> FixScreenInfo:
        self._require_open()
        self._maybe_fail("get_fix_info")
        return FixScreenInfo(
            id=self.fb_id,
            smem_len=self.line_length * self.var.yres_virtual,
            line_length=self.line_length,
        )

    def put_var_info(self, var_info: VarScreenInfo):
        """Apply a new mode the way mxcfb would."""
        self._require_open()
        self._maybe_fail("put_var_info")

        xres, yres = self.var.xres, self.var.yres
        if (var_info.rotate ^ self.var.rotate) & 1:
            xres, yres = yres, xres

        self.var = VarScreenInfo(
            xres=xres,
            yres=yres,
            xres_virtual=xres,
            yres_virtual=yres,
            bits_per_pixel=var_info.bits_per_pixel,
            grayscale=var_info.grayscale,
            rotate=var_info.rotate,
        )
        self.put_count += 1
        self.logger.info(
            f"SIMULATION: Switched to {self.var.xres}x{self.var.yres}, "
            f"{self.var.bits_per_pixel}bpp @ rotation {self.var.rotate}, grayscale {self.var.grayscale}"
        )
        self._save_preview()

    def get_legacy_orientation(self) -> int:
        self._require_open()
        self._maybe_fail("get_legacy_orientation")
        return self.legacy_orientation

    def set_legacy_orientation(self, orientation: int):
        self._require_open()
        self._maybe_fail("set_legacy_orientation")
        if (int(orientation) >= LegacyOrientation.LANDSCAPE) != (self.legacy_orientation >= LegacyOrientation.LANDSCAPE):
            self.var.xres, self.var.yres = self.var.yres, self.var.xres
            self.var.xres_virtual, self.var.yres_virtual = self.var.xres, self.var.yres
        self.legacy_orientation = int(orientation)
        self.put_count += 1
        self.logger.info(f"SIMULATION: einkfb orientation set to {LegacyOrientation(self.legacy_orientation).name}")
        self._save_preview()

    def _save_preview(self):
        """Save a picture of the simulated panel for debugging."""
        if self.preview_dir is None:
            return
        try:
            mode = 'L' if self.var.bits_per_pixel <= 8 else 'RGB'
            image = Image.new(mode, (self.var.xres, self.var.yres), 'white')
            draw = ImageDraw.Draw(image)
            # Mark the top-left corner so the orientation can be eyeballed
            draw.rectangle([0, 0, self.var.xres // 8, self.var.yres // 8], fill='black')
            draw.text(
                (10, self.var.yres // 2),
                f"{self.var.bits_per_pixel}bpp rota {self.var.rotate} gray {self.var.grayscale}",
                fill='black',
            )
            if self.var.bits_per_pixel == 8 and self.var.grayscale == GrayscaleCode.INVERTED_8BIT:
                image = ImageOps.invert(image)

            self.preview_dir.mkdir(parents=True, exist_ok=True)
            filename = f"framebuffer_{int(time.time())}_{self.put_count}.png"
            filepath = self.preview_dir / filename
            image.save(filepath)
            self.logger.info(f"SIMULATION: Saved framebuffer preview to {filepath}")
        except Exception as e:
            self.logger.warning(f"Could not save simulation preview: {e}")
