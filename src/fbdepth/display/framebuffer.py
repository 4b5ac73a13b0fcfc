"""
Linux framebuffer access for fbdepth.

Talks to /dev/fbN through the standard fbdev ioctls, plus the einkfb
orientation ioctls used by legacy Kindles. This module is plumbing only: it
reads and writes screen info, and never decides what should be written.
"""

import ctypes
import logging
import os
from dataclasses import dataclass
from typing import Optional

import fcntl

from ..reconcile.errors import FramebufferError


# linux/fb.h
FBIOGET_VSCREENINFO = 0x4600
FBIOPUT_VSCREENINFO = 0x4601
FBIOGET_FSCREENINFO = 0x4602
FB_ACTIVATE_NOW = 0
FB_ACTIVATE_FORCE = 128

# einkfb.h
FBIO_EINK_SET_DISPLAY_ORIENTATION = 0x46F0
FBIO_EINK_GET_DISPLAY_ORIENTATION = 0x46F1


@dataclass
class VarScreenInfo:
    """The parts of fb_var_screeninfo fbdepth cares about."""

    xres: int
    yres: int
    xres_virtual: int
    yres_virtual: int
    bits_per_pixel: int
    grayscale: int
    rotate: int


@dataclass
class FixScreenInfo:
    """The parts of fb_fix_screeninfo fbdepth cares about."""

    id: str
    smem_len: int
    line_length: int


class _FbBitfield(ctypes.Structure):
    _fields_ = [
        ("offset", ctypes.c_uint32),
        ("length", ctypes.c_uint32),
        ("msb_right", ctypes.c_uint32),
    ]


class _FbVarScreenInfo(ctypes.Structure):
    _fields_ = [
        ("xres", ctypes.c_uint32),
        ("yres", ctypes.c_uint32),
        ("xres_virtual", ctypes.c_uint32),
        ("yres_virtual", ctypes.c_uint32),
        ("xoffset", ctypes.c_uint32),
        ("yoffset", ctypes.c_uint32),
        ("bits_per_pixel", ctypes.c_uint32),
        ("grayscale", ctypes.c_uint32),
        ("red", _FbBitfield),
        ("green", _FbBitfield),
        ("blue", _FbBitfield),
        ("transp", _FbBitfield),
        ("nonstd", ctypes.c_uint32),
        ("activate", ctypes.c_uint32),
        ("height", ctypes.c_uint32),
        ("width", ctypes.c_uint32),
        ("accel_flags", ctypes.c_uint32),
        ("pixclock", ctypes.c_uint32),
        ("left_margin", ctypes.c_uint32),
        ("right_margin", ctypes.c_uint32),
        ("upper_margin", ctypes.c_uint32),
        ("lower_margin", ctypes.c_uint32),
        ("hsync_len", ctypes.c_uint32),
        ("vsync_len", ctypes.c_uint32),
        ("sync", ctypes.c_uint32),
        ("vmode", ctypes.c_uint32),
        ("rotate", ctypes.c_uint32),
        ("colorspace", ctypes.c_uint32),
        ("reserved", ctypes.c_uint32 * 4),
    ]


class _FbFixScreenInfo(ctypes.Structure):
    _fields_ = [
        ("id", ctypes.c_char * 16),
        ("smem_start", ctypes.c_ulong),
        ("smem_len", ctypes.c_uint32),
        ("type", ctypes.c_uint32),
        ("type_aux", ctypes.c_uint32),
        ("visual", ctypes.c_uint32),
        ("xpanstep", ctypes.c_uint16),
        ("ypanstep", ctypes.c_uint16),
        ("ywrapstep", ctypes.c_uint16),
        ("line_length", ctypes.c_uint32),
        ("mmio_start", ctypes.c_ulong),
        ("mmio_len", ctypes.c_uint32),
        ("accel", ctypes.c_uint32),
        ("capabilities", ctypes.c_uint16),
        ("reserved", ctypes.c_uint16 * 2),
    ]


class Framebuffer:
    """
    Base class for framebuffer backends.

    A framebuffer is opened once per run and is a context manager, so the
    handle is released on every exit path.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.is_open = False

    def open(self):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def get_var_info(self) -> VarScreenInfo:
        raise NotImplementedError

    def get_fix_info(self) -> FixScreenInfo:
        raise NotImplementedError

    def put_var_info(self, var_info: VarScreenInfo):
        raise NotImplementedError

    def get_legacy_orientation(self) -> int:
        raise NotImplementedError

    def set_legacy_orientation(self, orientation: int):
        raise NotImplementedError

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class LinuxFramebuffer(Framebuffer):
    """fbdev backend using ioctls on a /dev/fbN node."""

    def __init__(self, device_path: str = "/dev/fb0", logger: Optional[logging.Logger] = None):
        """Initialize the backend without touching the device yet."""
        super().__init__(logger)
        self.device_path = device_path
        self.fd: Optional[int] = None

    def open(self):
        """Open the framebuffer device."""
        if self.fd is not None:
            return
        try:
            self.fd = os.open(self.device_path, os.O_RDWR | getattr(os, "O_CLOEXEC", 0))
        except OSError as e:
            raise FramebufferError(f"Failed to open the framebuffer {self.device_path}: {e}") from e
        self.is_open = True
        self.logger.debug(f"Opened framebuffer {self.device_path} (fd {self.fd})")

    def close(self):
        """Close the framebuffer device."""
        if self.fd is None:
            return
        fd, self.fd = self.fd, None
        self.is_open = False
        try:
            os.close(fd)
        except OSError as e:
            raise FramebufferError(f"Failed to close the framebuffer {self.device_path}: {e}") from e

    def _require_fd(self) -> int:
        if self.fd is None:
            raise OSError(f"Framebuffer {self.device_path} is not open")
        return self.fd

    def _read_var(self) -> _FbVarScreenInfo:
        var = _FbVarScreenInfo()
        fcntl.ioctl(self._require_fd(), FBIOGET_VSCREENINFO, var)
        return var

    def get_var_info(self) -> VarScreenInfo:
        """FBIOGET_VSCREENINFO."""
        var = self._read_var()
        return VarScreenInfo(
            xres=var.xres,
            yres=var.yres,
            xres_virtual=var.xres_virtual,
            yres_virtual=var.yres_virtual,
            bits_per_pixel=var.bits_per_pixel,
            grayscale=var.grayscale,
            rotate=var.rotate,
        )

    def get_fix_info(self) -> FixScreenInfo:
        """FBIOGET_FSCREENINFO."""
        fix = _FbFixScreenInfo()
        fcntl.ioctl(self._require_fd(), FBIOGET_FSCREENINFO, fix)
        return FixScreenInfo(
            id=fix.id.decode("ascii", errors="replace"),
            smem_len=fix.smem_len,
            line_length=fix.line_length,
        )

    def put_var_info(self, var_info: VarScreenInfo):
        """
        FBIOPUT_VSCREENINFO.

        Starts from the live structure so timings and bitfields are preserved;
        only bitdepth, grayscale and rotation are replaced.
        """
        var = self._read_var()
        var.bits_per_pixel = var_info.bits_per_pixel
        var.grayscale = var_info.grayscale
        var.rotate = var_info.rotate
        var.activate = FB_ACTIVATE_NOW | FB_ACTIVATE_FORCE
        fcntl.ioctl(self._require_fd(), FBIOPUT_VSCREENINFO, var)

    def get_legacy_orientation(self) -> int:
        """FBIO_EINK_GET_DISPLAY_ORIENTATION."""
        orientation = ctypes.c_uint32(0)
        fcntl.ioctl(self._require_fd(), FBIO_EINK_GET_DISPLAY_ORIENTATION, orientation)
        return orientation.value

    def set_legacy_orientation(self, orientation: int):
        """FBIO_EINK_SET_DISPLAY_ORIENTATION (the orientation is passed by value)."""
        fcntl.ioctl(self._require_fd(), FBIO_EINK_SET_DISPLAY_ORIENTATION, int(orientation))
