"""
Error types for the framebuffer reconciliation pass.

Every error is fatal to the run. Each kind carries the negated errno value the
CLI exits with, so callers never have to map exceptions to codes themselves.
"""

import errno


class FBDepthError(Exception):
    """Base class for all fbdepth failures."""

    exit_code = -1  # ERRCODE(EXIT_FAILURE)


class ParseError(FBDepthError):
    """Malformed flag value (tri-state, rotation token, bitdepth) or bad flag combination."""

    exit_code = -errno.EINVAL


class UnsupportedOperation(FBDepthError):
    """Canonical rotation requested on a device family that cannot express it."""

    exit_code = -errno.ENOTSUP


class ProbeFailure(FBDepthError):
    """Querying the framebuffer state failed."""

    exit_code = -errno.ENODEV


class ApplyFailure(FBDepthError):
    """Switching the framebuffer mode failed."""

    exit_code = -errno.EIO


class InvalidRotation(FBDepthError):
    """A native rotation outside of 0..3 reached the rotation mapper."""

    exit_code = -errno.ERANGE

    def __init__(self, value):
        super().__init__(f"Native rotation {value!r} is out of range (expected 0..3)")
        self.value = value


class FramebufferError(FBDepthError):
    """Opening or closing the framebuffer device failed."""
