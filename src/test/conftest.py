"""
Shared fixtures for the fbdepth tests.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fbdepth.config.devices import DeviceFamilies
from fbdepth.display.mock_framebuffer import MockFramebuffer
from fbdepth.reconcile.models import HardwareSnapshot, RotationQuirk


ENV_VARS = (
    "FBDEPTH_DEVICE_FAMILY",
    "FBDEPTH_FB_DEVICE",
    "FBDEPTH_BACKEND",
    "FBDEPTH_BOOT_ROTA",
    "FBDEPTH_ROTA_QUIRK",
    "FBDEPTH_SYSLOG",
    "FBDEPTH_METRICS_TEXTFILE",
    "FBDEPTH_ENV_FILE",
    "FBDEPTH_MOCK_WIDTH",
    "FBDEPTH_MOCK_HEIGHT",
    "FBDEPTH_MOCK_BPP",
    "FBDEPTH_MOCK_ROTATE",
    "FBDEPTH_MOCK_GRAYSCALE",
    "FBDEPTH_MOCK_ORIENTATION",
    "FBDEPTH_MOCK_PREVIEW",
    "FBDEPTH_MOCK_PREVIEW_DIR",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Make sure the host environment doesn't leak into Settings."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def make_snapshot(**overrides) -> HardwareSnapshot:
    """Build a snapshot of a 32bpp upright Kobo-sized panel, with overrides."""
    values = dict(
        width=1072,
        height=1448,
        bitdepth=32,
        current_rotation=0,
        scanline_stride=4288,
        boot_rotation=0,
        rotation_quirk=RotationQuirk.STRAIGHT,
        is_legacy_orientation_model=False,
        grayscale=0,
    )
    values.update(overrides)
    return HardwareSnapshot(**values)


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def kobo():
    return DeviceFamilies.KOBO


@pytest.fixture
def generic():
    return DeviceFamilies.GENERIC


@pytest.fixture
def mock_fb():
    return MockFramebuffer(width=1072, height=1448, bits_per_pixel=32)


@pytest.fixture(autouse=True)
def reset_fbdepth_logger():
    """FBDepthApp reconfigures the "fbdepth" logger, undo that after each test."""
    yield
    fbdepth_logger = logging.getLogger("fbdepth")
    for handler in list(fbdepth_logger.handlers):
        fbdepth_logger.removeHandler(handler)
    fbdepth_logger.setLevel(logging.NOTSET)
    fbdepth_logger.propagate = True
