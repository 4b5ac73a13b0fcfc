"""
Configuration settings for fbdepth.

Everything the engine needs to know about the device it runs on comes from
here (the device family and its rotation quirk metadata), since fbdepth does
not try to identify the hardware itself.

Env-based:
- FBDEPTH_DEVICE_FAMILY, FBDEPTH_FB_DEVICE, FBDEPTH_BACKEND
- FBDEPTH_BOOT_ROTA, FBDEPTH_ROTA_QUIRK
- FBDEPTH_SYSLOG, DEBUG, FBDEPTH_METRICS_TEXTFILE
- FBDEPTH_MOCK_* for the simulated backend (previews go to
  FBDEPTH_MOCK_PREVIEW_DIR, or ./temp under the working directory)
- load_from_file/save_to_file handle simple .env-style files
  without requiring python-dotenv.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..reconcile.models import RotationQuirk
from .devices import DeviceCapabilities, DeviceFamilies


def _get_env_str(name: str, default: str) -> str:
    val = os.getenv(name)
    return default if val is None else val


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except Exception:
        return default


def _get_env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def _get_env_optional_int(name: str) -> Optional[int]:
    val = os.getenv(name)
    if val is None or val.strip().lower() in ("", "none", "null"):
        return None
    try:
        return int(val)
    except ValueError:
        return None


class Settings:
    """Main configuration class for fbdepth."""

    # Centralized defaults (envs override these)
    DEFAULTS = {
        # Device identity
        "device_family": "generic",
        "boot_rotation": None,      # None keeps the family default
        "rotation_quirk": None,     # None keeps the family default

        # Framebuffer backend
        "backend": "fbdev",         # "fbdev" for hardware, "mock" for testing
        "fb_device": "/dev/fb0",

        # Logging
        "debug_mode": False,
        "use_syslog": False,

        # Metrics (node-exporter textfile collector)
        "metrics_textfile": "",

        # Simulated framebuffer
        "mock_width": 1072,
        "mock_height": 1448,
        "mock_bpp": 32,
        "mock_rotate": 0,
        "mock_grayscale": 0,
        "mock_orientation": 0,
        "mock_preview": False,
    }

    def __init__(self):
        """Initialize settings with defaults, then apply env overrides."""
        # Paths
        self.temp_dir = Path.cwd() / "temp"

        self.device_family = self.DEFAULTS["device_family"]
        self.boot_rotation: Optional[int] = self.DEFAULTS["boot_rotation"]
        self.rotation_quirk: Optional[str] = self.DEFAULTS["rotation_quirk"]

        self.backend = self.DEFAULTS["backend"]
        self.fb_device = self.DEFAULTS["fb_device"]

        self.debug_mode = self.DEFAULTS["debug_mode"]
        self.use_syslog = self.DEFAULTS["use_syslog"]

        self.metrics_textfile = self.DEFAULTS["metrics_textfile"]

        self.mock_width = self.DEFAULTS["mock_width"]
        self.mock_height = self.DEFAULTS["mock_height"]
        self.mock_bpp = self.DEFAULTS["mock_bpp"]
        self.mock_rotate = self.DEFAULTS["mock_rotate"]
        self.mock_grayscale = self.DEFAULTS["mock_grayscale"]
        self.mock_orientation = self.DEFAULTS["mock_orientation"]
        self.mock_preview = self.DEFAULTS["mock_preview"]

        # Apply env overrides
        self._apply_env_overrides()

        if self.mock_preview:
            self._ensure_directory_writable(self.temp_dir)

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        # Device identity
        self.device_family = _get_env_str("FBDEPTH_DEVICE_FAMILY", self.device_family).strip().lower()
        boot_rotation = _get_env_optional_int("FBDEPTH_BOOT_ROTA")
        if boot_rotation is not None:
            self.boot_rotation = boot_rotation
        quirk = os.getenv("FBDEPTH_ROTA_QUIRK")
        if quirk is not None and quirk.strip():
            self.rotation_quirk = quirk.strip().lower()

        # Framebuffer backend
        self.backend = _get_env_str("FBDEPTH_BACKEND", self.backend).strip().lower()
        self.fb_device = _get_env_str("FBDEPTH_FB_DEVICE", self.fb_device)

        # Logging/debug
        self.debug_mode = _get_env_bool("DEBUG", self.debug_mode)
        self.use_syslog = _get_env_bool("FBDEPTH_SYSLOG", self.use_syslog)

        # Metrics
        self.metrics_textfile = _get_env_str("FBDEPTH_METRICS_TEXTFILE", self.metrics_textfile)

        # Simulated framebuffer
        self.mock_width = _get_env_int("FBDEPTH_MOCK_WIDTH", self.mock_width)
        self.mock_height = _get_env_int("FBDEPTH_MOCK_HEIGHT", self.mock_height)
        self.mock_bpp = _get_env_int("FBDEPTH_MOCK_BPP", self.mock_bpp)
        self.mock_rotate = _get_env_int("FBDEPTH_MOCK_ROTATE", self.mock_rotate)
        self.mock_grayscale = _get_env_int("FBDEPTH_MOCK_GRAYSCALE", self.mock_grayscale)
        self.mock_orientation = _get_env_int("FBDEPTH_MOCK_ORIENTATION", self.mock_orientation)
        self.mock_preview = _get_env_bool("FBDEPTH_MOCK_PREVIEW", self.mock_preview)
        preview_dir = os.getenv("FBDEPTH_MOCK_PREVIEW_DIR")
        if preview_dir:
            self.temp_dir = Path(preview_dir)

    def _ensure_directory_writable(self, directory: Path):
        """Ensure directory exists, warn if it can't be created."""
        try:
            directory.mkdir(exist_ok=True, parents=True)
        except OSError as e:
            logger = logging.getLogger(__name__)
            logger.warning(f"Could not create directory {directory}: {e}")

    def capabilities(self) -> DeviceCapabilities:
        """Build the capability descriptor for the configured device."""
        capabilities = DeviceFamilies.get(self.device_family)
        quirk = RotationQuirk(self.rotation_quirk) if self.rotation_quirk else None
        return capabilities.with_overrides(rotation_quirk=quirk, boot_rotation=self.boot_rotation)

    def validate(self):
        """Validate configuration settings."""
        errors = []

        try:
            DeviceFamilies.validate_legacy_map(DeviceFamilies.get(self.device_family))
        except ValueError as e:
            errors.append(str(e))

        if self.rotation_quirk is not None:
            try:
                RotationQuirk(self.rotation_quirk)
            except ValueError:
                errors.append(
                    f"Unknown rotation quirk: {self.rotation_quirk} "
                    f"(expected one of: {', '.join(q.value for q in RotationQuirk)})"
                )

        if self.boot_rotation is not None and self.boot_rotation not in (0, 1, 2, 3):
            errors.append("Boot rotation must be one of: 0, 1, 2, 3")

        if self.backend not in ("fbdev", "mock"):
            errors.append("Backend must be one of: fbdev, mock")

        if self.backend == "mock":
            if self.mock_width <= 0 or self.mock_height <= 0:
                errors.append("Mock framebuffer dimensions must be positive integers")
            if self.mock_bpp not in (4, 8, 16, 24, 32):
                errors.append("Mock framebuffer bitdepth must be one of: 4, 8, 16, 24, 32")
            if self.mock_rotate not in (0, 1, 2, 3):
                errors.append("Mock framebuffer rotation must be one of: 0, 1, 2, 3")
            if self.mock_orientation not in (0, 1, 2, 3):
                errors.append("Mock einkfb orientation must be one of: 0, 1, 2, 3")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(errors))

        return True

    def load_from_file(self, config_file: Path):
        """Load settings from a simple .env-style file and apply to environment.

        Notes:
        - Lines starting with '#' are comments.
        - Only simple 'KEY=VALUE' lines are supported.
        - After loading, environment overrides are re-applied.
        """
        cfg_path = Path(config_file)
        if not cfg_path.exists():
            raise FileNotFoundError(f"Config file not found: {cfg_path}")

        with cfg_path.open("r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()
                # Remove optional surrounding quotes
                if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                    value = value[1:-1]
                os.environ[key] = value

        # Re-apply env overrides
        self._apply_env_overrides()

    def save_to_file(self, config_file: Path):
        """Save the device settings to a .env-style configuration file."""
        cfg_path = Path(config_file)
        lines = [
            "# fbdepth Environment Configuration",
            "# Generated by Settings.save_to_file",
            "",
            "# Device",
            f"FBDEPTH_DEVICE_FAMILY={self.device_family}",
            f"FBDEPTH_BOOT_ROTA={'' if self.boot_rotation is None else self.boot_rotation}",
            f"FBDEPTH_ROTA_QUIRK={self.rotation_quirk or ''}",
            "",
            "# Framebuffer",
            f"FBDEPTH_BACKEND={self.backend}",
            f"FBDEPTH_FB_DEVICE={self.fb_device}",
            "",
            "# Logging & metrics",
            f"FBDEPTH_SYSLOG={'true' if self.use_syslog else 'false'}",
            f"FBDEPTH_METRICS_TEXTFILE={self.metrics_textfile}",
        ]
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        cfg_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
