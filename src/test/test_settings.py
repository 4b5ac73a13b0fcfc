"""
Tests for env-driven settings and device capabilities.
"""

import pytest

from fbdepth.config.devices import EINKFB_ORIENTATION_MAP, DeviceCapabilities, DeviceFamilies
from fbdepth.config.settings import Settings
from fbdepth.reconcile.models import LegacyOrientation, RotationQuirk


def test_defaults():
    settings = Settings()
    assert settings.device_family == "generic"
    assert settings.backend == "fbdev"
    assert settings.fb_device == "/dev/fb0"
    assert settings.boot_rotation is None
    assert settings.rotation_quirk is None
    assert not settings.debug_mode
    assert settings.metrics_textfile == ""
    assert settings.validate()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FBDEPTH_DEVICE_FAMILY", " Kobo ")
    monkeypatch.setenv("FBDEPTH_FB_DEVICE", "/dev/fb1")
    monkeypatch.setenv("FBDEPTH_BOOT_ROTA", "3")
    monkeypatch.setenv("FBDEPTH_ROTA_QUIRK", "ODD_INVERTED")
    monkeypatch.setenv("DEBUG", "yes")

    settings = Settings()
    assert settings.device_family == "kobo"
    assert settings.fb_device == "/dev/fb1"
    assert settings.boot_rotation == 3
    assert settings.rotation_quirk == "odd_inverted"
    assert settings.debug_mode

    capabilities = settings.capabilities()
    assert capabilities.family == "kobo"
    assert capabilities.rotation_quirk is RotationQuirk.ODD_INVERTED
    assert capabilities.boot_rotation == 3
    assert capabilities.supports_canonical_rotation


def test_family_defaults_are_kept_without_overrides(monkeypatch):
    monkeypatch.setenv("FBDEPTH_DEVICE_FAMILY", "kobo")
    assert Settings().capabilities() is DeviceFamilies.KOBO


def test_invalid_int_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("FBDEPTH_MOCK_WIDTH", "wide")
    monkeypatch.setenv("FBDEPTH_BOOT_ROTA", "upright")
    settings = Settings()
    assert settings.mock_width == 1072
    assert settings.boot_rotation is None


@pytest.mark.parametrize("env, message", [
    ({"FBDEPTH_DEVICE_FAMILY": "toaster"}, "Unknown device family"),
    ({"FBDEPTH_ROTA_QUIRK": "sideways"}, "Unknown rotation quirk"),
    ({"FBDEPTH_BOOT_ROTA": "4"}, "Boot rotation"),
    ({"FBDEPTH_BACKEND": "drm"}, "Backend must be"),
    ({"FBDEPTH_BACKEND": "mock", "FBDEPTH_MOCK_BPP": "12"}, "Mock framebuffer bitdepth"),
    ({"FBDEPTH_BACKEND": "mock", "FBDEPTH_MOCK_ORIENTATION": "5"}, "Mock einkfb orientation"),
])
def test_validate_errors(monkeypatch, env, message):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    with pytest.raises(ValueError, match=message):
        Settings().validate()


def test_validate_reports_every_error(monkeypatch):
    monkeypatch.setenv("FBDEPTH_DEVICE_FAMILY", "toaster")
    monkeypatch.setenv("FBDEPTH_BACKEND", "drm")
    with pytest.raises(ValueError) as excinfo:
        Settings().validate()
    assert "Unknown device family" in str(excinfo.value)
    assert "Backend must be" in str(excinfo.value)


def test_save_and_load_round_trip(monkeypatch, tmp_path):
    settings = Settings()
    settings.device_family = "kindle_legacy"
    settings.boot_rotation = 2
    settings.rotation_quirk = "sane"
    settings.backend = "mock"
    settings.use_syslog = True
    config_file = tmp_path / "conf" / "fbdepth.env"
    settings.save_to_file(config_file)

    # load_from_file writes to os.environ, register the keys so they get restored
    for key in ("FBDEPTH_DEVICE_FAMILY", "FBDEPTH_BOOT_ROTA", "FBDEPTH_ROTA_QUIRK", "FBDEPTH_BACKEND",
                "FBDEPTH_FB_DEVICE", "FBDEPTH_SYSLOG", "FBDEPTH_METRICS_TEXTFILE"):
        monkeypatch.setenv(key, "")

    loaded = Settings()
    loaded.load_from_file(config_file)
    assert loaded.device_family == "kindle_legacy"
    assert loaded.boot_rotation == 2
    assert loaded.rotation_quirk == "sane"
    assert loaded.backend == "mock"
    assert loaded.use_syslog
    assert loaded.capabilities().is_legacy_orientation_model


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings().load_from_file(tmp_path / "missing.env")


def test_unknown_family_lookup():
    with pytest.raises(ValueError, match="Unknown device family"):
        DeviceFamilies.get("toaster")


def test_every_family_has_a_valid_legacy_map():
    for capabilities in DeviceFamilies.all().values():
        assert DeviceFamilies.validate_legacy_map(capabilities)


def test_broken_legacy_map_is_rejected():
    broken = DeviceCapabilities(
        family="broken",
        is_legacy_orientation_model=True,
        legacy_orientation_map={orientation: 0 for orientation in LegacyOrientation},
    )
    with pytest.raises(ValueError, match="bijection"):
        DeviceFamilies.validate_legacy_map(broken)


def test_capabilities_share_the_einkfb_table():
    capabilities = DeviceCapabilities(family="custom")
    assert capabilities.legacy_orientation_map is EINKFB_ORIENTATION_MAP
    assert DeviceFamilies.KINDLE_LEGACY.legacy_orientation_map is EINKFB_ORIENTATION_MAP


def test_validate_checks_the_family_legacy_map(monkeypatch):
    broken = DeviceCapabilities(
        family="kindle_legacy",
        is_legacy_orientation_model=True,
        legacy_orientation_map={orientation: 1 for orientation in LegacyOrientation},
    )
    monkeypatch.setattr(DeviceFamilies, "KINDLE_LEGACY", broken)
    monkeypatch.setenv("FBDEPTH_DEVICE_FAMILY", "kindle_legacy")
    with pytest.raises(ValueError, match="bijection"):
        Settings().validate()


def test_preview_dir_defaults_to_working_directory(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert Settings().temp_dir.resolve() == (tmp_path / "temp").resolve()


def test_preview_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("FBDEPTH_MOCK_PREVIEW_DIR", str(tmp_path / "previews"))
    monkeypatch.setenv("FBDEPTH_MOCK_PREVIEW", "1")
    settings = Settings()
    assert settings.temp_dir == tmp_path / "previews"
    assert settings.temp_dir.is_dir()
