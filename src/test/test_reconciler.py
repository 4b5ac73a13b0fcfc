"""
Tests for the reconciliation pass, end to end against the simulated framebuffer.
"""

import pytest

from fbdepth.config.devices import DeviceFamilies
from fbdepth.display.mock_framebuffer import MockFramebuffer
from fbdepth.monitoring.prometheus_collector import ReconcileMetrics
from fbdepth.reconcile.errors import ApplyFailure, ProbeFailure, UnsupportedOperation
from fbdepth.reconcile.models import (
    AUTO_PORTRAIT,
    CanonicalRotation,
    GrayscaleCode,
    LegacyOrientation,
    NightMode,
    TargetRequest,
)
from fbdepth.reconcile.reconciler import Reconciler, ReconcileState


def test_noop_when_already_in_mode(mock_fb):
    with mock_fb:
        result = Reconciler(mock_fb, DeviceFamilies.GENERIC).run(TargetRequest(bitdepth=32))

    assert result.state is ReconcileState.NOOP_DONE
    assert result.history == [
        ReconcileState.START,
        ReconcileState.PROBED,
        ReconcileState.RESOLVED,
        ReconcileState.DECIDED,
        ReconcileState.NOOP_DONE,
    ]
    assert not result.applied
    assert mock_fb.put_count == 0


def test_switch_to_8bpp(mock_fb):
    with mock_fb:
        result = Reconciler(mock_fb, DeviceFamilies.GENERIC).run(TargetRequest(bitdepth=8))

    assert result.applied
    assert result.history[-3:] == [ReconcileState.APPLYING, ReconcileState.REPROBED, ReconcileState.DONE]
    assert result.final_snapshot.bitdepth == 8
    assert result.final_snapshot.grayscale == GrayscaleCode.NONE_8BIT
    assert result.final_snapshot.scanline_stride == 1072
    assert result.apply_duration is not None
    assert mock_fb.put_count == 1


def test_second_run_is_a_noop(mock_fb):
    request = TargetRequest(bitdepth=8, rotation=3, night_mode=NightMode.ON)
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.GENERIC)
        assert reconciler.run(request).applied
        assert reconciler.run(request).state is ReconcileState.NOOP_DONE

    assert mock_fb.put_count == 1


def test_odd_rotation_swaps_dimensions(mock_fb):
    with mock_fb:
        result = Reconciler(mock_fb, DeviceFamilies.GENERIC).run(TargetRequest(rotation=1))

    assert result.final_snapshot.current_rotation == 1
    assert (result.final_snapshot.width, result.final_snapshot.height) == (1448, 1072)


def test_canonical_rotation_on_kobo(mock_fb):
    with mock_fb:
        result = Reconciler(mock_fb, DeviceFamilies.KOBO).run(TargetRequest(rotation=CanonicalRotation.UR))

    # Kobo kernels invert every rotation
    assert result.final_snapshot.current_rotation == 2
    assert mock_fb.var.rotate == 2


def test_auto_portrait_on_kobo(mock_fb):
    with mock_fb:
        result = Reconciler(mock_fb, DeviceFamilies.KOBO).run(TargetRequest(rotation=AUTO_PORTRAIT))

    assert result.resolved.rotation == 2
    assert mock_fb.var.rotate == 2


def test_canonical_rotation_unsupported(mock_fb):
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.KINDLE)
        with pytest.raises(UnsupportedOperation):
            reconciler.run(TargetRequest(rotation=CanonicalRotation.CW))

    assert reconciler.last_result.state is ReconcileState.FAILED
    assert mock_fb.put_count == 0


def test_toggle_twice_restores_night_mode():
    framebuffer = MockFramebuffer(bits_per_pixel=8, grayscale=GrayscaleCode.NONE_8BIT)
    request = TargetRequest(night_mode=NightMode.TOGGLE)
    with framebuffer:
        reconciler = Reconciler(framebuffer, DeviceFamilies.GENERIC)
        reconciler.run(request)
        assert framebuffer.var.grayscale == GrayscaleCode.INVERTED_8BIT
        reconciler.run(request)
        assert framebuffer.var.grayscale == GrayscaleCode.NONE_8BIT

    assert framebuffer.put_count == 2


def test_toggle_above_8bpp_forces_flag_off():
    framebuffer = MockFramebuffer(bits_per_pixel=32, grayscale=GrayscaleCode.INVERTED_8BIT)
    with framebuffer:
        Reconciler(framebuffer, DeviceFamilies.GENERIC).run(TargetRequest(night_mode=NightMode.TOGGLE))

    assert framebuffer.var.grayscale == GrayscaleCode.NO_GRAYSCALE


def test_4bpp_grayscale_is_left_alone():
    framebuffer = MockFramebuffer(bits_per_pixel=4, grayscale=3)
    with framebuffer:
        result = Reconciler(framebuffer, DeviceFamilies.GENERIC).run(TargetRequest(rotation=2))

    assert result.applied
    assert framebuffer.var.grayscale == 3


def test_apply_failure(mock_fb):
    mock_fb.fail_on.add("put_var_info")
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.GENERIC)
        with pytest.raises(ApplyFailure):
            reconciler.run(TargetRequest(bitdepth=16))

    assert reconciler.last_result.history[-2:] == [ReconcileState.APPLYING, ReconcileState.FAILED]
    assert mock_fb.var.bits_per_pixel == 32


def test_probe_failure(mock_fb):
    mock_fb.fail_on.add("get_fix_info")
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.GENERIC)
        with pytest.raises(ProbeFailure):
            reconciler.run(TargetRequest(bitdepth=16))

    assert reconciler.last_result.history == [ReconcileState.START, ReconcileState.FAILED]


def test_legacy_orientation_switch():
    framebuffer = MockFramebuffer(legacy_orientation=LegacyOrientation.PORTRAIT)
    with framebuffer:
        result = Reconciler(framebuffer, DeviceFamilies.KINDLE_LEGACY).run(TargetRequest(rotation=1))

    assert framebuffer.legacy_orientation == LegacyOrientation.LANDSCAPE
    # einkfb ignores the rotate field, so it is never written there
    assert framebuffer.var.rotate == 0
    assert result.final_snapshot.current_rotation == 1
    assert (result.final_snapshot.width, result.final_snapshot.height) == (1448, 1072)


def test_legacy_orientation_untouched_for_depth_change():
    framebuffer = MockFramebuffer(legacy_orientation=LegacyOrientation.LANDSCAPE_UPSIDE_DOWN)
    with framebuffer:
        Reconciler(framebuffer, DeviceFamilies.KINDLE_LEGACY).run(TargetRequest(bitdepth=8, rotation=3))

    assert framebuffer.legacy_orientation == LegacyOrientation.LANDSCAPE_UPSIDE_DOWN
    assert framebuffer.put_count == 1


def test_metrics_recorded(mock_fb):
    metrics = ReconcileMetrics()
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.GENERIC, metrics=metrics)
        reconciler.run(TargetRequest(bitdepth=8))
        reconciler.run(TargetRequest(bitdepth=8))

    registry = metrics.registry
    assert registry.get_sample_value('fbdepth_reconcile_total', {'outcome': 'applied'}) == 1.0
    assert registry.get_sample_value('fbdepth_reconcile_total', {'outcome': 'noop'}) == 1.0
    assert registry.get_sample_value('fbdepth_changes_total', {'kind': 'bitdepth'}) == 1.0
    assert registry.get_sample_value('fbdepth_changes_total', {'kind': 'grayscale'}) == 1.0
    assert registry.get_sample_value('fbdepth_changes_total', {'kind': 'rotation'}) is None
    assert registry.get_sample_value('fbdepth_apply_duration_seconds_count') == 1.0
    assert registry.get_sample_value('fbdepth_bitdepth_bits') == 8.0
    assert registry.get_sample_value('fbdepth_grayscale_flag') == 1.0


def test_metrics_record_failures(mock_fb):
    metrics = ReconcileMetrics()
    mock_fb.fail_on.add("put_var_info")
    with mock_fb:
        with pytest.raises(ApplyFailure):
            Reconciler(mock_fb, DeviceFamilies.GENERIC, metrics=metrics).run(TargetRequest(bitdepth=16))

    assert metrics.registry.get_sample_value('fbdepth_reconcile_total', {'outcome': 'failed'}) == 1.0


def test_toggle_above_8bpp_still_switches(mock_fb):
    request = TargetRequest(night_mode=NightMode.TOGGLE)
    with mock_fb:
        reconciler = Reconciler(mock_fb, DeviceFamilies.GENERIC)
        assert reconciler.run(request).applied
        assert reconciler.run(request).applied

    assert mock_fb.put_count == 2
    assert mock_fb.var.grayscale == GrayscaleCode.NO_GRAYSCALE
