"""
Target resolution and change detection.

resolve_target() turns what the operator asked for into concrete native
values for this device; decide() compares those against a snapshot. Both are
pure apart from logging, so the same request against the same state always
gives the same answer.
"""

import logging
from typing import Optional

from .grayscale import derive_grayscale
from .models import (
    AutoPortrait,
    CanonicalRotation,
    ChangeVerdict,
    GrayscaleCode,
    HardwareSnapshot,
    ResolvedTarget,
    TargetRequest,
)
from .rotation import (
    resolve_auto_portrait,
    rotation_to_string,
    to_native,
    validate_native_rotation,
)


logger = logging.getLogger(__name__)


def _resolve_rotation(snapshot, request, capabilities, log) -> Optional[int]:
    rotation = request.rotation
    if rotation is None:
        return None

    if isinstance(rotation, CanonicalRotation):
        native = to_native(rotation, capabilities)
        log.debug(f"Requested canonical rota {rotation.value} translates to {native} for this device")
        return native

    if isinstance(rotation, AutoPortrait):
        if not capabilities.supports_auto_portrait:
            log.debug(f"No automatic Portrait orientation on {capabilities.family} devices, leaving rotation alone")
            return None
        native = resolve_auto_portrait(snapshot)
        log.debug(f"Device's expected Portrait orientation should be: {native} ({rotation_to_string(native)})!")
        return native

    return validate_native_rotation(rotation)


def resolve_target(snapshot: HardwareSnapshot,
                   request: TargetRequest,
                   capabilities,
                   log: Optional[logging.Logger] = None) -> ResolvedTarget:
    """
    Compute the effective target mode for a request on this device.

    Args:
        snapshot: Current framebuffer state
        request: Requested mode (unspecified fields keep their current value)
        capabilities: DeviceCapabilities of the device family
        log: Logger to report decisions to

    Returns:
        ResolvedTarget with a native rotation (or None when rotation is left alone)

    Raises:
        UnsupportedOperation: canonical rotation on a family without canonical support
        InvalidRotation: native rotation outside of 0..3
    """
    log = log or logger
    bitdepth = request.bitdepth if request.bitdepth is not None else snapshot.bitdepth
    rotation = _resolve_rotation(snapshot, request, capabilities, log)
    grayscale = derive_grayscale(bitdepth, request.night_mode)

    return ResolvedTarget(
        bitdepth=bitdepth,
        rotation=rotation,
        grayscale=grayscale,
        from_canonical=isinstance(request.rotation, CanonicalRotation),
    )


def decide(snapshot: HardwareSnapshot,
           resolved: ResolvedTarget,
           log: Optional[logging.Logger] = None) -> ChangeVerdict:
    """Work out which parts of the mode differ from the snapshot."""
    log = log or logger

    if resolved.grayscale is GrayscaleCode.KEEP_CURRENT:
        grayscale_changed = False
    elif resolved.grayscale is GrayscaleCode.TOGGLE:
        # The live flag is only read at apply time, so a toggle always switches,
        # even above 8bpp where the flag ends up at 0 again
        grayscale_changed = True
    else:
        grayscale_changed = snapshot.grayscale != resolved.grayscale
        if not grayscale_changed:
            log.debug(f"Current grayscale flag is already {int(resolved.grayscale)}!")

    bitdepth_changed = snapshot.bitdepth != resolved.bitdepth
    if not bitdepth_changed:
        if grayscale_changed:
            log.debug(f"Current bitdepth is already {resolved.bitdepth}bpp, but the grayscale flag is bogus!")
        else:
            log.debug(f"Current bitdepth is already {resolved.bitdepth}bpp!")

    rotation_changed = False
    if resolved.rotation is not None:
        rotation_changed = snapshot.current_rotation != resolved.rotation
        if not rotation_changed:
            log.debug(f"Current rotation is already {resolved.rotation}!")

    return ChangeVerdict(
        bitdepth_changed=bitdepth_changed,
        rotation_changed=rotation_changed,
        grayscale_changed=grayscale_changed,
    )
