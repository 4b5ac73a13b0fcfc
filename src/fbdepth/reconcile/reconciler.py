"""
One reconciliation pass: probe, resolve, decide, and apply only if needed.

    START -> PROBED -> RESOLVED -> DECIDED -> NOOP_DONE
                                           -> APPLYING -> REPROBED -> DONE

Any failure moves the pass to FAILED and the error propagates to the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .applier import FramebufferApplier
from .decision import decide, resolve_target
from .errors import FBDepthError
from .models import (
    ChangeVerdict,
    GrayscaleCode,
    HardwareSnapshot,
    ResolvedTarget,
    TargetRequest,
)
from .probe import StateProbe


class ReconcileState(Enum):
    START = "start"
    PROBED = "probed"
    RESOLVED = "resolved"
    DECIDED = "decided"
    NOOP_DONE = "noop_done"
    APPLYING = "applying"
    REPROBED = "reprobed"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    """What happened during a pass."""

    state: ReconcileState = ReconcileState.START
    snapshot: Optional[HardwareSnapshot] = None
    resolved: Optional[ResolvedTarget] = None
    verdict: Optional[ChangeVerdict] = None
    final_snapshot: Optional[HardwareSnapshot] = None
    apply_duration: Optional[float] = None
    history: List[ReconcileState] = field(default_factory=lambda: [ReconcileState.START])

    @property
    def applied(self) -> bool:
        return self.state is ReconcileState.DONE


class Reconciler:
    """Drives a single reconciliation pass against one open framebuffer."""

    def __init__(self, framebuffer, capabilities, logger: Optional[logging.Logger] = None, metrics=None):
        """
        Initialize the reconciler.

        Args:
            framebuffer: An open Framebuffer backend
            capabilities: DeviceCapabilities of the device family
            logger: Logger the whole pass reports to
            metrics: Optional ReconcileMetrics
        """
        self.framebuffer = framebuffer
        self.capabilities = capabilities
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = metrics
        self.probe = StateProbe(framebuffer, capabilities, self.logger)
        self.applier = FramebufferApplier(framebuffer, capabilities, self.logger)
        self.last_result: Optional[ReconcileResult] = None

    def _advance(self, result: ReconcileResult, state: ReconcileState):
        result.state = state
        result.history.append(state)

    def run(self, request: TargetRequest) -> ReconcileResult:
        """
        Reconcile the framebuffer with request.

        Returns:
            ReconcileResult ending in NOOP_DONE or DONE

        Raises:
            FBDepthError: on any failure, after the result has moved to FAILED
        """
        result = ReconcileResult()
        self.last_result = result
        try:
            self._run(request, result)
        except FBDepthError:
            self._advance(result, ReconcileState.FAILED)
            if self.metrics:
                self.metrics.record_outcome('failed')
            raise

        if self.metrics:
            self.metrics.record_outcome('applied' if result.applied else 'noop')
            self.metrics.record_snapshot(result.final_snapshot or result.snapshot)
            if result.verdict:
                self.metrics.record_changes(result.verdict)
            if result.apply_duration is not None:
                self.metrics.record_apply_duration(result.apply_duration)
        return result

    def _run(self, request: TargetRequest, result: ReconcileResult):
        result.snapshot = self.probe.probe()
        self._advance(result, ReconcileState.PROBED)

        result.resolved = resolve_target(result.snapshot, request, self.capabilities, self.logger)
        self._advance(result, ReconcileState.RESOLVED)

        result.verdict = decide(result.snapshot, result.resolved, self.logger)
        self._advance(result, ReconcileState.DECIDED)

        if not result.verdict.any_change:
            self.logger.debug("No changes needed")
            self._advance(result, ReconcileState.NOOP_DONE)
            return

        self._advance(result, ReconcileState.APPLYING)
        start_time = time.monotonic()
        self.applier.apply(result.snapshot, result.resolved)
        result.apply_duration = time.monotonic() - start_time
        self.logger.debug(
            f"Switched framebuffer ({', '.join(result.verdict.changed_kinds())}) "
            f"in {result.apply_duration:.3f}s"
        )

        # Recap
        result.final_snapshot = self.probe.probe()
        self._advance(result, ReconcileState.REPROBED)
        self._check_confirmation(request, result)
        self._advance(result, ReconcileState.DONE)

    def _check_confirmation(self, request: TargetRequest, result: ReconcileResult):
        """Warn if the driver did not end up where we asked it to."""
        if result.resolved.grayscale is GrayscaleCode.TOGGLE:
            return
        recheck = decide(
            result.final_snapshot,
            resolve_target(result.final_snapshot, request, self.capabilities, self.logger),
            self.logger,
        )
        if recheck.any_change:
            self.logger.warning(
                f"Framebuffer did not fully honor the requested mode "
                f"(still differs: {', '.join(recheck.changed_kinds())})"
            )
