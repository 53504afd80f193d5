from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from controllers.mock import MockDeviceController
from errors import PairingCancelledError, PairingFailedError, PairingInProgressError
from models import Device

logger = logging.getLogger(__name__)


class PairingMode(str, Enum):
    EZ = "EZ"
    AP = "AP"


class PairingState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


PAIRING_EZ_DELAY = float(os.getenv("SMARTLIFE_PAIRING_EZ_DELAY", "3"))
PAIRING_AP_DELAY = float(os.getenv("SMARTLIFE_PAIRING_AP_DELAY", "6"))

DEFAULT_DELAYS: Dict[PairingMode, float] = {
    PairingMode.EZ: PAIRING_EZ_DELAY,
    PairingMode.AP: PAIRING_AP_DELAY,
}


class PairingSession:
    """Simulated device pairing, one attempt at a time.

    ``start`` moves the session to IN_PROGRESS and resolves after the mode's
    fixed delay with a freshly paired device inserted into the mock store.
    ``stop`` always returns the session to IDLE; it also cancels the pending
    completion, so a stopped attempt never creates a device and its waiting
    caller gets ``PairingCancelledError``.
    """

    def __init__(self, store: MockDeviceController, delays: Optional[Dict[PairingMode, float]] = None) -> None:
        self._store = store
        self._delays = dict(DEFAULT_DELAYS)
        if delays:
            self._delays.update(delays)
        self._state = PairingState.IDLE
        self._mode: Optional[PairingMode] = None
        self._ssid: Optional[str] = None
        self._started_at: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> PairingState:
        return self._state

    @property
    def mode(self) -> Optional[PairingMode]:
        return self._mode

    @property
    def in_progress(self) -> bool:
        return self._state is PairingState.IN_PROGRESS

    def status(self) -> Dict[str, object]:
        return {
            "state": self._state.value,
            "mode": self._mode.value if self._mode else None,
            "ssid": self._ssid,
            "startedAt": self._started_at,
        }

    async def start(self, mode: PairingMode, ssid: str, timeout_hint: Optional[int] = None) -> Device:
        if self.in_progress:
            raise PairingInProgressError()

        mode = PairingMode(mode)
        delay = self._delays[mode]
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        self._state = PairingState.IN_PROGRESS
        self._mode = mode
        self._ssid = ssid
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._pending = future
        self._timer = loop.call_later(delay, self._complete, future, ssid)
        logger.info(
            "Pairing started: mode=%s ssid=%s timeout_hint=%s completes in %.1fs",
            mode.value,
            ssid,
            timeout_hint,
            delay,
        )

        try:
            return await future
        except asyncio.CancelledError:
            if self._pending is future:
                logger.info("Pairing caller went away, abandoning %s session", mode.value)
                self._cancel_timer()
                self._reset()
            raise

    def stop(self) -> bool:
        was_active = self.in_progress
        pending = self._pending
        self._cancel_timer()
        self._reset()
        if pending is not None and not pending.done():
            pending.set_exception(PairingCancelledError())
        logger.info("Device pairing stopped (was active: %s)", was_active)
        return was_active

    def _complete(self, future: asyncio.Future, ssid: str) -> None:
        self._timer = None
        if future.done() or self._pending is not future:
            return
        try:
            device = self._store.add_paired_device(ssid)
        except Exception as exc:
            logger.exception("Pairing simulation failed")
            self._reset()
            future.set_exception(PairingFailedError(f"Pairing simulation failed: {exc}"))
            return
        self._reset()
        logger.info("Pairing completed: %s", device.id)
        future.set_result(device)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset(self) -> None:
        self._state = PairingState.IDLE
        self._mode = None
        self._ssid = None
        self._started_at = None
        self._pending = None
