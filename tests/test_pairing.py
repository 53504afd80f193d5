"""Tests for the simulated pairing session."""

import asyncio

import pytest

from controllers.mock import MockDeviceController
from errors import PairingCancelledError, PairingFailedError, PairingInProgressError
from pairing import DEFAULT_DELAYS, PairingMode, PairingSession, PairingState

from .conftest import TEST_PAIRING_DELAYS, FakeClock


@pytest.fixture
def store(clock: FakeClock) -> MockDeviceController:
    """Fixture providing an empty store on a fixed clock."""
    return MockDeviceController(clock=clock)


@pytest.fixture
def session(store: MockDeviceController) -> PairingSession:
    """Fixture providing a pairing session with short delays."""
    return PairingSession(store, delays=TEST_PAIRING_DELAYS)


class TestDefaults:
    """Tests for the default simulation parameters."""

    def test_ez_completes_before_ap(self) -> None:
        """Test that EZ mode is simulated faster than AP mode."""
        assert DEFAULT_DELAYS[PairingMode.EZ] < DEFAULT_DELAYS[PairingMode.AP]

    def test_starts_idle(self, session: PairingSession) -> None:
        """Test that a new session is idle with no mode."""
        assert session.state is PairingState.IDLE
        assert session.status() == {"state": "idle", "mode": None, "ssid": None, "startedAt": None}


class TestStart:
    """Tests for start."""

    @pytest.mark.asyncio
    async def test_completion_inserts_paired_device(
        self,
        session: PairingSession,
        store: MockDeviceController,
    ) -> None:
        """Test that an EZ pairing resolves with one new paired device and returns to idle."""
        device = await session.start(PairingMode.EZ, "HomeNet", timeout_hint=100)

        assert device.id.startswith("paired_")
        assert "HomeNet" in device.name
        assert device.status == {"switch_1": False}
        assert store.list_devices() == [device]
        assert session.state is PairingState.IDLE

    @pytest.mark.asyncio
    async def test_in_progress_while_waiting(self, session: PairingSession) -> None:
        """Test that the session reports its mode and network while pending."""
        task = asyncio.create_task(session.start(PairingMode.AP, "Garage"))
        await asyncio.sleep(0)

        status = session.status()
        assert status["state"] == "in_progress"
        assert status["mode"] == "AP"
        assert status["ssid"] == "Garage"
        assert status["startedAt"].endswith("+00:00")

        await task
        assert session.state is PairingState.IDLE

    @pytest.mark.asyncio
    async def test_second_start_is_rejected_without_side_effects(
        self,
        session: PairingSession,
        store: MockDeviceController,
    ) -> None:
        """Test that a concurrent start fails fast and leaves the first attempt intact."""
        first = asyncio.create_task(session.start(PairingMode.AP, "HomeNet"))
        await asyncio.sleep(0)

        with pytest.raises(PairingInProgressError) as exc_info:
            await session.start(PairingMode.EZ, "Other")

        assert exc_info.value.code == "PAIRING_IN_PROGRESS"
        assert store.list_devices() == []
        assert session.mode is PairingMode.AP

        device = await first
        assert store.list_devices() == [device]
        assert "HomeNet" in device.name

    @pytest.mark.asyncio
    async def test_creation_failure_returns_to_idle(
        self,
        session: PairingSession,
        store: MockDeviceController,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a failing completion rejects and never leaves the session stuck."""

        def _boom(network_name: str) -> None:
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(store, "add_paired_device", _boom)

        with pytest.raises(PairingFailedError) as exc_info:
            await session.start(PairingMode.EZ, "HomeNet")

        assert exc_info.value.code == "PAIRING_SIMULATION_ERROR"
        assert session.state is PairingState.IDLE

    @pytest.mark.asyncio
    async def test_sequential_pairings_are_accepted(
        self,
        session: PairingSession,
        store: MockDeviceController,
    ) -> None:
        """Test that a new pairing can start once the previous one completed."""
        first = await session.start(PairingMode.EZ, "A")
        second = await session.start(PairingMode.EZ, "B")

        assert first.id != second.id
        assert len(store) == 2


class TestStop:
    """Tests for stop."""

    def test_stop_when_idle(self, session: PairingSession) -> None:
        """Test that stopping an idle session is a harmless no-op."""
        assert session.stop() is False
        assert session.state is PairingState.IDLE

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_completion(
        self,
        session: PairingSession,
        store: MockDeviceController,
    ) -> None:
        """Test that a stopped attempt never inserts a device and its caller is told."""
        task = asyncio.create_task(session.start(PairingMode.EZ, "HomeNet"))
        await asyncio.sleep(0)

        assert session.stop() is True
        assert session.state is PairingState.IDLE

        with pytest.raises(PairingCancelledError):
            await task

        await asyncio.sleep(TEST_PAIRING_DELAYS[PairingMode.AP] * 2)
        assert store.list_devices() == []

    @pytest.mark.asyncio
    async def test_start_accepted_after_stop(self, session: PairingSession, store: MockDeviceController) -> None:
        """Test that stop frees the session for a new attempt."""
        task = asyncio.create_task(session.start(PairingMode.AP, "Old"))
        await asyncio.sleep(0)
        session.stop()
        with pytest.raises(PairingCancelledError):
            await task

        device = await session.start(PairingMode.EZ, "New")

        assert "New" in device.name
        assert store.list_devices() == [device]

    @pytest.mark.asyncio
    async def test_cancelled_caller_abandons_session(
        self,
        session: PairingSession,
        store: MockDeviceController,
    ) -> None:
        """Test that cancelling the waiting task cancels the simulated completion."""
        task = asyncio.create_task(session.start(PairingMode.EZ, "HomeNet"))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.state is PairingState.IDLE
        await asyncio.sleep(TEST_PAIRING_DELAYS[PairingMode.AP] * 2)
        assert store.list_devices() == []
