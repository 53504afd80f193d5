"""Pytest configuration and fixtures for SmartLife bridge tests."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from device_manager import DeviceManager
from pairing import PairingMode

FIXED_TIME = 1_700_000_000.0
FIXED_TIME_MS = int(FIXED_TIME * 1000)
TEST_PAIRING_DELAYS = {PairingMode.EZ: 0.01, PairingMode.AP: 0.03}


class FakeClock:
    """Clock returning a fixed instant until moved by the test."""

    def __init__(self, now: float = FIXED_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeCloudService:
    """Cloud service double honouring the callback contract.

    Callbacks are delivered on the next loop iteration, like the real SDK
    answering after a network round trip.
    """

    def __init__(self) -> None:
        self.homes: Dict[int, Dict[str, Any]] = {}
        self.error: Optional[Tuple[Optional[str], Optional[str]]] = None
        self.raise_on_call: Optional[Exception] = None
        self.published: List[Tuple[str, str]] = []
        self.removed: List[str] = []
        self.renamed: List[Tuple[str, str]] = []

    def _deliver(self, on_success, on_error, value: Any = None) -> None:
        if self.raise_on_call is not None:
            raise self.raise_on_call
        loop = asyncio.get_running_loop()
        if self.error is not None:
            loop.call_soon(on_error, *self.error)
        elif value is None:
            loop.call_soon(on_success)
        else:
            loop.call_soon(on_success, value)

    def fetch_home_detail(self, home_id, on_success, on_error) -> None:
        self._deliver(on_success, on_error, self.homes.get(home_id, {"deviceList": []}))

    def publish_dps(self, device_id, dps_json, on_success, on_error) -> None:
        self.published.append((device_id, dps_json))
        self._deliver(on_success, on_error)

    def remove_device(self, device_id, on_success, on_error) -> None:
        self.removed.append(device_id)
        self._deliver(on_success, on_error)

    def rename_device(self, device_id, name, on_success, on_error) -> None:
        self.renamed.append((device_id, name))
        self._deliver(on_success, on_error)


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a controllable clock."""
    return FakeClock()


@pytest.fixture
def cloud_service() -> FakeCloudService:
    """Fixture providing a cloud service double with no devices."""
    return FakeCloudService()


@pytest.fixture
def sample_cloud_device() -> Dict[str, Any]:
    """Fixture providing a device payload as returned by the cloud service."""
    return {
        "devId": "bf12ab34cd56ef78",
        "name": "Desk Lamp",
        "iconUrl": "https://images.example.com/lamp.png",
        "isOnline": True,
        "isLocalOnline": False,
        "productId": "key8u54q9dtru5jw",
        "uuid": "uuid-desk-lamp",
        "category": "dj",
        "isShare": True,
        "schemaMap": {"switch_led": {}, "bright_value": {}},
        "dps": {"switch_led": True, "bright_value": 120},
    }


@pytest.fixture
def manager(cloud_service: FakeCloudService, clock: FakeClock) -> DeviceManager:
    """Fixture providing a device manager with short pairing delays."""
    return DeviceManager(cloud_service, pairing_delays=TEST_PAIRING_DELAYS, clock=clock)
