from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Mapping, Optional

from errors import DeviceNotFoundError
from models import DEFAULT_DEVICE_TYPE, DataPointValue, Device

logger = logging.getLogger(__name__)

PAIRED_DEVICE_TYPE = DEFAULT_DEVICE_TYPE


class MockDeviceController:
    """In-memory store of simulated devices.

    Holds test devices created on request and the devices produced by simulated
    pairing. Nothing is persisted: the store lives as long as its owner and is
    emptied by ``reset()`` on teardown.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.time
        self._devices: Dict[str, Device] = {}
        self._counter = 1
        self._last_paired_ms = 0

    def __len__(self) -> int:
        return len(self._devices)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def list_devices(self) -> List[Device]:
        return list(self._devices.values())

    def get_device(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def add_test_device(
        self,
        name: str,
        device_type: str,
        status: Optional[Mapping[str, DataPointValue]] = None,
    ) -> Device:
        number = self._counter
        self._counter += 1
        device_id = f"test_{device_type}_{number}_{self._now_ms()}"
        device = Device.from_template(
            device_id,
            name,
            device_type,
            uuid=f"mock_uuid_{number}",
            status=status,
        )
        self._devices[device.id] = device
        logger.info("Test device created: %s (%s)", device.id, name)
        return device

    def add_paired_device(self, network_name: str) -> Device:
        timestamp = max(self._now_ms(), self._last_paired_ms + 1)
        self._last_paired_ms = timestamp
        device = Device.from_template(
            f"paired_{timestamp}",
            f"Paired Device - {network_name}",
            PAIRED_DEVICE_TYPE,
            uuid=f"paired_uuid_{timestamp}",
            product_id=f"paired_product_{timestamp}",
            product_name="Newly Paired Device",
        )
        device.supported_functions = ["switch_1"]
        device.status = {"switch_1": False}
        self._devices[device.id] = device
        logger.info("Simulated paired device created: %s", device.name)
        return device

    def remove(self, device_id: str) -> Device:
        device = self._devices.pop(device_id, None)
        if device is None:
            raise DeviceNotFoundError(device_id)
        logger.info("Test device removed: %s", device_id)
        return device

    def clear_all(self) -> int:
        count = len(self._devices)
        self._devices.clear()
        logger.info("Cleared %d test devices", count)
        return count

    def rename(self, device_id: str, name: str) -> Device:
        device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        device.name = name
        logger.info("Test device %s renamed to %r", device_id, name)
        return device

    def control(self, device_id: str, commands: Mapping[str, DataPointValue]) -> Device:
        device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        # status is replaced wholesale, data points missing from commands are dropped
        device.status = dict(commands)
        logger.debug("Mock device %s status now %s", device_id, device.status)
        return device

    def reset(self) -> None:
        self._devices.clear()
        self._counter = 1
        self._last_paired_ms = 0
