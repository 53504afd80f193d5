from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from controllers import CloudDeviceController, CloudDeviceService, MockDeviceController
from errors import DeviceNotFoundError, InvalidPayloadError, RemoteBackendError
from models import DataPointValue, Device, normalize_commands
from pairing import PairingMode, PairingSession

logger = logging.getLogger(__name__)

MOCK_ID_PREFIXES = ("mock_", "test_", "paired_")

# Read-only data points of the simulated devices
READ_ONLY_FUNCTIONS = {"temp_current", "humidity_value", "battery_percentage", "cur_power", "cur_voltage"}

BASIC_SCHEMA = [{"id": "switch_1", "code": "switch_1", "name": "Switch", "type": "Boolean", "mode": "rw"}]

PRESET_TEST_DEVICES = [
    {
        "name": "Living Room Light",
        "type": "light",
        "state": {"switch_1": True, "bright_value": 200, "work_mode": "white"},
    },
    {
        "name": "Kitchen Switch",
        "type": "switch",
        "state": {"switch_1": True, "switch_2": False, "switch_3": False},
    },
    {
        "name": "Bedroom Sensor",
        "type": "sensor",
        "state": {"temp_current": 24, "humidity_value": 42, "battery_percentage": 78},
    },
    {
        "name": "TV Plug",
        "type": "plug",
        "state": {"switch_1": True, "cur_power": 85, "cur_voltage": 220},
    },
]


class DeviceOwner(str, Enum):
    MOCK = "mock"
    REMOTE = "remote"


@dataclass(frozen=True)
class DeviceRef:
    owner: DeviceOwner
    device_id: str


def classify_device_id(device_id: str) -> DeviceRef:
    if device_id.startswith(MOCK_ID_PREFIXES):
        return DeviceRef(DeviceOwner.MOCK, device_id)
    return DeviceRef(DeviceOwner.REMOTE, device_id)


class DeviceManager:
    """One device catalog over the cloud service and the local mock store.

    A manager is the device session: it owns the mock store and the pairing
    session, and ``shutdown()`` tears both down together.
    """

    def __init__(
        self,
        cloud_service: CloudDeviceService,
        *,
        pairing_delays: Optional[Dict[PairingMode, float]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.cloud = CloudDeviceController(cloud_service)
        self.mock = MockDeviceController(clock=clock)
        self.pairing = PairingSession(self.mock, delays=pairing_delays)

    async def get_devices(self, home_id: int) -> List[Device]:
        try:
            remote = await self.cloud.fetch_home_devices(home_id)
        except RemoteBackendError as exc:
            logger.warning(
                "Cloud devices unavailable for home %s (%s: %s), returning %d mock devices only",
                home_id,
                exc.code,
                exc.message,
                len(self.mock),
            )
            remote = []
        combined = remote + self.mock.list_devices()
        logger.debug("Home %s: %d cloud + %d mock devices", home_id, len(remote), len(combined) - len(remote))
        return combined

    async def control_device(self, device_id: str, commands: Union[Mapping[str, Any], str]) -> None:
        normalized = normalize_commands(commands)
        ref = classify_device_id(device_id)
        if ref.owner is DeviceOwner.MOCK:
            self.mock.control(ref.device_id, normalized)
        else:
            await self.cloud.send_command(ref.device_id, normalized)

    async def remove_device(self, device_id: str, home_id: Optional[int] = None) -> None:
        ref = classify_device_id(device_id)
        logger.info("Removing %s device %s from home %s", ref.owner.value, device_id, home_id)
        if ref.owner is DeviceOwner.MOCK:
            self.mock.remove(ref.device_id)
        else:
            await self.cloud.remove_device(ref.device_id)

    async def get_device_status(self, device_id: str, home_id: Optional[int] = None) -> Dict[str, DataPointValue]:
        """Current data-point values of one device.

        Cloud devices are read from their home's device list, so ``home_id`` is
        required for them.
        """
        ref = classify_device_id(device_id)
        if ref.owner is DeviceOwner.MOCK:
            device = self.mock.get_device(ref.device_id)
            if device is None:
                raise DeviceNotFoundError(device_id)
            return dict(device.status)
        if home_id is None:
            raise InvalidPayloadError("A home id is required to query a cloud device")
        for device in await self.cloud.fetch_home_devices(home_id):
            if device.id == ref.device_id:
                return dict(device.status)
        raise DeviceNotFoundError(device_id, f"Device {device_id} not found in home {home_id}")

    async def rename_device(self, device_id: str, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise InvalidPayloadError("Device name must not be empty")
        ref = classify_device_id(device_id)
        if ref.owner is DeviceOwner.MOCK:
            self.mock.rename(ref.device_id, name)
        else:
            await self.cloud.rename_device(ref.device_id, name)

    def add_test_device(self, name: str, device_type: str) -> Device:
        return self.mock.add_test_device(name, device_type)

    def add_preset_test_devices(self) -> List[Device]:
        return [
            self.mock.add_test_device(preset["name"], preset["type"], status=preset["state"])
            for preset in PRESET_TEST_DEVICES
        ]

    def remove_test_device(self, device_id: str) -> Device:
        return self.mock.remove(device_id)

    def clear_all_test_devices(self) -> int:
        return self.mock.clear_all()

    def deletion_stats(self) -> Dict[str, object]:
        total = len(self.mock)
        # Real devices are not tracked locally.
        return {
            "totalDevices": total,
            "testDevices": total,
            "realDevices": 0,
            "canDeleteTest": total > 0,
            "canDeleteReal": True,
        }

    async def set_switch_state(self, device_id: str, state: bool, switch_number: int = 1) -> None:
        if switch_number < 1:
            raise InvalidPayloadError("Switch number must be 1 or greater")
        await self.control_device(device_id, {f"switch_{switch_number}": bool(state)})

    async def set_brightness(self, device_id: str, value: int) -> None:
        _check_range("Brightness", value, 0, 255)
        await self.control_device(device_id, {"bright_value": value})

    async def set_color_temperature(self, device_id: str, value: int) -> None:
        _check_range("Color temperature", value, 0, 1000)
        await self.control_device(device_id, {"temp_value": value})

    async def set_hsv_color(self, device_id: str, hue: float, saturation: float, value: float) -> None:
        _check_range("Hue", hue, 0, 360)
        _check_range("Saturation", saturation, 0, 100)
        _check_range("Value", value, 0, 100)
        colour = {"h": round(hue), "s": round(saturation * 10), "v": round(value * 10)}
        await self.control_device(device_id, {"colour_data": json.dumps(colour)})

    def get_device_schema(self, device_id: str) -> List[Dict[str, str]]:
        ref = classify_device_id(device_id)
        if ref.owner is DeviceOwner.REMOTE:
            return [dict(entry) for entry in BASIC_SCHEMA]
        device = self.mock.get_device(ref.device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return [
            {
                "id": code,
                "code": code,
                "name": code.replace("_", " ").capitalize(),
                "type": _schema_type(device.status.get(code)),
                "mode": "ro" if code in READ_ONLY_FUNCTIONS else "rw",
            }
            for code in device.supported_functions
        ]

    async def start_pairing(
        self,
        mode: Union[PairingMode, str],
        ssid: str,
        home_id: Optional[int] = None,
        timeout: Optional[int] = None,
    ) -> Device:
        pairing_mode = _parse_mode(mode)
        if pairing_mode is None:
            raise InvalidPayloadError(f"Unsupported pairing mode '{mode}'")
        logger.info("Pairing requested for home %s via %s", home_id, pairing_mode.value)
        return await self.pairing.start(pairing_mode, ssid, timeout_hint=timeout)

    def stop_pairing(self) -> bool:
        return self.pairing.stop()

    def pairing_status(self) -> Dict[str, object]:
        return self.pairing.status()

    def validate_pairing_conditions(
        self,
        ssid: str,
        password: str,
        home_id: int,
        timeout: int,
        mode: Union[PairingMode, str],
    ) -> Dict[str, object]:
        valid_ssid = bool(ssid and ssid.strip())
        valid_password = len(password or "") >= 8
        valid_home_id = home_id > 0
        valid_timeout = 30 <= timeout <= 300
        valid_mode = _parse_mode(mode) is not None
        available = not self.pairing.in_progress

        errors: List[str] = []
        warnings: List[str] = []
        if not valid_ssid:
            errors.append("Wi-Fi network name is required")
        if not valid_home_id:
            errors.append("A valid home must be selected")
        if not valid_mode:
            errors.append(f"Unsupported pairing mode '{mode}'")
        if not available:
            errors.append("Device pairing is already in progress")
        if not valid_password:
            warnings.append("Wi-Fi password is shorter than 8 characters")
        if not valid_timeout:
            warnings.append("Timeout should be between 30 and 300 seconds")

        return {
            "canProceed": not errors,
            "status": "ready" if not errors else "not_ready",
            "errors": errors,
            "warnings": warnings,
            "ssid": ssid,
            "homeId": home_id,
            "timeout": timeout,
            "mode": mode,
            "passwordProvided": bool(password),
            "validSSID": valid_ssid,
            "validPassword": valid_password,
            "validHomeId": valid_home_id,
            "validTimeout": valid_timeout,
            "validMode": valid_mode,
            "pairingAvailable": available,
        }

    async def shutdown(self) -> None:
        self.pairing.stop()
        self.mock.reset()
        logger.info("Device session torn down")


def _parse_mode(mode: Union[PairingMode, str]) -> Optional[PairingMode]:
    if isinstance(mode, PairingMode):
        return mode
    try:
        return PairingMode(str(mode).upper())
    except ValueError:
        return None


def _check_range(label: str, value: float, low: float, high: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not low <= value <= high:
        raise InvalidPayloadError(f"{label} must be between {low} and {high}")


def _schema_type(value: Optional[DataPointValue]) -> str:
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Float"
    return "String"
