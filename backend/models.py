from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from errors import InvalidPayloadError

DataPointValue = Union[bool, int, float, str]

ICON_BASE_URL = "https://images.tuyacn.com/smart/icon/"
UNNAMED_DEVICE = "Unnamed device"
DEFAULT_DEVICE_TYPE = "switch"


@dataclass(frozen=True)
class DeviceTemplate:
    icon: str
    functions: List[str]
    status: Dict[str, DataPointValue]

    @property
    def icon_url(self) -> str:
        return f"{ICON_BASE_URL}{self.icon}"


# Per-type capability table for locally synthesized devices.
DEVICE_TEMPLATES: Dict[str, DeviceTemplate] = {
    "light": DeviceTemplate(
        icon="light.png",
        functions=["switch_1", "bright_value", "temp_value", "colour_data"],
        status={"switch_1": False, "bright_value": 255, "temp_value": 500, "work_mode": "white"},
    ),
    "sensor": DeviceTemplate(
        icon="sensor.png",
        functions=["temp_current", "humidity_value", "battery_percentage"],
        status={"temp_current": 22, "humidity_value": 45, "battery_percentage": 85},
    ),
    "plug": DeviceTemplate(
        icon="plug.png",
        functions=["switch_1", "cur_power", "cur_voltage"],
        status={"switch_1": False, "cur_power": 0, "cur_voltage": 220},
    ),
    "fan": DeviceTemplate(
        icon="fan.png",
        functions=["switch_1", "fan_speed", "mode"],
        status={"switch_1": False, "fan_speed": 1, "mode": "straight_wind"},
    ),
    "thermostat": DeviceTemplate(
        icon="thermostat.png",
        functions=["switch_1", "temp_set", "temp_current", "mode"],
        status={"switch_1": False, "temp_set": 23, "temp_current": 22, "mode": "auto"},
    ),
    DEFAULT_DEVICE_TYPE: DeviceTemplate(
        icon="switch.png",
        functions=["switch_1", "switch_2", "switch_3"],
        status={"switch_1": False, "switch_2": False, "switch_3": False},
    ),
}


def get_template(device_type: str) -> DeviceTemplate:
    return DEVICE_TEMPLATES.get((device_type or "").lower(), DEVICE_TEMPLATES[DEFAULT_DEVICE_TYPE])


@dataclass
class Device:
    id: str
    name: str
    icon_url: str = ""
    online: bool = False
    local_online: bool = False
    product_id: str = ""
    uuid: str = ""
    category: str = ""
    product_name: str = ""
    is_sub_device: bool = False
    is_shared: bool = False
    supported_functions: List[str] = field(default_factory=list)
    status: Dict[str, DataPointValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # keep order, drop duplicates
        self.supported_functions = list(dict.fromkeys(self.supported_functions))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Device id cannot be changed once assigned")
        super().__setattr__(name, value)

    def to_dict(self) -> Dict[str, object]:
        return {
            "devId": self.id,
            "name": self.name,
            "iconUrl": self.icon_url,
            "isOnline": self.online,
            "isLocalOnline": self.local_online,
            "productId": self.product_id,
            "uuid": self.uuid,
            "category": self.category,
            "productName": self.product_name,
            "isSub": self.is_sub_device,
            "isShare": self.is_shared,
            "supportedFunctions": list(self.supported_functions),
            "status": dict(self.status),
        }

    @classmethod
    def from_cloud(cls, payload: Mapping[str, Any]) -> "Device":
        """Build a record from a cloud device payload, filling safe defaults."""
        product_id = str(payload.get("productId") or "")
        schema = payload.get("schemaMap") or {}
        dps = payload.get("dps") or {}
        return cls(
            id=str(payload.get("devId") or ""),
            name=str(payload.get("name") or UNNAMED_DEVICE),
            icon_url=str(payload.get("iconUrl") or ""),
            online=bool(payload.get("isOnline", False)),
            local_online=bool(payload.get("isLocalOnline", False)),
            product_id=product_id,
            uuid=str(payload.get("uuid") or ""),
            category=str(payload.get("category") or ""),
            product_name=str(payload.get("productName") or product_id),
            is_sub_device=False,
            is_shared=bool(payload.get("isShare", False)),
            supported_functions=[str(code) for code in schema],
            status={str(dp): _coerce_dp_value(value) for dp, value in dps.items() if value is not None},
        )

    @classmethod
    def from_template(
        cls,
        device_id: str,
        name: str,
        device_type: str,
        *,
        uuid: str = "",
        product_id: Optional[str] = None,
        product_name: Optional[str] = None,
        status: Optional[Mapping[str, DataPointValue]] = None,
    ) -> "Device":
        template = get_template(device_type)
        return cls(
            id=device_id,
            name=name,
            icon_url=template.icon_url,
            online=True,
            local_online=True,
            product_id=product_id if product_id is not None else f"mock_product_{device_type}",
            uuid=uuid,
            category=device_type,
            product_name=product_name if product_name is not None else f"Mock {device_type} Device",
            supported_functions=list(template.functions),
            status=dict(status if status is not None else template.status),
        )


def _coerce_dp_value(value: Any) -> DataPointValue:
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def normalize_commands(commands: Union[Mapping[str, Any], str, None]) -> Dict[str, DataPointValue]:
    """Validate a commands payload and return it as a flat data-point dict.

    Accepts a mapping or a JSON object string.
    """
    if isinstance(commands, (str, bytes)):
        try:
            commands = json.loads(commands)
        except ValueError as exc:
            raise InvalidPayloadError(f"Commands are not valid JSON: {exc}") from exc
    if not isinstance(commands, Mapping):
        raise InvalidPayloadError("Commands must be a JSON object mapping function codes to values")

    normalized: Dict[str, DataPointValue] = {}
    for key, value in commands.items():
        if not isinstance(key, str) or not key:
            raise InvalidPayloadError(f"Invalid function code {key!r}")
        if not isinstance(value, (bool, int, float, str)):
            raise InvalidPayloadError(f"Unsupported value for '{key}': expected boolean, number or string")
        normalized[key] = value
    return normalized
