from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, List, Mapping, Optional, Protocol

from errors import RemoteBackendError
from models import DataPointValue, Device

logger = logging.getLogger(__name__)

SuccessCallback = Callable[..., None]
ErrorCallback = Callable[[Optional[str], Optional[str]], None]


class CloudDeviceService(Protocol):
    """Callback contract of the cloud device SDK.

    Each call must eventually invoke ``on_success`` or ``on_error(code, message)``,
    possibly from another thread.
    """

    def fetch_home_detail(self, home_id: int, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        ...

    def publish_dps(self, device_id: str, dps_json: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        ...

    def remove_device(self, device_id: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        ...

    def rename_device(self, device_id: str, name: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        ...


class OfflineCloudService:
    """Stand-in used when no cloud SDK is wired in; every call fails."""

    code = "CLOUD_UNAVAILABLE"
    message = "Cloud device service is not configured"

    def fetch_home_detail(self, home_id: int, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        on_error(self.code, self.message)

    def publish_dps(self, device_id: str, dps_json: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        on_error(self.code, self.message)

    def remove_device(self, device_id: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        on_error(self.code, self.message)

    def rename_device(self, device_id: str, name: str, on_success: SuccessCallback, on_error: ErrorCallback) -> None:
        on_error(self.code, self.message)


class CloudDeviceController:
    """Adapts the callback-based cloud service to awaitables returning Device records."""

    def __init__(self, service: CloudDeviceService) -> None:
        self._service = service

    async def fetch_home_devices(self, home_id: int) -> List[Device]:
        home = await self._call(
            "GET_DEVICES_ERROR",
            lambda ok, err: self._service.fetch_home_detail(home_id, ok, err),
        )
        payloads = (home or {}).get("deviceList") or []
        devices = [Device.from_cloud(payload) for payload in payloads]
        logger.debug("Home %s returned %d cloud devices", home_id, len(devices))
        return devices

    async def send_command(self, device_id: str, commands: Mapping[str, DataPointValue]) -> None:
        dps_json = json.dumps(dict(commands))
        logger.debug("Publishing dps to %s: %s", device_id, dps_json)
        await self._call(
            "CONTROL_DEVICE_ERROR",
            lambda ok, err: self._service.publish_dps(device_id, dps_json, ok, err),
        )

    async def remove_device(self, device_id: str) -> None:
        await self._call(
            "REMOVE_DEVICE_ERROR",
            lambda ok, err: self._service.remove_device(device_id, ok, err),
        )
        logger.info("Cloud device removed: %s", device_id)

    async def rename_device(self, device_id: str, name: str) -> None:
        await self._call(
            "RENAME_DEVICE_ERROR",
            lambda ok, err: self._service.rename_device(device_id, name, ok, err),
        )
        logger.info("Cloud device %s renamed to %r", device_id, name)

    async def _call(self, fallback_code: str, invoke: Callable[[SuccessCallback, ErrorCallback], None]) -> Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _resolve(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def _reject(code: Optional[str], message: Optional[str]) -> None:
            if not future.done():
                future.set_exception(RemoteBackendError(code or fallback_code, message or "Unknown cloud error"))

        def on_success(value: Any = None) -> None:
            loop.call_soon_threadsafe(_resolve, value)

        def on_error(code: Optional[str] = None, message: Optional[str] = None) -> None:
            logger.warning("Cloud call failed: %s - %s", code, message)
            loop.call_soon_threadsafe(_reject, code, message)

        try:
            invoke(on_success, on_error)
        except Exception as exc:
            logger.exception("Cloud service raised while starting call")
            raise RemoteBackendError(fallback_code, str(exc)) from exc
        return await future
