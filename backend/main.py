from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from controllers import OfflineCloudService
from device_manager import DeviceManager
from errors import BridgeError

logger = logging.getLogger(__name__)

HOST = os.getenv("SMARTLIFE_HOST", "0.0.0.0")
PORT = int(os.getenv("SMARTLIFE_PORT", "8000"))

app = FastAPI(title="SmartLife Bridge API", version="1.0.0")
manager = DeviceManager(OfflineCloudService())

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await manager.shutdown()


class ControlRequest(BaseModel):
    commands: Union[Dict[str, Any], str]


class SwitchRequest(BaseModel):
    state: bool
    switch: int = 1


class ValueRequest(BaseModel):
    value: int


class HSVRequest(BaseModel):
    h: float
    s: float
    v: float


class RenameRequest(BaseModel):
    name: str


class AddTestDeviceRequest(BaseModel):
    name: str
    type: str = "switch"
    home_id: Optional[int] = None


class PairingRequest(BaseModel):
    ssid: str
    mode: str = "EZ"
    password: str = ""
    home_id: Optional[int] = None
    timeout: int = 120


class PairingValidationRequest(BaseModel):
    ssid: str
    password: str = ""
    home_id: int
    timeout: int = 120
    mode: str = "EZ"


@app.get("/api/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/homes/{home_id}/devices")
async def list_devices(home_id: int) -> Dict[str, List[Dict[str, object]]]:
    devices = await manager.get_devices(home_id)
    return {"devices": [device.to_dict() for device in devices]}


@app.post("/api/devices/{device_id}/control")
async def control_device(device_id: str, payload: ControlRequest) -> Dict[str, str]:
    await manager.control_device(device_id, payload.commands)
    return {"status": "ok", "device": device_id}


@app.post("/api/devices/{device_id}/switch")
async def set_switch(device_id: str, payload: SwitchRequest) -> Dict[str, str]:
    await manager.set_switch_state(device_id, payload.state, payload.switch)
    return {"status": "ok", "device": device_id}


@app.post("/api/devices/{device_id}/brightness")
async def set_brightness(device_id: str, payload: ValueRequest) -> Dict[str, str]:
    await manager.set_brightness(device_id, payload.value)
    return {"status": "ok", "device": device_id}


@app.post("/api/devices/{device_id}/color-temperature")
async def set_color_temperature(device_id: str, payload: ValueRequest) -> Dict[str, str]:
    await manager.set_color_temperature(device_id, payload.value)
    return {"status": "ok", "device": device_id}


@app.post("/api/devices/{device_id}/color")
async def set_color(device_id: str, payload: HSVRequest) -> Dict[str, str]:
    await manager.set_hsv_color(device_id, payload.h, payload.s, payload.v)
    return {"status": "ok", "device": device_id}


@app.get("/api/devices/{device_id}/status")
async def device_status(device_id: str, home_id: Optional[int] = None) -> Dict[str, object]:
    return {"device": device_id, "status": await manager.get_device_status(device_id, home_id)}


@app.post("/api/devices/{device_id}/rename")
async def rename_device(device_id: str, payload: RenameRequest) -> Dict[str, str]:
    await manager.rename_device(device_id, payload.name)
    return {"status": "renamed", "device": device_id}


@app.get("/api/devices/{device_id}/schema")
async def device_schema(device_id: str) -> Dict[str, object]:
    return {"device": device_id, "schema": manager.get_device_schema(device_id)}


@app.delete("/api/devices/{device_id}")
async def remove_device(device_id: str, home_id: Optional[int] = None) -> Dict[str, str]:
    await manager.remove_device(device_id, home_id)
    return {"status": "removed", "device": device_id}


@app.post("/api/test-devices")
async def add_test_device(request: AddTestDeviceRequest) -> Dict[str, object]:
    logger.info("Adding test device %r (%s) for home %s", request.name, request.type, request.home_id)
    device = manager.add_test_device(request.name, request.type)
    return device.to_dict()


@app.post("/api/test-devices/presets")
async def add_preset_test_devices() -> Dict[str, List[Dict[str, object]]]:
    devices = manager.add_preset_test_devices()
    return {"devices": [device.to_dict() for device in devices]}


@app.delete("/api/test-devices/{device_id}")
async def remove_test_device(device_id: str) -> Dict[str, str]:
    manager.remove_test_device(device_id)
    return {"status": "removed", "device": device_id}


@app.delete("/api/test-devices")
async def clear_test_devices() -> Dict[str, int]:
    return {"removed": manager.clear_all_test_devices()}


@app.get("/api/test-devices/stats")
async def deletion_stats() -> Dict[str, object]:
    return manager.deletion_stats()


@app.post("/api/pairing/start")
async def start_pairing(request: PairingRequest) -> Dict[str, object]:
    device = await manager.start_pairing(request.mode, request.ssid, home_id=request.home_id, timeout=request.timeout)
    return device.to_dict()


@app.post("/api/pairing/stop")
async def stop_pairing() -> Dict[str, object]:
    was_active = manager.stop_pairing()
    return {"status": "stopped", "wasActive": was_active}


@app.get("/api/pairing")
async def pairing_status() -> Dict[str, object]:
    return manager.pairing_status()


@app.post("/api/pairing/validate")
async def validate_pairing(request: PairingValidationRequest) -> Dict[str, object]:
    return manager.validate_pairing_conditions(
        request.ssid,
        request.password,
        request.home_id,
        request.timeout,
        request.mode,
    )


@app.post("/api/session/reset")
async def reset_session() -> Dict[str, str]:
    await manager.shutdown()
    return {"status": "reset"}


@app.exception_handler(BridgeError)
async def bridge_exception_handler(_: Request, exc: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def generic_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": str(exc)})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=HOST, port=PORT, reload=False)
