"""Error types surfaced by the SmartLife bridge."""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base class for bridge errors.

    Every error carries a stable machine-readable ``code`` and a human-readable
    ``message``; the HTTP layer renders both.
    """

    code = "BRIDGE_ERROR"
    http_status = 500

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        if code:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class DeviceNotFoundError(BridgeError):
    code = "DEVICE_NOT_FOUND"
    http_status = 404

    def __init__(self, device_id: str, message: Optional[str] = None) -> None:
        self.device_id = device_id
        super().__init__(message or f"Test device not found: {device_id}")


class RemoteBackendError(BridgeError):
    """Error reported by the cloud device service, passed through untouched."""

    http_status = 502

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message, code=code)


class PairingInProgressError(BridgeError):
    code = "PAIRING_IN_PROGRESS"
    http_status = 409

    def __init__(self) -> None:
        super().__init__("Device pairing is already in progress. Stop current pairing first.")


class PairingCancelledError(BridgeError):
    code = "PAIRING_CANCELLED"
    http_status = 409

    def __init__(self) -> None:
        super().__init__("Device pairing was stopped before it completed")


class PairingFailedError(BridgeError):
    code = "PAIRING_SIMULATION_ERROR"
    http_status = 500


class InvalidPayloadError(BridgeError):
    code = "INVALID_PAYLOAD"
    http_status = 400
