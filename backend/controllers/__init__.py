"""Device backends for the SmartLife bridge."""

from .cloud import CloudDeviceController, CloudDeviceService, OfflineCloudService  # noqa: F401
from .mock import MockDeviceController  # noqa: F401
