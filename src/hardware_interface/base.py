"""
Abstract base class for multimeter devices.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from .errors import DeviceConnectionError
from .models import DeviceInfo, DeviceType, Measurement


class MultimeterDevice(ABC):
    """
    Common interface for real and simulated multimeters.

    Every operation that talks to the instrument runs under ``self._lock``,
    so at most one request/response exchange is in flight per device.
    """

    def __init__(self, device_type: DeviceType) -> None:
        self._device_type = device_type
        self._lock = asyncio.Lock()

    @property
    def device_type(self) -> DeviceType:
        return self._device_type

    # ---- Lifecycle ---- #

    @abstractmethod
    async def connect(self) -> None:
        """Open the transport. Calling it on a connected device is a no-op."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the transport. Always succeeds; repeated calls are no-ops."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Report connection state without blocking or doing I/O."""

    # ---- Behaviour ---- #

    @abstractmethod
    async def identify(self) -> DeviceInfo: ...

    @abstractmethod
    async def get_measurement(self) -> Measurement: ...

    @abstractmethod
    async def reset(self) -> None: ...

    @abstractmethod
    async def send_command(self, command: str) -> str:
        """Send a raw protocol command and return the normalized response."""

    # ---- Helpers ---- #

    def _require_connected(self) -> None:
        if not self.is_connected():
            raise DeviceConnectionError("Not connected")

    async def __aenter__(self) -> MultimeterDevice:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
