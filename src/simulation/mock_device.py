"""
Mock Multimeter
================
Fully functional simulated multimeter for development and testing without
hardware.

On connect the device picks a random signal profile and records the start
instant; every reading is a function of the elapsed time plus bounded noise.
The raw command path answers ``ID``, ``QM``, ``RI``, ``RMP`` and ``DS`` in
the same wire format a Fluke meter uses, so a caller talking raw protocol
cannot tell the two apart.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np
from loguru import logger

from hardware_interface import protocol
from hardware_interface.base import MultimeterDevice
from hardware_interface.models import (
    DeviceInfo,
    DeviceType,
    Measurement,
    MeasurementAttribute,
    MeasurementState,
    MockConfig,
)

from .signal_generator import SignalProfile, random_profile


MOCK_INFO = DeviceInfo(
    model="MOCK-MULTIMETER",
    serial_number="MOCK123456",
    software_version="V1.0.0-MOCK",
)

# Commands acknowledged without any effect
NOOP_COMMANDS = ("RMP", "DS")


class MockDevice(MultimeterDevice):
    """
    Simulated multimeter implementing the same contract as FlukeDevice.

    Args:
        config: Simulated latencies and optional seed
        clock: Monotonic time source in seconds, injectable for tests
    """

    def __init__(
        self,
        config: Optional[MockConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(DeviceType.MOCK)
        self.config = config or MockConfig()
        self._clock = clock
        self._rng = np.random.default_rng(self.config.seed)

        self._connected = False
        self._profile: Optional[SignalProfile] = None
        self._started_at: Optional[float] = None
        self.measurement_count = 0

    @property
    def profile(self) -> Optional[SignalProfile]:
        """Active signal profile, ``None`` while disconnected."""
        return self._profile

    def is_connected(self) -> bool:
        return self._connected

    # ---- Lifecycle ---- #

    async def connect(self) -> None:
        async with self._lock:
            if self._connected:
                return

            await asyncio.sleep(self.config.connect_delay_s)

            self._connected = True
            self._restart()
            logger.info(f"Connected to mock device ({type(self._profile).__name__} profile)")

    async def disconnect(self) -> None:
        async with self._lock:
            if not self._connected:
                return

            await asyncio.sleep(self.config.disconnect_delay_s)

            self._connected = False
            self._profile = None
            self._started_at = None
            logger.info("Disconnected from mock device")

    # ---- Behaviour ---- #

    async def identify(self) -> DeviceInfo:
        async with self._lock:
            self._require_connected()
            await asyncio.sleep(self.config.identify_delay_s)
            return MOCK_INFO

    async def get_measurement(self) -> Measurement:
        async with self._lock:
            self._require_connected()
            await asyncio.sleep(self.config.measurement_delay_s)
            return self._generate_measurement()

    async def reset(self) -> None:
        async with self._lock:
            self._require_connected()
            await asyncio.sleep(self.config.reset_delay_s)
            self._restart()
            logger.info("Mock device reset")

    async def send_command(self, command: str) -> str:
        async with self._lock:
            self._require_connected()
            await asyncio.sleep(self.config.command_delay_s)

            name = command.strip().upper()
            if name == protocol.CMD_IDENTIFY:
                raw = protocol.frame_response(
                    protocol.AckCode.OK, protocol.encode_identification(MOCK_INFO)
                )
            elif name == protocol.CMD_QUERY_MEASUREMENT:
                raw = protocol.frame_response(
                    protocol.AckCode.OK, protocol.encode_measurement(self._generate_measurement())
                )
            elif name == protocol.CMD_RESET:
                self._restart()
                raw = protocol.frame_response(protocol.AckCode.OK)
            elif name in NOOP_COMMANDS:
                raw = protocol.frame_response(protocol.AckCode.OK)
            else:
                raw = protocol.frame_response(protocol.AckCode.SYNTAX_ERROR)

            logger.debug(f"Mock command {command!r} -> {raw!r}")
            return protocol.normalize_response(raw)

    # ---- Internals ---- #

    def _restart(self) -> None:
        """Draw a new profile and restart the time base."""
        self._profile = random_profile(self._rng)
        self._started_at = self._clock()
        self.measurement_count = 0

    def _generate_measurement(self) -> Measurement:
        self.measurement_count += 1

        elapsed = max(0.0, self._clock() - self._started_at)
        value = self._profile.sample(elapsed, self._rng)

        return Measurement(
            value=value,
            unit=self._profile.unit,
            state=MeasurementState.NORMAL,
            attribute=MeasurementAttribute.NONE,
            timestamp=datetime.now(timezone.utc),
        )
