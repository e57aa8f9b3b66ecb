"""
Session Manager
================
Central registry of connected multimeters.

Responsibilities:
- Construct the right device variant for a DeviceType
- Connect and identify before a session becomes visible
- Hand out stable ``device_NNNN`` identifiers (never reused)
- Forward operations to the device behind an identifier

Locking:
- ``_table_lock`` guards the identifier table and counter only; it is never
  held while a device is talking to its instrument.
- Each device serializes its own protocol exchanges with its own lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from loguru import logger

from hardware_interface import (
    ConfigError,
    ConnectedDevice,
    DeviceInfo,
    DeviceStatus,
    DeviceType,
    FlukeConfig,
    FlukeDevice,
    Measurement,
    MockConfig,
    MultimeterDevice,
    SessionNotFoundError,
)
from simulation import MockDevice


DeviceFactory = Callable[[DeviceType, Optional[str]], MultimeterDevice]


def parse_device_type(value: Union[str, DeviceType]) -> DeviceType:
    """
    Resolve a device type from its serialized name.

    Raises:
        ConfigError: if the name is not a known device type
    """
    if isinstance(value, DeviceType):
        return value
    try:
        return DeviceType(value)
    except ValueError:
        raise ConfigError(f"Invalid device type: {value}") from None


def create_device(
    device_type: DeviceType,
    port: Optional[str] = None,
    fluke_config: Optional[FlukeConfig] = None,
    mock_config: Optional[MockConfig] = None,
) -> MultimeterDevice:
    """
    Create a device instance for the given type.

    Args:
        device_type: Which variant to build
        port: Serial port (Fluke only)
        fluke_config: Framing parameters for Fluke devices
        mock_config: Latencies/seed for the mock device

    Returns:
        An unconnected device
    """
    if device_type.is_fluke:
        return FlukeDevice(device_type, port=port, config=fluke_config)
    if device_type is DeviceType.MOCK:
        return MockDevice(config=mock_config)
    raise ConfigError(f"Invalid device type: {device_type}")


@dataclass
class Session:
    """One connected device tracked under an identifier."""
    id: str
    device_type: DeviceType
    info: DeviceInfo
    device: MultimeterDevice

    def status(self) -> DeviceStatus:
        return DeviceStatus(
            id=self.id,
            device_type=self.device_type,
            info=self.info,
            connected=self.device.is_connected(),
        )


class SessionManager:
    """
    Owns every connected device and the identifiers they are known by.

    Usage:
        manager = SessionManager()
        session = await manager.connect(DeviceType.MOCK)
        reading = await manager.get_measurement(session.id)
        await manager.disconnect(session.id)
    """

    ID_PREFIX = "device_"

    def __init__(
        self,
        fluke_config: Optional[FlukeConfig] = None,
        mock_config: Optional[MockConfig] = None,
        device_factory: Optional[DeviceFactory] = None,
    ):
        """
        Initialize session manager.

        Args:
            fluke_config: Framing parameters passed to every Fluke device
            mock_config: Latencies/seed passed to every mock device
            device_factory: Override for device construction
        """
        self.fluke_config = fluke_config or FlukeConfig()
        self.mock_config = mock_config or MockConfig()
        self._factory = device_factory or self._default_factory

        self._sessions: Dict[str, Session] = {}
        self._next_id = 1
        self._table_lock = asyncio.Lock()

        logger.info("SessionManager initialized")

    def _default_factory(self, device_type: DeviceType, port: Optional[str]) -> MultimeterDevice:
        return create_device(device_type, port, self.fluke_config, self.mock_config)

    def __len__(self) -> int:
        return len(self._sessions)

    # ---- Lifecycle ---- #

    async def connect(
        self,
        device_type: Union[str, DeviceType],
        port: Optional[str] = None,
    ) -> ConnectedDevice:
        """
        Connect to and identify a device, then register it.

        The table is only touched once both steps succeeded.

        Args:
            device_type: Device type or its serialized name
            port: Serial port (required for Fluke devices)

        Returns:
            The new session's id, type and identification
        """
        device_type = parse_device_type(device_type)
        device = self._factory(device_type, port)

        await device.connect()
        try:
            info = await device.identify()
        except Exception:
            await self._close_quietly(device)
            raise

        async with self._table_lock:
            session_id = f"{self.ID_PREFIX}{self._next_id:04d}"
            self._next_id += 1
            self._sessions[session_id] = Session(
                id=session_id,
                device_type=device_type,
                info=info,
                device=device,
            )

        logger.info(f"Session {session_id}: {device_type.value} '{info.model}' (S/N {info.serial_number})")
        return ConnectedDevice(id=session_id, device_type=device_type, info=info)

    async def disconnect(self, session_id: str) -> str:
        """
        Remove a session and disconnect its device.

        The entry is removed even if the device fails to disconnect.

        Returns:
            Confirmation message
        """
        async with self._table_lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"Device {session_id} not found")

        await session.device.disconnect()
        logger.info(f"Session {session_id} closed")
        return f"Disconnected device {session_id}"

    async def shutdown(self) -> None:
        """Disconnect every remaining session."""
        async with self._table_lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            try:
                await session.device.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting {session.id} during shutdown: {e}")

        if sessions:
            logger.info(f"Closed {len(sessions)} session(s) on shutdown")

    # ---- Device operations ---- #

    async def get_measurement(self, session_id: str) -> Measurement:
        session = await self._lookup(session_id)
        return await session.device.get_measurement()

    async def get_status(self, session_id: str) -> DeviceStatus:
        session = await self._lookup(session_id)
        return session.status()

    async def reset(self, session_id: str) -> str:
        session = await self._lookup(session_id)
        await session.device.reset()
        return "Device reset successfully"

    async def send_raw_command(self, session_id: str, command: str) -> str:
        session = await self._lookup(session_id)
        return await session.device.send_command(command)

    async def list_connected(self) -> List[DeviceStatus]:
        """Snapshot of all sessions in creation order."""
        async with self._table_lock:
            sessions = list(self._sessions.values())
        return [session.status() for session in sessions]

    # ---- Internals ---- #

    async def _lookup(self, session_id: str) -> Session:
        async with self._table_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Device {session_id} not found")
        return session

    @staticmethod
    async def _close_quietly(device: MultimeterDevice) -> None:
        try:
            await device.disconnect()
        except Exception as e:
            logger.warning(f"Cleanup after failed identify raised: {e}")
