"""
Fluke 289/287 Serial Device
============================
Implements the remote interface of Fluke 289 and 287 multimeters.

Features:
- Async command/response exchange over pyserial
- Carriage-return framing with partial-read accumulation
- Dual timeout policy (ACK timeout vs. payload idle timeout)
- One in-flight exchange per device
"""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional

import serial
import serial.tools.list_ports
from loguru import logger

from . import protocol
from .base import MultimeterDevice
from .errors import ConfigError, DeviceConnectionError, DeviceTimeoutError
from .models import DeviceInfo, DeviceType, FlukeConfig, Measurement


def list_serial_ports() -> List[str]:
    """
    List the serial ports known to the operating system.

    Returns:
        Port device names (e.g. ``/dev/ttyUSB0``, ``COM3``)
    """
    try:
        return [port.device for port in serial.tools.list_ports.comports()]
    except (serial.SerialException, OSError) as e:
        raise DeviceConnectionError(f"Failed to get available ports: {e}") from e


class FlukeDevice(MultimeterDevice):
    """
    Fluke 289/287 over a serial (USB IR) cable.

    Both models speak the same protocol; they differ only in the model
    string the meter reports for ``ID``.

    Usage:
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0")
        await device.connect()
        info = await device.identify()
        reading = await device.get_measurement()
        await device.disconnect()
    """

    def __init__(
        self,
        device_type: DeviceType = DeviceType.FLUKE_289,
        port: Optional[str] = None,
        config: Optional[FlukeConfig] = None,
    ):
        """
        Initialize Fluke device.

        Args:
            device_type: Fluke289 or Fluke287
            port: Serial port name; required before connect()
            config: Serial and framing parameters
        """
        if not device_type.is_fluke:
            raise ConfigError(f"Unsupported device type for Fluke driver: {device_type.value}")

        super().__init__(device_type)
        self.port = port
        self.config = config or FlukeConfig()
        self._serial: Optional[serial.Serial] = None

    def is_connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    # -------- Lifecycle ----------

    async def connect(self) -> None:
        async with self._lock:
            if self.is_connected():
                return
            self._serial = None

            if not self.port:
                raise ConfigError("No port specified")

            try:
                port = serial.Serial(
                    port=self.port,
                    baudrate=self.config.baudrate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    xonxoff=False,
                    rtscts=False,
                    dsrdtr=False,
                    timeout=0,
                    write_timeout=self.config.write_timeout_s,
                )
            except (serial.SerialException, OSError) as e:
                raise DeviceConnectionError(f"Failed to open {self.port}: {e}") from e

            # The IR cable is powered from the handshake lines
            try:
                port.dtr = True
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Failed to assert DTR line on {self.port}: {e}")
            try:
                port.rts = True
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Failed to assert RTS line on {self.port}: {e}")

            try:
                port.reset_input_buffer()
                port.reset_output_buffer()
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Failed to clear serial buffers on {self.port}: {e}")

            try:
                await asyncio.sleep(self.config.connect_settle_s)
            except BaseException:
                port.close()
                raise

            self._serial = port
            logger.success(f"Connected to {self.device_type.value} on {self.port} at {self.config.baudrate} baud")

    async def disconnect(self) -> None:
        async with self._lock:
            if self._serial is None:
                return

            try:
                if self._serial.is_open:
                    self._serial.close()
            except (serial.SerialException, OSError) as e:
                # Port was yanked (USB unplug / power-cycle)
                logger.warning(f"Error closing {self.port}: {e}")
            finally:
                self._serial = None

            logger.info(f"Disconnected from {self.device_type.value} on {self.port}")

    # -------- Protocol ----------

    async def identify(self) -> DeviceInfo:
        response = await self._query(protocol.CMD_IDENTIFY)
        return protocol.parse_identification(protocol.strip_ack(response, "Identification"))

    async def get_measurement(self) -> Measurement:
        response = await self._query(protocol.CMD_QUERY_MEASUREMENT)
        return protocol.parse_measurement(protocol.strip_ack(response, "Measurement"))

    async def reset(self) -> None:
        await self._query(protocol.CMD_RESET)
        logger.info(f"{self.device_type.value} on {self.port} reset")

    async def send_command(self, command: str) -> str:
        async with self._lock:
            return await self._exchange(command)

    async def _query(self, command: str) -> str:
        """Exchange a command and check its acknowledgement."""
        response = await self.send_command(command)
        protocol.parse_ack(response)
        return response

    async def _exchange(self, command: str) -> str:
        """
        Write one command and read back its complete response.

        Must be called with ``self._lock`` held.

        Returns:
            Normalized response (ACK digit followed by payload)

        Raises:
            DeviceConnectionError: not connected or serial I/O failed
            DeviceTimeoutError: no carriage return within the ACK timeout
            ParseError: response contained only terminators
        """
        if not self.is_connected():
            raise DeviceConnectionError("Not connected")
        port = self._serial

        payload = protocol.frame_command(command)
        logger.debug(f"Sending command {command!r}: {payload!r}")

        try:
            port.write(payload)
            port.flush()
        except (serial.SerialException, OSError) as e:
            raise DeviceConnectionError(f"Failed to send {command!r}: {e}") from e

        # Instrument processing latency
        await asyncio.sleep(self.config.settle_delay_s)

        buffer = bytearray()
        carriage_returns = 0
        last_activity = time.monotonic()

        while True:
            try:
                waiting = port.in_waiting
                chunk = port.read(waiting) if waiting else b""
            except (serial.SerialException, OSError) as e:
                raise DeviceConnectionError(f"Failed to read response to {command!r}: {e}") from e

            if chunk:
                logger.debug(f"Received chunk for {command!r}: {bytes(chunk)!r}")
                buffer.extend(chunk)
                carriage_returns += chunk.count(b"\r")
                last_activity = time.monotonic()

                # ACK line + payload line both received
                if carriage_returns >= 2:
                    break
                continue

            elapsed = time.monotonic() - last_activity
            if carriage_returns == 0:
                if elapsed > self.config.ack_timeout_s:
                    logger.warning(f"Timeout before ACK for {command!r} on {self.port}")
                    raise DeviceTimeoutError()
            elif elapsed > self.config.payload_idle_timeout_s:
                # ACK-only response, no payload forthcoming
                break

            await asyncio.sleep(self.config.read_backoff_s)

        if not buffer:
            raise DeviceTimeoutError()

        raw = buffer.decode(protocol.ENCODING, errors="replace")
        return protocol.normalize_response(raw)
