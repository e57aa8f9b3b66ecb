"""
Hardware Interface Package
===========================
Communication layer for bench multimeters:
- Fluke 289 / 287 over serial (IR USB cable)
- Wire protocol codec
- Common device interface shared with the simulator

This package abstracts the instrument protocol and provides a unified
interface for the rest of the application.
"""

from .models import (
    DeviceType,
    Unit,
    MeasurementState,
    MeasurementAttribute,
    DeviceInfo,
    Measurement,
    FlukeConfig,
    MockConfig,
    ConnectedDevice,
    DeviceStatus,
)
from .errors import (
    MultimeterError,
    DeviceConnectionError,
    ConfigError,
    DeviceTimeoutError,
    ParseError,
    DeviceExecutionError,
    InvalidCommandError,
    SessionNotFoundError,
)
from .base import MultimeterDevice

# concrete transport
from .fluke_device import FlukeDevice, list_serial_ports

__all__ = [
    "DeviceType",
    "Unit",
    "MeasurementState",
    "MeasurementAttribute",
    "DeviceInfo",
    "Measurement",
    "FlukeConfig",
    "MockConfig",
    "ConnectedDevice",
    "DeviceStatus",
    "MultimeterError",
    "DeviceConnectionError",
    "ConfigError",
    "DeviceTimeoutError",
    "ParseError",
    "DeviceExecutionError",
    "InvalidCommandError",
    "SessionNotFoundError",
    "MultimeterDevice",
    "FlukeDevice",
    "list_serial_ports",
]
