"""
Hardware Interface - Data Models
=================================
Pydantic models for multimeter measurements, identification and configuration.

Enumerations serialize by name (``"VoltDc"``, ``"Fluke289"``) so that the
HTTP layer and any front end stay stable if wire tokens ever change.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceType(str, Enum):
    """Supported instrument variants."""
    FLUKE_289 = "Fluke289"
    FLUKE_287 = "Fluke287"
    MOCK = "Mock"

    @property
    def is_fluke(self) -> bool:
        return self in (DeviceType.FLUKE_289, DeviceType.FLUKE_287)


class Unit(str, Enum):
    """Measurement units reported by the instrument."""
    NONE = "None"
    VOLT_DC = "VoltDc"
    VOLT_AC = "VoltAc"
    AMP_DC = "AmpDc"
    AMP_AC = "AmpAc"
    VOLT_AC_PLUS_DC = "VoltAcPlusDc"
    AMP_AC_PLUS_DC = "AmpAcPlusDc"
    VOLT = "Volt"  # peak measurements
    AMP = "Amp"  # peak measurements
    OHM = "Ohm"
    SIEMENS = "Siemens"
    HERTZ = "Hertz"
    SECOND = "Second"
    FARAD = "Farad"
    CELSIUS = "Celsius"
    FAHRENHEIT = "Fahrenheit"
    PERCENT = "Percent"
    DECIBEL_M = "DecibelM"
    DECIBEL_V = "DecibelV"
    DECIBEL = "Decibel"
    CREST_FACTOR = "CrestFactor"


class MeasurementState(str, Enum):
    """State of the primary display."""
    NORMAL = "Normal"
    INVALID = "Invalid"
    BLANK = "Blank"
    OVERLOAD = "Overload"
    OVERLOAD_NEGATIVE = "OverloadNegative"
    OPEN_THERMOCOUPLE = "OpenThermocouple"
    DISCHARGE = "Discharge"  # capacitance discharge error


class MeasurementAttribute(str, Enum):
    """Additional qualifier attached to a reading."""
    NONE = "None"
    OPEN_CIRCUIT = "OpenCircuit"
    SHORT_CIRCUIT = "ShortCircuit"
    GLITCH_CIRCUIT = "GlitchCircuit"
    GOOD_DIODE = "GoodDiode"
    LOW_OHMS = "LowOhms"
    NEGATIVE_EDGE = "NegativeEdge"
    POSITIVE_EDGE = "PositiveEdge"
    HIGH_CURRENT = "HighCurrent"  # displayed value is flashing


# =============================================================================
# DATA MODELS
# =============================================================================

class DeviceInfo(BaseModel):
    """Identification returned by the ``ID`` command."""
    model_config = ConfigDict(frozen=True)

    model: str
    serial_number: str
    software_version: str


class Measurement(BaseModel):
    """
    A single reading from the primary display.

    The timestamp is taken when the reading is captured, never from the wire.
    """
    model_config = ConfigDict(frozen=True)

    value: float
    unit: Unit
    state: MeasurementState = MeasurementState.NORMAL
    attribute: MeasurementAttribute = MeasurementAttribute.NONE
    timestamp: Optional[datetime] = None


# =============================================================================
# DEVICE CONFIGURATION MODELS
# =============================================================================

class FlukeConfig(BaseModel):
    """Serial and framing parameters for Fluke 289/287 meters."""
    baudrate: int = Field(115200, gt=0)

    # Instrument processing latency between write and first read
    settle_delay_s: float = Field(0.05, ge=0)

    # No carriage return seen for this long -> instrument unresponsive
    ack_timeout_s: float = Field(5.0, gt=0)

    # ACK line seen, then idle for this long -> no payload follows
    payload_idle_timeout_s: float = Field(0.75, gt=0)

    # Sleep between empty polls of the port
    read_backoff_s: float = Field(0.01, ge=0)

    # Delay after opening the port before the first command
    connect_settle_s: float = Field(0.15, ge=0)

    write_timeout_s: float = Field(1.0, gt=0)


class MockConfig(BaseModel):
    """Simulated latencies and random seed for the mock multimeter."""
    connect_delay_s: float = Field(0.1, ge=0)
    disconnect_delay_s: float = Field(0.05, ge=0)
    identify_delay_s: float = Field(0.05, ge=0)
    measurement_delay_s: float = Field(0.02, ge=0)
    reset_delay_s: float = Field(0.2, ge=0)
    command_delay_s: float = Field(0.03, ge=0)

    seed: Optional[int] = None

    @classmethod
    def instant(cls, seed: Optional[int] = None) -> MockConfig:
        """Configuration with every simulated delay set to zero."""
        return cls(
            connect_delay_s=0.0,
            disconnect_delay_s=0.0,
            identify_delay_s=0.0,
            measurement_delay_s=0.0,
            reset_delay_s=0.0,
            command_delay_s=0.0,
            seed=seed,
        )


# =============================================================================
# SESSION MODELS
# =============================================================================

class ConnectedDevice(BaseModel):
    """Result of a successful connect."""
    id: str
    device_type: DeviceType
    info: DeviceInfo


class DeviceStatus(ConnectedDevice):
    """Status entry for one session."""
    connected: bool
