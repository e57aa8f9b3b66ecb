"""
Fluke Wire Protocol Codec
==========================
Pure encode/decode helpers for the Fluke 289/287 remote interface.

Protocol Format:
    Command:   <COMMAND><CR>
    Response:  <ACK><CR>[<PAYLOAD><CR>]

- ACK: single status digit (0 = OK, 1 = syntax error,
  2 = execution error, 5 = no data available)
- PAYLOAD: comma separated fields, e.g.
  ``FLUKE 289,V1.00,95081087`` for ``ID`` or
  ``3.300000,VDC,NORMAL,NONE`` for ``QM``

Responses are normalized before decoding: carriage returns are removed so
the ACK digit is directly followed by the payload text.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, TypeVar

from .errors import DeviceExecutionError, InvalidCommandError, ParseError
from .models import (
    DeviceInfo,
    Measurement,
    MeasurementAttribute,
    MeasurementState,
    Unit,
)


CR = "\r"
ENCODING = "ascii"

CMD_IDENTIFY = "ID"
CMD_QUERY_MEASUREMENT = "QM"
CMD_RESET = "RI"


class AckCode(Enum):
    """Acknowledgement digits sent ahead of every response."""
    OK = "0"
    SYNTAX_ERROR = "1"
    EXECUTION_ERROR = "2"
    NO_DATA = "5"


# =============================================================================
# TOKEN TABLES
# =============================================================================

UNIT_TOKENS: Dict[str, Unit] = {
    "NONE": Unit.NONE,
    "VDC": Unit.VOLT_DC,
    "VAC": Unit.VOLT_AC,
    "ADC": Unit.AMP_DC,
    "AAC": Unit.AMP_AC,
    "VAC_PLUS_DC": Unit.VOLT_AC_PLUS_DC,
    "AAC_PLUS_DC": Unit.AMP_AC_PLUS_DC,
    "V": Unit.VOLT,
    "A": Unit.AMP,
    "OHM": Unit.OHM,
    "S": Unit.SIEMENS,
    "Hz": Unit.HERTZ,
    "SEC": Unit.SECOND,
    "F": Unit.FARAD,
    "CEL": Unit.CELSIUS,
    "FAR": Unit.FAHRENHEIT,
    "PCT": Unit.PERCENT,
    "dBm": Unit.DECIBEL_M,
    "dBV": Unit.DECIBEL_V,
    "dB": Unit.DECIBEL,
    "CREST_FACTOR": Unit.CREST_FACTOR,
}

STATE_TOKENS: Dict[str, MeasurementState] = {
    "NORMAL": MeasurementState.NORMAL,
    "INVALID": MeasurementState.INVALID,
    "BLANK": MeasurementState.BLANK,
    "OL": MeasurementState.OVERLOAD,
    "OL_MINUS": MeasurementState.OVERLOAD_NEGATIVE,
    "OPEN_TC": MeasurementState.OPEN_THERMOCOUPLE,
    "DISCHARGE": MeasurementState.DISCHARGE,
}

# LEO_OHMS is the token the meter firmware actually sends
ATTRIBUTE_TOKENS: Dict[str, MeasurementAttribute] = {
    "NONE": MeasurementAttribute.NONE,
    "OPEN_CIRCUIT": MeasurementAttribute.OPEN_CIRCUIT,
    "SHORT_CIRCUIT": MeasurementAttribute.SHORT_CIRCUIT,
    "GLITCH_CIRCUIT": MeasurementAttribute.GLITCH_CIRCUIT,
    "GOOD_DIODE": MeasurementAttribute.GOOD_DIODE,
    "LEO_OHMS": MeasurementAttribute.LOW_OHMS,
    "NEGATIVE_EDGE": MeasurementAttribute.NEGATIVE_EDGE,
    "POSITIVE_EDGE": MeasurementAttribute.POSITIVE_EDGE,
    "HIGH_CURRENT": MeasurementAttribute.HIGH_CURRENT,
}

_UNIT_NAMES = {unit: token for token, unit in UNIT_TOKENS.items()}
_STATE_NAMES = {state: token for token, state in STATE_TOKENS.items()}
_ATTRIBUTE_NAMES = {attr: token for token, attr in ATTRIBUTE_TOKENS.items()}


E = TypeVar("E", bound=Enum)


def _lookup(table: Dict[str, E], token: str, kind: str) -> E:
    try:
        return table[token.strip()]
    except KeyError:
        raise ParseError(f"Unknown {kind}: {token.strip()}") from None


def parse_unit(token: str) -> Unit:
    return _lookup(UNIT_TOKENS, token, "unit")


def parse_state(token: str) -> MeasurementState:
    return _lookup(STATE_TOKENS, token, "state")


def parse_attribute(token: str) -> MeasurementAttribute:
    return _lookup(ATTRIBUTE_TOKENS, token, "attribute")


def encode_unit(unit: Unit) -> str:
    return _UNIT_NAMES[unit]


def encode_state(state: MeasurementState) -> str:
    return _STATE_NAMES[state]


def encode_attribute(attribute: MeasurementAttribute) -> str:
    return _ATTRIBUTE_NAMES[attribute]


# =============================================================================
# FRAMING
# =============================================================================

def frame_command(command: str) -> bytes:
    """Serialize a command for transmission (single trailing CR)."""
    return f"{command}{CR}".encode(ENCODING)


def normalize_response(raw: str) -> str:
    """
    Collapse a raw response into ``<ACK><PAYLOAD>``.

    Splits on carriage returns, drops stray line feeds and empty segments,
    and joins what is left without separators.

    Raises:
        ParseError: if nothing but terminators was received
    """
    segments: List[str] = [segment.strip("\n") for segment in raw.split(CR)]
    segments = [segment for segment in segments if segment]
    if not segments:
        raise ParseError("Missing ACK")
    return "".join(segments)


def frame_response(ack: AckCode, payload: str = "") -> str:
    """Build a raw response the way the instrument puts it on the wire."""
    if payload:
        return f"{ack.value}{CR}{payload}{CR}"
    return f"{ack.value}{CR}"


# =============================================================================
# DECODING
# =============================================================================

def parse_ack(response: str) -> None:
    """
    Check the acknowledgement digit of a normalized response.

    Args:
        response: Normalized response text

    Raises:
        InvalidCommandError: ACK ``1``
        DeviceExecutionError: ACK ``2`` or ``5``
        ParseError: empty response or unknown ACK digit
    """
    if not response:
        raise ParseError("Empty response")

    code = response[0]
    if code == AckCode.OK.value:
        return
    if code == AckCode.SYNTAX_ERROR.value:
        raise InvalidCommandError("Syntax error")
    if code == AckCode.EXECUTION_ERROR.value:
        raise DeviceExecutionError("Execution error")
    if code == AckCode.NO_DATA.value:
        raise DeviceExecutionError("No data available")
    raise ParseError(f"Unknown ACK code: {code}")


def strip_ack(response: str, what: str) -> str:
    """Return the payload that follows the ACK digit."""
    payload = response[1:]
    if not payload:
        raise ParseError(f"{what} payload missing")
    return payload


def parse_identification(payload: str) -> DeviceInfo:
    """
    Decode an ``ID`` payload: ``MODEL,SOFTWARE_VERSION,SERIAL_NUMBER``.

    Fields beyond the third are ignored.
    """
    parts = payload.split(",")
    if len(parts) < 3:
        raise ParseError("Invalid identification response")

    return DeviceInfo(
        model=parts[0].strip(),
        software_version=parts[1].strip(),
        serial_number=parts[2].strip(),
    )


def parse_measurement(payload: str) -> Measurement:
    """
    Decode a ``QM`` payload: ``VALUE,UNIT,STATE,ATTRIBUTE``.

    The returned measurement is stamped with the current UTC time.
    """
    parts = payload.split(",")
    if len(parts) < 4:
        raise ParseError("Invalid measurement response format")

    try:
        value = float(parts[0].strip())
    except ValueError:
        raise ParseError(f"Invalid measurement value: {parts[0]}") from None

    return Measurement(
        value=value,
        unit=parse_unit(parts[1]),
        state=parse_state(parts[2]),
        attribute=parse_attribute(parts[3]),
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# ENCODING
# =============================================================================

def encode_identification(info: DeviceInfo) -> str:
    return f"{info.model},{info.software_version},{info.serial_number}"


def encode_measurement(measurement: Measurement) -> str:
    """Encode a measurement as a ``QM`` payload (six decimal places)."""
    return ",".join([
        f"{measurement.value:.6f}",
        encode_unit(measurement.unit),
        encode_state(measurement.state),
        encode_attribute(measurement.attribute),
    ])
