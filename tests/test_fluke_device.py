"""
Tests for the Fluke serial device and its framing loop.
"""

import asyncio
from unittest.mock import patch

import pytest
import serial

from hardware_interface import (
    ConfigError,
    DeviceConnectionError,
    DeviceExecutionError,
    DeviceTimeoutError,
    DeviceType,
    FlukeDevice,
    InvalidCommandError,
    MeasurementAttribute,
    MeasurementState,
    ParseError,
    Unit,
    list_serial_ports,
)

from conftest import FLUKE_ACK_ONLY, FLUKE_ID_REPLY, FLUKE_QM_REPLY, FakeSerial


SERIAL_CLASS = "hardware_interface.fluke_device.serial.Serial"


def connected_device(fake: FakeSerial, config, device_type=DeviceType.FLUKE_289) -> FlukeDevice:
    """Device with the fake port already attached."""
    device = FlukeDevice(device_type, port="/dev/ttyUSB0", config=config)
    device._serial = fake
    return device


class NoHandshakeSerial(FakeSerial):
    """Adapter without DTR/RTS support."""

    @property
    def dtr(self):
        return False

    @dtr.setter
    def dtr(self, value):
        raise serial.SerialException("DTR not supported")

    @property
    def rts(self):
        return False

    @rts.setter
    def rts(self, value):
        raise serial.SerialException("RTS not supported")


class TestConnection:
    """Opening and closing the serial port."""

    @pytest.mark.asyncio
    async def test_connect_opens_port_8n1(self, fluke_serial, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=fast_fluke_config)

        with patch(SERIAL_CLASS, return_value=fluke_serial) as serial_cls:
            await device.connect()

        kwargs = serial_cls.call_args.kwargs
        assert kwargs["port"] == "/dev/ttyUSB0"
        assert kwargs["baudrate"] == 115200
        assert kwargs["bytesize"] == serial.EIGHTBITS
        assert kwargs["parity"] == serial.PARITY_NONE
        assert kwargs["stopbits"] == serial.STOPBITS_ONE
        assert kwargs["xonxoff"] is False
        assert kwargs["rtscts"] is False

        assert fluke_serial.dtr is True
        assert fluke_serial.rts is True
        assert fluke_serial.input_resets == 1
        assert device.is_connected()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, fluke_serial, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=fast_fluke_config)

        with patch(SERIAL_CLASS, return_value=fluke_serial) as serial_cls:
            await device.connect()
            await device.connect()

        assert serial_cls.call_count == 1
        assert device.is_connected()

    @pytest.mark.asyncio
    async def test_connect_reopens_port_closed_elsewhere(self, fast_fluke_config):
        stale = FakeSerial({})
        device = connected_device(stale, fast_fluke_config)
        stale.close()
        assert not device.is_connected()

        fresh = FakeSerial({"ID": FLUKE_ID_REPLY})
        with patch(SERIAL_CLASS, return_value=fresh) as serial_cls:
            await device.connect()

        assert serial_cls.call_count == 1
        assert device.is_connected()
        assert (await device.identify()).model == "FLUKE 289"
        assert stale.writes == []

    @pytest.mark.asyncio
    async def test_cancelled_connect_closes_port(self, fluke_serial, fast_fluke_config):
        config = fast_fluke_config.model_copy(update={"connect_settle_s": 5.0})
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=config)

        with patch(SERIAL_CLASS, return_value=fluke_serial):
            task = asyncio.create_task(device.connect())
            while fluke_serial.input_resets == 0:
                await asyncio.sleep(0.001)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert not fluke_serial.is_open
        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_connect_without_port(self, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_287, config=fast_fluke_config)

        with pytest.raises(ConfigError, match="No port specified"):
            await device.connect()

        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_config_error_is_connection_error(self, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, config=fast_fluke_config)

        with pytest.raises(DeviceConnectionError):
            await device.connect()

    @pytest.mark.asyncio
    async def test_open_failure(self, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/missing", config=fast_fluke_config)

        with patch(SERIAL_CLASS, side_effect=serial.SerialException("could not open port")):
            with pytest.raises(DeviceConnectionError, match="could not open port"):
                await device.connect()

        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_handshake_failure_is_not_fatal(self, fast_fluke_config):
        fake = NoHandshakeSerial({"ID": FLUKE_ID_REPLY})
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=fast_fluke_config)

        with patch(SERIAL_CLASS, return_value=fake):
            await device.connect()

        assert device.is_connected()
        info = await device.identify()
        assert info.model == "FLUKE 289"

    @pytest.mark.asyncio
    async def test_disconnect_closes_port(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        await device.disconnect()

        assert not fluke_serial.is_open
        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        await device.disconnect()
        await device.disconnect()

        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_disconnect_never_connected(self, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=fast_fluke_config)
        await device.disconnect()
        assert not device.is_connected()

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, fast_fluke_config):
        device = FlukeDevice(DeviceType.FLUKE_289, port="/dev/ttyUSB0", config=fast_fluke_config)

        with pytest.raises(DeviceConnectionError, match="Not connected"):
            await device.identify()
        with pytest.raises(DeviceConnectionError):
            await device.get_measurement()
        with pytest.raises(DeviceConnectionError):
            await device.reset()
        with pytest.raises(DeviceConnectionError):
            await device.send_command("ID")

    def test_rejects_mock_type(self):
        with pytest.raises(ConfigError):
            FlukeDevice(DeviceType.MOCK, port="/dev/ttyUSB0")


class TestProtocolOperations:
    """identify / get_measurement / reset / send_command."""

    @pytest.mark.asyncio
    async def test_identify(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        info = await device.identify()

        assert info.model == "FLUKE 289"
        assert info.software_version == "V1.00"
        assert info.serial_number == "95081087"
        assert fluke_serial.writes == [b"ID\r"]
        assert fluke_serial.flush_called == 1

    @pytest.mark.asyncio
    async def test_identify_single_line_reply(self, fast_fluke_config):
        """ACK and payload on one line, followed by the idle timeout."""
        fake = FakeSerial({"ID": b"0FLUKE 289,V1.00,95081087\r"})
        device = connected_device(fake, fast_fluke_config)

        info = await device.identify()

        assert info.model == "FLUKE 289"
        assert info.serial_number == "95081087"

    @pytest.mark.asyncio
    async def test_get_measurement(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        m = await device.get_measurement()

        assert m.value == pytest.approx(3.3)
        assert m.unit is Unit.VOLT_DC
        assert m.state is MeasurementState.NORMAL
        assert m.attribute is MeasurementAttribute.NONE
        assert m.timestamp is not None

    @pytest.mark.asyncio
    async def test_reset_ack_only(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        await device.reset()

        assert fluke_serial.commands == ["RI"]

    @pytest.mark.asyncio
    async def test_send_command_returns_normalized_text(self, fluke_serial, fast_fluke_config):
        device = connected_device(fluke_serial, fast_fluke_config)

        assert await device.send_command("QM") == "03.300000,VDC,NORMAL,NONE"
        assert await device.send_command("RI") == "0"

    @pytest.mark.asyncio
    async def test_send_command_does_not_interpret_ack(self, fast_fluke_config):
        fake = FakeSerial({"XX": b"1\r"})
        device = connected_device(fake, fast_fluke_config)

        assert await device.send_command("XX") == "1"

    @pytest.mark.asyncio
    async def test_syntax_error(self, fast_fluke_config):
        fake = FakeSerial({"ID": b"1\r", "QM": b"1\r", "RI": b"1\r"})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(InvalidCommandError):
            await device.identify()
        with pytest.raises(InvalidCommandError):
            await device.get_measurement()
        with pytest.raises(InvalidCommandError):
            await device.reset()

    @pytest.mark.asyncio
    async def test_no_data_available(self, fast_fluke_config):
        fake = FakeSerial({"QM": b"5\r"})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(DeviceExecutionError, match="No data available"):
            await device.get_measurement()

    @pytest.mark.asyncio
    async def test_measurement_payload_missing(self, fast_fluke_config):
        fake = FakeSerial({"QM": FLUKE_ACK_ONLY})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(ParseError):
            await device.get_measurement()

    @pytest.mark.asyncio
    async def test_malformed_identification(self, fast_fluke_config):
        fake = FakeSerial({"ID": b"0\rFLUKE 289\r"})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(ParseError):
            await device.identify()


class TestFraming:
    """Byte accumulation and the dual timeout policy."""

    @pytest.mark.asyncio
    async def test_accumulates_partial_reads(self, fast_fluke_config):
        fake = FakeSerial({"QM": FLUKE_QM_REPLY}, chunk_size=1, delay_polls=3)
        device = connected_device(fake, fast_fluke_config)

        m = await device.get_measurement()

        assert m.value == pytest.approx(3.3)

    @pytest.mark.asyncio
    async def test_no_reply_times_out(self, fast_fluke_config):
        fake = FakeSerial({})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(DeviceTimeoutError):
            await device.send_command("QM")

    @pytest.mark.asyncio
    async def test_reply_without_carriage_return_times_out(self, fast_fluke_config):
        fake = FakeSerial({"QM": b"0"})
        device = connected_device(fake, fast_fluke_config)

        with pytest.raises(DeviceTimeoutError):
            await device.send_command("QM")

    @pytest.mark.asyncio
    async def test_ack_only_stops_after_idle_timeout(self, fast_fluke_config):
        fake = FakeSerial({"DS": FLUKE_ACK_ONLY})
        device = connected_device(fake, fast_fluke_config)

        loop = asyncio.get_running_loop()
        started = loop.time()
        response = await device.send_command("DS")
        elapsed = loop.time() - started

        assert response == "0"
        assert elapsed < fast_fluke_config.ack_timeout_s

    @pytest.mark.asyncio
    async def test_concurrent_commands_do_not_interleave(self, fast_fluke_config):
        fake = FakeSerial(
            {"ID": FLUKE_ID_REPLY, "QM": FLUKE_QM_REPLY, "RI": FLUKE_ACK_ONLY},
            chunk_size=2,
            delay_polls=2,
        )
        device = connected_device(fake, fast_fluke_config)

        commands = ["ID", "QM", "RI", "QM", "ID", "QM"]
        responses = await asyncio.gather(*(device.send_command(c) for c in commands))

        expected = {
            "ID": "0FLUKE 289,V1.00,95081087",
            "QM": "03.300000,VDC,NORMAL,NONE",
            "RI": "0",
        }
        assert fake.overlapping_writes == 0
        assert fake.commands == commands
        assert list(responses) == [expected[c] for c in commands]


class TestPortListing:
    """Serial port enumeration."""

    def test_lists_device_names(self):
        class Port:
            def __init__(self, device):
                self.device = device

        with patch(
            "hardware_interface.fluke_device.serial.tools.list_ports.comports",
            return_value=[Port("/dev/ttyUSB0"), Port("/dev/ttyACM0")],
        ):
            assert list_serial_ports() == ["/dev/ttyUSB0", "/dev/ttyACM0"]

    def test_enumeration_failure(self):
        with patch(
            "hardware_interface.fluke_device.serial.tools.list_ports.comports",
            side_effect=OSError("permission denied"),
        ):
            with pytest.raises(DeviceConnectionError):
                list_serial_ports()
