"""
Shared fixtures and test doubles.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hardware_interface import FlukeConfig, MockConfig


# Replies as a Fluke 289 sends them
FLUKE_ID_REPLY = b"0\rFLUKE 289,V1.00,95081087\r"
FLUKE_QM_REPLY = b"0\r3.300000,VDC,NORMAL,NONE\r"
FLUKE_ACK_ONLY = b"0\r"


class FakeSerial:
    """
    Scripted stand-in for ``serial.Serial``.

    Each write looks up the reply for the command and makes it readable a few
    bytes at a time, after ``delay_polls`` empty polls.
    """

    dtr = False
    rts = False

    def __init__(
        self,
        responses: Optional[Dict[str, bytes]] = None,
        chunk_size: int = 4,
        delay_polls: int = 0,
    ):
        self.responses = dict(responses or {})
        self.chunk_size = chunk_size
        self.delay_polls = delay_polls

        self.is_open = True
        self.writes: List[bytes] = []
        self.flush_called = 0
        self.overlapping_writes = 0
        self.input_resets = 0

        self._pending = bytearray()
        self._quiet_polls = 0

    def write(self, data: bytes) -> int:
        if self._pending:
            self.overlapping_writes += 1
        self.writes.append(bytes(data))
        command = bytes(data).rstrip(b"\r").decode("ascii")
        self._pending.extend(self.responses.get(command, b""))
        self._quiet_polls = self.delay_polls
        return len(data)

    def flush(self) -> None:
        self.flush_called += 1

    @property
    def in_waiting(self) -> int:
        if self._quiet_polls > 0:
            self._quiet_polls -= 1
            return 0
        return min(len(self._pending), self.chunk_size)

    def read(self, size: int = 1) -> bytes:
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def reset_input_buffer(self) -> None:
        self.input_resets += 1
        self._pending.clear()

    def reset_output_buffer(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False

    @property
    def commands(self) -> List[str]:
        return [w.rstrip(b"\r").decode("ascii") for w in self.writes]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Fixtures

@pytest.fixture
def fast_fluke_config():
    """Fluke framing parameters scaled down for tests."""
    return FlukeConfig(
        settle_delay_s=0.0,
        ack_timeout_s=0.1,
        payload_idle_timeout_s=0.02,
        read_backoff_s=0.001,
        connect_settle_s=0.0,
    )


@pytest.fixture
def instant_mock_config():
    """Mock configuration without simulated latency."""
    return MockConfig.instant(seed=1234)


@pytest.fixture
def fluke_serial():
    """FakeSerial answering ID, QM and RI like a healthy Fluke 289."""
    return FakeSerial({
        "ID": FLUKE_ID_REPLY,
        "QM": FLUKE_QM_REPLY,
        "RI": FLUKE_ACK_ONLY,
    })
