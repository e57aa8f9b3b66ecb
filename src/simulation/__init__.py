"""
Simulation Package
===================
Simulated multimeter and the signal profiles it generates readings from.
"""

from .signal_generator import (
    SignalProfile,
    VoltageSine,
    CurrentSine,
    TemperatureDrift,
    ResistanceSweep,
    FrequencyPulse,
    random_profile,
)
from .mock_device import MOCK_INFO, MockDevice

__all__ = [
    "SignalProfile",
    "VoltageSine",
    "CurrentSine",
    "TemperatureDrift",
    "ResistanceSweep",
    "FrequencyPulse",
    "random_profile",
    "MOCK_INFO",
    "MockDevice",
]
