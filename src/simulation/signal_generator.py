"""
Multimeter Signal Generator
============================
Waveform profiles used by the mock multimeter to fabricate plausible
measurement sequences.

Each profile is a deterministic function of the time elapsed since the
session started, plus bounded uniform noise drawn from a caller-supplied
``numpy.random.Generator``:

- VoltageSine:       offset + A·sin(2π·f·t)                  [VDC]
- CurrentSine:       max(0, offset + A·sin(2π·f·t))          [ADC]
- TemperatureDrift:  baseline + S·sin(2π·t/T), clamped       [°C]
- ResistanceSweep:   triangle between min and max over T     [Ω]
- FrequencyPulse:    max(0, baseline + S·sin(2π·f·t))        [Hz]
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from hardware_interface.models import Unit


TAU = 2.0 * np.pi

# Physical limits of the simulated thermocouple input
TEMPERATURE_MIN_C = -40.0
TEMPERATURE_MAX_C = 150.0

# Shortest periods the slow profiles are allowed to run at
MIN_DRIFT_PERIOD_S = 60.0
MIN_SWEEP_PERIOD_S = 5.0


class SignalProfile(ABC):
    """Base class for measurement waveforms."""

    unit: Unit
    noise: float

    @abstractmethod
    def base_value(self, elapsed_s: float) -> float:
        """Noise-free value at ``elapsed_s`` seconds after start."""

    def limit(self, value: float) -> float:
        """Physical limit applied to a noisy sample. Unlimited by default."""
        return value

    def sample(self, elapsed_s: float, rng: np.random.Generator) -> float:
        """
        Draw one sample.

        Args:
            elapsed_s: Seconds since the session started
            rng: Random source owned by the calling device

        Returns:
            Base value plus uniform noise in ``[-noise, noise]``, passed through ``limit``
        """
        value = self.base_value(elapsed_s) + rng.uniform(-self.noise, self.noise)
        return float(self.limit(value))


@dataclass(frozen=True)
class VoltageSine(SignalProfile):
    offset: float
    amplitude: float
    frequency_hz: float
    noise: float
    unit: Unit = Unit.VOLT_DC

    def base_value(self, elapsed_s: float) -> float:
        return self.offset + self.amplitude * np.sin(elapsed_s * self.frequency_hz * TAU)


@dataclass(frozen=True)
class CurrentSine(SignalProfile):
    offset: float
    amplitude: float
    frequency_hz: float
    noise: float
    unit: Unit = Unit.AMP_DC

    def base_value(self, elapsed_s: float) -> float:
        return self.offset + self.amplitude * np.sin(elapsed_s * self.frequency_hz * TAU)

    def limit(self, value: float) -> float:
        return max(0.0, value)


@dataclass(frozen=True)
class TemperatureDrift(SignalProfile):
    baseline: float
    swing: float
    period_s: float
    noise: float
    unit: Unit = Unit.CELSIUS

    def base_value(self, elapsed_s: float) -> float:
        period = max(self.period_s, MIN_DRIFT_PERIOD_S)
        return self.baseline + self.swing * np.sin((elapsed_s / period) * TAU)

    def limit(self, value: float) -> float:
        return np.clip(value, TEMPERATURE_MIN_C, TEMPERATURE_MAX_C)


@dataclass(frozen=True)
class ResistanceSweep(SignalProfile):
    minimum: float
    maximum: float
    period_s: float
    noise: float
    unit: Unit = Unit.OHM

    def base_value(self, elapsed_s: float) -> float:
        period = max(self.period_s, MIN_SWEEP_PERIOD_S)
        phase = (elapsed_s / period) % 1.0
        span = self.maximum - self.minimum
        if phase < 0.5:
            return self.minimum + span * (phase * 2.0)
        return self.maximum - span * ((phase - 0.5) * 2.0)


@dataclass(frozen=True)
class FrequencyPulse(SignalProfile):
    baseline: float
    swing: float
    frequency_hz: float
    noise: float
    unit: Unit = Unit.HERTZ

    def base_value(self, elapsed_s: float) -> float:
        return self.baseline + self.swing * np.sin(elapsed_s * self.frequency_hz * TAU)

    def limit(self, value: float) -> float:
        return max(0.0, value)


PROFILE_TYPES = (VoltageSine, TemperatureDrift, ResistanceSweep, FrequencyPulse, CurrentSine)


def random_profile(rng: np.random.Generator) -> SignalProfile:
    """
    Pick one profile from the family and draw its parameters.

    Args:
        rng: Random source owned by the calling device

    Returns:
        A freshly parameterized profile
    """
    kind = PROFILE_TYPES[int(rng.integers(0, len(PROFILE_TYPES)))]

    if kind is VoltageSine:
        return VoltageSine(
            offset=rng.uniform(0.5, 12.0),
            amplitude=rng.uniform(0.25, 3.5),
            frequency_hz=rng.uniform(0.05, 0.5),
            noise=rng.uniform(0.002, 0.025),
        )
    if kind is TemperatureDrift:
        return TemperatureDrift(
            baseline=rng.uniform(18.0, 35.0),
            swing=rng.uniform(1.0, 6.0),
            period_s=rng.uniform(180.0, 420.0),
            noise=rng.uniform(0.05, 0.25),
        )
    if kind is ResistanceSweep:
        return ResistanceSweep(
            minimum=rng.uniform(10.0, 500.0),
            maximum=rng.uniform(5000.0, 50000.0),
            period_s=rng.uniform(8.0, 20.0),
            noise=rng.uniform(0.5, 25.0),
        )
    if kind is FrequencyPulse:
        return FrequencyPulse(
            baseline=rng.uniform(800.0, 1200.0),
            swing=rng.uniform(50.0, 250.0),
            frequency_hz=rng.uniform(0.2, 2.0),
            noise=rng.uniform(1.0, 20.0),
        )
    return CurrentSine(
        offset=rng.uniform(0.2, 2.0),
        amplitude=rng.uniform(0.1, 0.8),
        frequency_hz=rng.uniform(0.1, 0.7),
        noise=rng.uniform(0.001, 0.02),
    )
