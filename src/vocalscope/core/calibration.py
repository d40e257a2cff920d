"""
Ambient noise-floor calibration.

Samples the RMS of a few seconds of room noise and derives a noise gate
from a robust estimate of its upper edge: median plus three median
absolute deviations, clamped to a sane absolute range.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from vocalscope.settings import SettingsStore

logger = logging.getLogger(__name__)

CALIBRATION_SECONDS = 2.0
PROVISIONAL_GATE = 0.002
MAD_MULTIPLIER = 3.0
MIN_GATE = 0.0005
MAX_GATE = 0.015


@dataclass
class CalibrationState:
    is_calibrating: bool
    progress: float        # 0-100
    noise_gate: float
    mean_rms: float
    median_rms: float
    std_dev_rms: float
    mad_rms: float


def robust_noise_gate(samples: List[float]) -> float:
    """Median + 3 * MAD of the RMS samples, clamped to [MIN_GATE, MAX_GATE]."""
    values = np.asarray(samples, dtype=np.float64)
    median = float(np.median(values))
    mad = float(np.median(np.abs(values - median)))
    return float(np.clip(median + MAD_MULTIPLIER * mad, MIN_GATE, MAX_GATE))


class CalibrationController:
    """
    Timed noise-floor sampler.

    While calibrating, :attr:`noise_gate` holds the provisional gate the
    engine should use for preprocessing.  When the window expires, the
    computed gate is written to the shared settings store.
    """

    def __init__(self, settings: SettingsStore, duration_seconds: float = CALIBRATION_SECONDS):
        self._settings = settings
        self.duration_seconds = duration_seconds
        self._samples: List[float] = []
        self._start_time: Optional[float] = None
        self._active = False
        self.noise_gate = PROVISIONAL_GATE

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, timestamp: float) -> None:
        self._samples = []
        self._start_time = timestamp
        self._active = True
        self.noise_gate = PROVISIONAL_GATE
        logger.debug("Calibration started at %.3fs", timestamp)

    def reset(self) -> None:
        self._samples = []
        self._start_time = None
        self._active = False
        self.noise_gate = PROVISIONAL_GATE

    def add_sample(self, rms: float, timestamp: float) -> None:
        """Record one RMS sample; finishes calibration once the window has elapsed."""
        if not self._active or self._start_time is None:
            return
        self._samples.append(float(rms))
        if timestamp - self._start_time >= self.duration_seconds:
            self._finish()

    def _finish(self) -> None:
        self._active = False
        if not self._samples:
            self.noise_gate = PROVISIONAL_GATE
            return
        self.noise_gate = robust_noise_gate(self._samples)
        self._settings.update(noise_gate_rms=self.noise_gate)
        logger.info(
            "Calibration finished: %d samples, noise gate %.5f",
            len(self._samples),
            self.noise_gate,
        )

    def set_noise_gate(self, value: float) -> None:
        """Manual override; bypasses the computed gate."""
        self._settings.update(noise_gate_rms=value)
        self.noise_gate = float(value)

    def state(self, now: float) -> CalibrationState:
        if self._active and self._start_time is not None:
            progress = min(100.0, (now - self._start_time) / self.duration_seconds * 100.0)
        else:
            progress = 100.0

        if self._samples:
            values = np.asarray(self._samples)
            median = float(np.median(values))
            mean, std = float(values.mean()), float(values.std())
            mad = float(np.median(np.abs(values - median)))
        else:
            mean = median = std = mad = 0.0

        return CalibrationState(
            is_calibrating=self._active,
            progress=max(0.0, progress),
            noise_gate=self.noise_gate,
            mean_rms=mean,
            median_rms=median,
            std_dev_rms=std,
            mad_rms=mad,
        )
