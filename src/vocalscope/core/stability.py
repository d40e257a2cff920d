"""
Pitch stability and vibrato estimation over a short rolling window.
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

WINDOW_SECONDS = 1.5
UPDATES_PER_SECOND = 60
MAX_SAMPLES = int(WINDOW_SECONDS * UPDATES_PER_SECOND)
MIN_CONFIDENCE = 0.3
MIN_STABILITY_SAMPLES = 10
MIN_VIBRATO_SAMPLES = 15

# Coefficient of variation that maps to a stability of zero is 1 / CV_SCALE
CV_SCALE = 10.0


@dataclass
class PitchSample:
    frequency: float
    confidence: float
    timestamp: float


@dataclass
class VibratoMetrics:
    """Vibrato rate (oscillations per second) and peak-to-peak depth in cents."""

    rate_hz: float
    depth_cents: float


class StabilityAnalyzer:
    """
    Scores how steadily a note is held and measures its vibrato.

    Only confident estimates enter the window, so brief detector dropouts
    do not register as wobble.
    """

    def __init__(
        self,
        window_seconds: float = WINDOW_SECONDS,
        max_samples: int = MAX_SAMPLES,
        min_confidence: float = MIN_CONFIDENCE,
    ):
        self.window_seconds = window_seconds
        self.min_confidence = min_confidence
        self._buffer: deque = deque(maxlen=max_samples)

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()

    def add(self, frequency: float, confidence: float, timestamp: float) -> bool:
        """
        Offer one pitch estimate to the window.

        Returns:
            True if the sample was accepted (confidence at or above the floor).
        """
        if confidence < self.min_confidence:
            return False
        self._buffer.append(PitchSample(frequency, confidence, timestamp))
        cutoff = timestamp - self.window_seconds
        while self._buffer and self._buffer[0].timestamp < cutoff:
            self._buffer.popleft()
        return True

    def _frequencies(self) -> np.ndarray:
        return np.array([s.frequency for s in self._buffer], dtype=np.float64)

    def stability(self) -> float:
        """
        Stability score in [0, 1]; 1 means a perfectly steady pitch.

        Computed from the coefficient of variation of the buffered
        frequencies.  Returns 0.0 until enough samples are buffered.
        """
        if len(self._buffer) < MIN_STABILITY_SAMPLES:
            return 0.0
        freqs = self._frequencies()
        mean = float(freqs.mean())
        cv = float(freqs.std()) / mean if mean > 0 else 1.0
        return float(np.clip(1.0 - cv * CV_SCALE, 0.0, 1.0))

    def vibrato(self) -> Optional[VibratoMetrics]:
        """
        Estimate vibrato from the buffered pitch trace.

        The trace is centered on its mean; the rate is the number of
        upward zero crossings per second and the depth is the spread
        between mean +/- mean absolute deviation, in cents.

        Returns:
            VibratoMetrics, or None with too few samples or a degenerate
            trace.
        """
        if len(self._buffer) < MIN_VIBRATO_SAMPLES:
            return None

        freqs = self._frequencies()
        mean = float(freqs.mean())
        if mean <= 0:
            return None
        deltas = freqs - mean

        crossings = int(np.count_nonzero((deltas[:-1] < 0) & (deltas[1:] > 0)))

        duration = self._buffer[-1].timestamp - self._buffer[0].timestamp
        if duration <= 0:
            return None
        rate_hz = crossings / duration

        avg_dev = float(np.mean(np.abs(deltas)))
        upper = mean + avg_dev
        lower = max(1.0, mean - avg_dev)
        depth_cents = 1200.0 * math.log2(upper / lower)

        if not (math.isfinite(rate_hz) and math.isfinite(depth_cents)):
            return None
        return VibratoMetrics(rate_hz=rate_hz, depth_cents=depth_cents)

    def jitter_trace(self, max_points: int = 50) -> List[float]:
        """Down-sampled frequency trace for plotting pitch wobble."""
        if len(self._buffer) < 2:
            return []
        step = max(1, len(self._buffer) // max_points)
        return [s.frequency for s in list(self._buffer)[::step]]
