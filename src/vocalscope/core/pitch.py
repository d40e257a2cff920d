"""
Fundamental-frequency estimation for monophonic voice.

Uses the normalized square difference function (NSDF) of McLeod & Wyvill:

    nsdf(tau) = 2 * sum(x[i] * x[i + tau]) / (sum(x[i]^2) + sum(x[i + tau]^2))

which lies in [-1, 1] and peaks near 1 at multiples of the period.  The
curve is only evaluated over the lags that correspond to the singing
range (80-1000 Hz), the winning peak is refined with parabolic
interpolation, and a short median filter over accepted estimates removes
isolated octave jumps.
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy import signal as scipy_signal

from vocalscope.core.notes import frequency_to_note

MIN_FREQ_HZ = 80.0
MAX_FREQ_HZ = 1000.0

# Peaks below this are ignored entirely
SMALL_CUTOFF = 0.25
# Best peak must reach this clarity to count as a pitch
MIN_CLARITY = 0.4
# A shorter-lag peak within this fraction of the best clarity wins
PEAK_TOLERANCE = 0.9

MEDIAN_WINDOW = 7
EPS = 1e-12
# Relative slack on the range limits for interpolation round-off
RANGE_SLACK = 1e-3


@dataclass
class PitchResult:
    """A single accepted pitch estimate."""

    frequency: float       # median-smoothed output in Hz
    confidence: float      # NSDF clarity of the winning peak [0, 1]
    raw_frequency: float   # this frame's estimate before median smoothing
    note_name: str
    cents: int


def compute_nsdf(frame: np.ndarray, max_lag: int) -> np.ndarray:
    """
    Normalized square difference function for lags ``0..max_lag``.

    Args:
        frame: 1-D signal, ideally mean-free.
        max_lag: Largest lag to evaluate (clipped to ``len(frame) - 1``).

    Returns:
        Array of length ``max_lag + 1`` with values in [-1, 1].
    """
    x = np.asarray(frame, dtype=np.float64)
    n = len(x)
    if n == 0:
        return np.zeros(0)
    max_lag = int(min(max_lag, n - 1))

    acf = scipy_signal.correlate(x, x, mode="full", method="auto")
    acf = acf[n - 1 : n + max_lag]

    cumulative = np.concatenate(([0.0], np.cumsum(x * x)))
    lags = np.arange(max_lag + 1)
    # energy of x[0 : n - tau] and of x[tau : n]
    energy = cumulative[n - lags] + (cumulative[-1] - cumulative[lags])

    return 2.0 * acf / (energy + EPS)


def find_key_maxima(curve: np.ndarray, cutoff: float) -> List[int]:
    """
    Return the highest local maximum of every positive lobe of *curve*.

    The lobe around lag 0 is skipped, as are maxima with a value not
    above *cutoff*.
    """
    n = len(curve)
    peaks: List[int] = []

    i = 1
    while i < n and curve[i] > 0:
        i += 1

    while i < n - 1:
        while i < n - 1 and curve[i] <= 0:
            i += 1
        best: Optional[int] = None
        while i < n - 1 and curve[i] > 0:
            if curve[i] > curve[i - 1] and curve[i] >= curve[i + 1]:
                if best is None or curve[i] > curve[best]:
                    best = i
            i += 1
        if best is not None and curve[best] > cutoff:
            peaks.append(best)

    return peaks


def parabolic_interpolation(curve: np.ndarray, peak: int) -> float:
    """Sub-sample lag of a peak; falls back to the integer lag when degenerate."""
    if peak < 1 or peak >= len(curve) - 1:
        return float(peak)

    alpha = float(curve[peak - 1])
    beta = float(curve[peak])
    gamma = float(curve[peak + 1])
    denom = alpha - 2.0 * beta + gamma
    if abs(denom) < EPS:
        return float(peak)

    offset = 0.5 * (alpha - gamma) / denom
    if not math.isfinite(offset) or abs(offset) > 1.0:
        return float(peak)
    return peak + offset


class PitchDetector:
    """
    Streaming NSDF pitch detector with a median-smoothed output.

    Owns the short history of accepted raw frequencies; call
    :meth:`reset` at the start of every session.
    """

    def __init__(
        self,
        min_freq: float = MIN_FREQ_HZ,
        max_freq: float = MAX_FREQ_HZ,
        median_window: int = MEDIAN_WINDOW,
    ):
        if median_window < 1 or median_window % 2 == 0:
            raise ValueError(f"median_window must be a positive odd number, got {median_window}")
        self.min_freq = min_freq
        self.max_freq = max_freq
        self._history: deque = deque(maxlen=median_window)

    def reset(self) -> None:
        self._history.clear()

    def lag_range(self, sample_rate: int, frame_length: int) -> tuple:
        """(min_lag, max_lag) covering the detector's frequency range."""
        min_lag = max(2, int(sample_rate / self.max_freq))
        max_lag = int(math.ceil(sample_rate / self.min_freq)) + 1
        return min_lag, min(max_lag, frame_length // 2)

    def estimate(self, frame: np.ndarray, sample_rate: int) -> Optional[tuple]:
        """
        Single-frame estimate without touching the median history.

        Returns:
            (frequency_hz, clarity) or None when no reliable pitch exists.
        """
        min_lag, max_lag = self.lag_range(sample_rate, len(frame))
        if max_lag <= min_lag:
            return None

        curve = compute_nsdf(frame, max_lag)
        peaks = find_key_maxima(curve, SMALL_CUTOFF)
        if not peaks:
            return None

        best_clarity = max(float(curve[p]) for p in peaks)
        if best_clarity < MIN_CLARITY:
            return None

        # Every multiple of the period correlates almost as well as the
        # period itself; take the shortest lag that is close to the best.
        chosen = next(p for p in peaks if curve[p] >= PEAK_TOLERANCE * best_clarity)
        clarity = float(curve[chosen])

        lag = parabolic_interpolation(curve, chosen)
        if lag <= 0:
            return None
        frequency = sample_rate / lag

        low = self.min_freq * (1.0 - RANGE_SLACK)
        high = self.max_freq * (1.0 + RANGE_SLACK)
        if frequency < low or frequency > high:
            return None
        return frequency, float(min(1.0, clarity))

    def detect(self, frame: np.ndarray, sample_rate: int) -> Optional[PitchResult]:
        """
        Estimate the pitch of a normalized frame.

        Args:
            frame: Output of the frame preprocessor (voiced frames only).
            sample_rate: Stream sample rate in Hz.

        Returns:
            PitchResult, or None when the frame holds no reliable pitch.
            None must never be read as 0 Hz.
        """
        estimate = self.estimate(frame, sample_rate)
        if estimate is None:
            return None
        raw_frequency, clarity = estimate

        self._history.append(raw_frequency)
        if len(self._history) >= 3:
            ordered = sorted(self._history)
            frequency = ordered[len(ordered) // 2]
        else:
            frequency = raw_frequency

        note_name, cents = frequency_to_note(frequency)
        return PitchResult(
            frequency=frequency,
            confidence=clarity,
            raw_frequency=raw_frequency,
            note_name=note_name,
            cents=cents,
        )
