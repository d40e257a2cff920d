"""
Breathiness estimation from periodicity and zero-crossing rate.

A breathy voice carries turbulent, aperiodic airflow on top of the
glottal tone: its autocorrelation peak drops and its zero-crossing rate
rises.  Both cues are combined into a raw score, rescaled to emphasize
the middle of the range, then smoothed with an EMA and a decaying
peak-hold so the reading falls gracefully instead of snapping to zero.
"""

from typing import Tuple

import librosa
import numpy as np
from scipy import signal as scipy_signal

from vocalscope.core.types import BreathinessDebug

MIN_RMS = 0.0002
EMA_ALPHA = 0.2
HOLD_DECAY = 0.97

MIN_FREQ_HZ = 80.0
MAX_FREQ_HZ = 1000.0

APERIODICITY_WEIGHT = 0.85
ZCR_WEIGHT = 0.15
ZCR_FLOOR = 0.015
ZCR_SPAN = 0.12
SCORE_FLOOR = 0.08
SCORE_SPAN = 0.6
SCORE_CURVE = 0.6


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def zero_crossing_rate(frame: np.ndarray) -> float:
    """Fraction of adjacent sample pairs that change sign."""
    if len(frame) < 2:
        return 0.0
    crossings = librosa.zero_crossings(frame, pad=False)
    return float(np.count_nonzero(crossings)) / (len(frame) - 1)


def periodicity(frame: np.ndarray, sample_rate: int) -> float:
    """
    Highest normalized autocorrelation over lags for 80-1000 Hz.

    Returns:
        Value in [0, 1]; near 1 for a clean periodic tone, near 0 for noise.
    """
    n = len(frame)
    min_lag = int(sample_rate / MAX_FREQ_HZ)
    max_lag = min(int(sample_rate / MIN_FREQ_HZ), n - 1)
    if n < 2 or max_lag < min_lag:
        return 0.0

    acf = scipy_signal.correlate(frame, frame, mode="full", method="auto")[n - 1 :]
    cumulative = np.concatenate(([0.0], np.cumsum(frame * frame)))
    lags = np.arange(min_lag, max_lag + 1)

    head_energy = cumulative[n - lags]
    tail_energy = cumulative[-1] - cumulative[lags]
    corr = acf[lags] / (np.sqrt(head_energy * tail_energy) + 1e-12)

    return _clamp(float(np.max(corr, initial=0.0)))


def breathiness_score(period: float, zcr: float) -> Tuple[float, float]:
    """
    Combine periodicity and ZCR into a single score.

    Returns:
        Tuple of (raw, curved) where *raw* is the weighted blend and
        *curved* is the floor/ceiling rescaled, power-curved score.
    """
    aperiodicity = _clamp(1.0 - period)
    zcr_score = _clamp((zcr - ZCR_FLOOR) / ZCR_SPAN)
    raw = _clamp(APERIODICITY_WEIGHT * aperiodicity + ZCR_WEIGHT * zcr_score)
    boosted = _clamp((raw - SCORE_FLOOR) / SCORE_SPAN)
    return raw, boosted ** SCORE_CURVE


class BreathinessAnalyzer:
    """Per-frame breathiness with EMA smoothing and a decaying hold."""

    def __init__(self, min_rms: float = MIN_RMS):
        self.min_rms = min_rms
        self._smoothed = 0.0
        self._held = 0.0
        self._debug = BreathinessDebug()

    def reset(self) -> None:
        self._smoothed = 0.0
        self._held = 0.0
        self._debug = BreathinessDebug()

    @property
    def debug(self) -> BreathinessDebug:
        """Sub-scores from the most recent update."""
        return self._debug

    def update(self, frame: np.ndarray, sample_rate: int) -> float:
        """
        Process one raw frame and return the displayed breathiness.

        Below ``min_rms`` the frame contributes no new estimate; the held
        value keeps decaying so a silent gap cannot produce a spike.

        Args:
            frame: Raw mono samples (not gain-normalized).
            sample_rate: Stream sample rate in Hz.

        Returns:
            Breathiness in [0, 1].
        """
        samples = np.asarray(frame, dtype=np.float64)
        if len(samples) == 0:
            return 0.0

        centered = samples - samples.mean()
        rms = float(np.sqrt(np.mean(centered * centered)))

        if rms < self.min_rms:
            self._held *= HOLD_DECAY
            self._smoothed = self._held
            self._debug = BreathinessDebug(
                rms=rms,
                periodicity=self._debug.periodicity,
                zcr=self._debug.zcr,
                raw_score=0.0,
                smoothed_score=self._held,
            )
            return _clamp(self._held)

        period = periodicity(centered, sample_rate)
        zcr = zero_crossing_rate(centered)
        _, score = breathiness_score(period, zcr)

        self._smoothed = EMA_ALPHA * score + (1.0 - EMA_ALPHA) * self._smoothed
        self._held = max(self._smoothed, self._held * HOLD_DECAY)

        self._debug = BreathinessDebug(
            rms=rms,
            periodicity=period,
            zcr=zcr,
            raw_score=score,
            smoothed_score=self._held,
        )
        return _clamp(self._held)
