"""
Loudness tracking: short-term volume consistency and long-term dynamic range.
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

CONSISTENCY_SAMPLES = 60
MIN_CONSISTENCY_SAMPLES = 5
CONSISTENCY_FLOOR = 1e-4
CONSISTENCY_CV_SCALE = 1.2

RANGE_WINDOW_SECONDS = 8.0
MIN_RANGE_BUFFERED = 10
MIN_RANGE_USABLE = 5
RANGE_FLOOR = 1e-5

DB_FLOOR_RMS = 1e-5


@dataclass
class VolumeReading:
    """Instantaneous level of one frame."""

    rms: float
    db: float
    level: float      # 0-100, -60 dBFS maps to 0
    category: str     # "silent" | "quiet" | "moderate" | "loud" | "very loud"


@dataclass
class DynamicRangeStats:
    p10_rms: float
    p90_rms: float
    dynamic_range_db: float
    loudness_std_db: float


def read_level(rms: float) -> VolumeReading:
    """Convert an RMS value into dBFS, a 0-100 meter level and a category."""
    db = 20.0 * math.log10(max(rms, DB_FLOOR_RMS))
    level = float(np.clip((db + 60.0) * 1.67, 0.0, 100.0))
    if level < 10:
        category = "silent"
    elif level < 30:
        category = "quiet"
    elif level < 60:
        category = "moderate"
    elif level < 85:
        category = "loud"
    else:
        category = "very loud"
    return VolumeReading(rms=rms, db=db, level=level, category=category)


def percentile_sorted(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence (no interpolation)."""
    if len(values) == 0:
        return 0.0
    index = min(len(values) - 1, max(0, int(math.floor(len(values) * p))))
    return float(values[index])


class VolumeConsistencyAnalyzer:
    """Scores how evenly the singer holds their loudness over the last 60 frames."""

    def __init__(self, max_samples: int = CONSISTENCY_SAMPLES):
        self._buffer: deque = deque(maxlen=max_samples)

    def reset(self) -> None:
        self._buffer.clear()

    def add(self, rms: float) -> None:
        self._buffer.append(float(rms))

    def consistency(self) -> Optional[float]:
        """
        Consistency in [0, 1] from the coefficient of variation of RMS.

        Returns:
            None until at least five non-silent samples are buffered.
        """
        if len(self._buffer) < MIN_CONSISTENCY_SAMPLES:
            return None
        values = np.array([v for v in self._buffer if v > CONSISTENCY_FLOOR])
        if len(values) < MIN_CONSISTENCY_SAMPLES:
            return None
        mean = float(values.mean())
        if mean < CONSISTENCY_FLOOR:
            return None
        cv = float(values.std()) / mean
        return float(np.clip(1.0 - cv * CONSISTENCY_CV_SCALE, 0.0, 1.0))


class DynamicRangeAnalyzer:
    """
    Tracks the spread between quiet and loud singing over an 8 s window.

    Only voiced frames are kept.  The range is the ratio of the 90th to
    the 10th RMS percentile in dB; the loudness std is the standard
    deviation of the samples on a dB scale.
    """

    def __init__(self, window_seconds: float = RANGE_WINDOW_SECONDS):
        self.window_seconds = window_seconds
        self._buffer: deque = deque()

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()

    def add(self, rms: float, is_voiced: bool, timestamp: float) -> None:
        if not is_voiced:
            return
        self._buffer.append((timestamp, float(rms)))
        cutoff = timestamp - self.window_seconds
        while self._buffer and self._buffer[0][0] < cutoff:
            self._buffer.popleft()

    def stats(self) -> Optional[DynamicRangeStats]:
        """Percentile statistics of the window, or None with too little data."""
        if len(self._buffer) < MIN_RANGE_BUFFERED:
            return None

        values = np.sort(np.array([rms for _, rms in self._buffer if rms > RANGE_FLOOR]))
        if len(values) < MIN_RANGE_USABLE:
            return None

        p10 = percentile_sorted(values, 0.1)
        p90 = percentile_sorted(values, 0.9)
        safe_p10 = max(p10, RANGE_FLOOR)
        safe_p90 = max(p90, safe_p10)

        db_values = 20.0 * np.log10(np.maximum(values, RANGE_FLOOR))

        return DynamicRangeStats(
            p10_rms=p10,
            p90_rms=p90,
            dynamic_range_db=20.0 * math.log10(safe_p90 / safe_p10),
            loudness_std_db=float(db_values.std()),
        )
