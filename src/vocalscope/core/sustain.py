"""
Note-sustain tracking.

A two-state machine (idle / sustaining) that measures how long the
singer holds a steady, in-tune, audible note.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from vocalscope.settings import ConfigurationError, check_finite

logger = logging.getLogger(__name__)

PITCH_DEVIATION_TOLERANCE = 0.08
MIN_RUN_FRAMES = 3
MIN_RUN_SECONDS = 0.1


@dataclass
class SustainSettings:
    """Thresholds a frame must meet to extend a sustained note."""

    pitch_confidence_threshold: float = 0.6
    cents_tolerance: float = 25.0
    min_rms_threshold: float = 0.005

    def validate(self) -> None:
        for name in ("pitch_confidence_threshold", "cents_tolerance", "min_rms_threshold"):
            check_finite(name, getattr(self, name))
        if not 0.0 <= self.pitch_confidence_threshold <= 1.0:
            raise ConfigurationError(
                "pitch_confidence_threshold must be in [0, 1], "
                f"got {self.pitch_confidence_threshold}"
            )
        if self.cents_tolerance < 0:
            raise ConfigurationError(
                f"cents_tolerance must be >= 0, got {self.cents_tolerance}"
            )
        if self.min_rms_threshold < 0:
            raise ConfigurationError(
                f"min_rms_threshold must be >= 0, got {self.min_rms_threshold}"
            )


@dataclass
class SustainState:
    current_seconds: float
    best_seconds: float
    is_sustaining: bool


class SustainTracker:
    """
    Measures the duration of the current and longest held note.

    A run starts on the first qualifying frame.  It only counts as a
    sustain after ``MIN_RUN_FRAMES`` consecutive qualifying frames and
    ``MIN_RUN_SECONDS`` of elapsed time, which filters out transient
    spikes.  A single failing frame ends the run.
    """

    def __init__(self, settings: Optional[SustainSettings] = None):
        self.settings = settings or SustainSettings()
        self.settings.validate()
        self._run_start: Optional[float] = None
        self._run_frames = 0
        self._last_pitch: Optional[float] = None
        self._best = 0.0
        self._sustaining = False

    def configure(self, **partial: Any) -> None:
        """Change thresholds at run time; invalid values leave them untouched."""
        try:
            candidate = replace(self.settings, **partial)
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc
        candidate.validate()
        self.settings = candidate

    def reset(self) -> None:
        self._end_run()
        self._best = 0.0

    def reset_best(self) -> None:
        self._best = 0.0

    @property
    def best_seconds(self) -> float:
        return self._best

    def _end_run(self) -> None:
        if self._sustaining:
            logger.debug("Sustain ended, best so far %.2fs", self._best)
        self._run_start = None
        self._run_frames = 0
        self._last_pitch = None
        self._sustaining = False

    def meets_conditions(
        self,
        confidence: Optional[float],
        cents: Optional[float],
        rms: float,
        pitch_hz: Optional[float],
    ) -> bool:
        s = self.settings
        if confidence is None or confidence < s.pitch_confidence_threshold:
            return False
        if cents is None or abs(cents) > s.cents_tolerance:
            return False
        if rms < s.min_rms_threshold:
            return False
        if pitch_hz is not None and self._last_pitch is not None:
            deviation = abs(pitch_hz - self._last_pitch) / self._last_pitch
            if deviation >= PITCH_DEVIATION_TOLERANCE:
                return False
        return True

    def update(
        self,
        confidence: Optional[float],
        cents: Optional[float],
        rms: float,
        pitch_hz: Optional[float],
        timestamp: float,
    ) -> SustainState:
        """
        Advance the state machine by one frame.

        Args:
            confidence: Pitch confidence, None when no pitch was accepted.
            cents: Tuning deviation of the displayed note.
            rms: Raw frame RMS.
            pitch_hz: Displayed pitch, None when unpitched.
            timestamp: Frame time in seconds.

        Returns:
            SustainState after this frame.
        """
        if not self.meets_conditions(confidence, cents, rms, pitch_hz):
            self._end_run()
            return SustainState(0.0, self._best, False)

        if self._run_start is None:
            self._run_start = timestamp
            self._run_frames = 0
        self._run_frames += 1
        if pitch_hz is not None:
            self._last_pitch = pitch_hz

        elapsed = timestamp - self._run_start
        if self._run_frames >= MIN_RUN_FRAMES and elapsed >= MIN_RUN_SECONDS:
            if not self._sustaining:
                logger.debug("Sustain started at %.2fs", timestamp)
            self._sustaining = True
            self._best = max(self._best, elapsed)
            return SustainState(elapsed, self._best, True)

        return SustainState(0.0, self._best, False)
