"""
Session lifecycle around an :class:`AnalysisEngine`.

The engine only produces per-frame snapshots.  A session resets it on
start and stop, hands each snapshot to an optional callback and folds
the snapshots into the end-of-session aggregates.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np

from vocalscope.core.engine import AnalysisEngine
from vocalscope.core.types import EngineState

logger = logging.getLogger(__name__)

IN_TUNE_CENTS = 50


@dataclass
class SessionSummary:
    """Aggregates over one recording session."""

    timestamp: str
    max_sustain_seconds: float
    avg_stability: float
    tuning_accuracy: float   # fraction of pitched frames within +/-50 cents
    scale_accuracy: float    # fraction of pitched frames inside the scale
    n_frames: int


class SessionAccumulator:
    """Running sums needed for a :class:`SessionSummary`."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.n_frames = 0
        self._stability_sum = 0.0
        self._stability_count = 0
        self._pitch_frames = 0
        self._in_tune_frames = 0
        self._scale_frames = 0
        self._in_scale_frames = 0
        self._max_sustain = 0.0

    def add(self, state: EngineState) -> None:
        self.n_frames += 1

        if state.pitch_stability is not None:
            self._stability_sum += state.pitch_stability
            self._stability_count += 1

        if state.cents is not None and state.pitch_confidence is not None:
            self._pitch_frames += 1
            if abs(state.cents) <= IN_TUNE_CENTS:
                self._in_tune_frames += 1

        if state.scale_in_key is not None:
            self._scale_frames += 1
            if state.scale_in_key:
                self._in_scale_frames += 1

        if state.best_sustain_seconds is not None:
            self._max_sustain = max(self._max_sustain, state.best_sustain_seconds)

    def summary(self) -> SessionSummary:
        def ratio(num: float, den: int) -> float:
            return num / den if den > 0 else 0.0

        return SessionSummary(
            timestamp=datetime.now(timezone.utc).isoformat(),
            max_sustain_seconds=self._max_sustain,
            avg_stability=ratio(self._stability_sum, self._stability_count),
            tuning_accuracy=ratio(self._in_tune_frames, self._pitch_frames),
            scale_accuracy=ratio(self._in_scale_frames, self._scale_frames),
            n_frames=self.n_frames,
        )


class VoiceSession:
    """
    Drives an engine for one start/stop session.

    Example::

        session = VoiceSession()
        session.start(on_state=render)
        for frame in capture:
            session.process(frame, 44100)
        summary = session.stop()
    """

    def __init__(self, engine: Optional[AnalysisEngine] = None):
        self.engine = engine or AnalysisEngine()
        self.accumulator = SessionAccumulator()
        self.state = EngineState()
        self._callback: Optional[Callable[[EngineState], None]] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, on_state: Optional[Callable[[EngineState], None]] = None) -> None:
        self.engine.reset()
        self.accumulator.reset()
        self.state = EngineState()
        self._callback = on_state
        self._active = True
        logger.info("Session started")

    def process(
        self,
        frame: np.ndarray,
        sample_rate: int,
        timestamp: Optional[float] = None,
    ) -> Optional[EngineState]:
        """
        Feed one captured frame.

        Returns:
            The new snapshot, or None when the session is not running.
        """
        if not self._active:
            return None
        self.state = self.engine.update(
            frame, sample_rate, self.state, timestamp=timestamp
        )
        self.accumulator.add(self.state)
        if self._callback is not None:
            self._callback(self.state)
        return self.state

    def stop(self) -> SessionSummary:
        """End the session, reset the engine and return its aggregates."""
        summary = self.accumulator.summary()
        self._active = False
        self._callback = None
        self.engine.reset()
        self.state = EngineState()
        self.accumulator.reset()
        logger.info(
            "Session stopped: %d frames, max sustain %.2fs",
            summary.n_frames,
            summary.max_sustain_seconds,
        )
        return summary
