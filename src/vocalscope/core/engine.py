"""
Real-time voice analysis engine.

Architecture Overview
---------------------
::

    Capture layer (one fixed-size frame per callback)
        │
        ▼
    AnalysisEngine.update(frame, sample_rate, previous_state)
        │
        ├─► CalibrationController  (noise-floor sampling, optional)
        ├─► preprocess_frame       (RMS, DC removal, gain, voiced gate)
        ├─► PitchDetector          (NSDF + median history)
        │        └─► display smoothing, note / cents, ScaleMatcher,
        │            StabilityAnalyzer, vocal range extremes
        ├─► SustainTracker
        ├─► VolumeConsistencyAnalyzer + DynamicRangeAnalyzer
        ├─► BreathinessAnalyzer    (raw frame)
        ├─► StabilityAnalyzer.vibrato()
        │
        └─► EngineState  (returned to the caller for rendering)

Design Goals
------------
* **Synchronous**: one call per frame, run to completion, strictly in
  arrival order.  No threads, no background work.
* **Owned state**: all cross-frame memory lives on the analyzer objects
  held by one engine, so independent engines never interfere.
* **Graceful degradation**: analyzers without enough data leave their
  fields as None; nothing in the per-frame path raises on bad numerics.
"""

import logging
import time
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import numpy as np

from vocalscope.core.breathiness import BreathinessAnalyzer
from vocalscope.core.calibration import CalibrationController, CalibrationState
from vocalscope.core.notes import frequency_to_note
from vocalscope.core.pitch import PitchDetector
from vocalscope.core.preprocess import frame_rms, preprocess_frame
from vocalscope.core.scale import ScaleMatcher, get_scale, is_note_in_scale
from vocalscope.core.stability import StabilityAnalyzer
from vocalscope.core.sustain import SustainTracker
from vocalscope.core.types import EngineState
from vocalscope.core.volume import DynamicRangeAnalyzer, VolumeConsistencyAnalyzer
from vocalscope.settings import EngineSettings, SettingsStore

logger = logging.getLogger(__name__)

MIN_DISPLAY_WINDOW = 5
MAX_DISPLAY_WINDOW = 15


def display_window(smoothing_amount: float) -> int:
    """Odd median-window length between 5 and 15 frames."""
    amount = float(np.clip(smoothing_amount, 0.0, 1.0))
    window = int(round(MIN_DISPLAY_WINDOW + amount * (MAX_DISPLAY_WINDOW - MIN_DISPLAY_WINDOW)))
    return window + 1 if window % 2 == 0 else window


def display_alpha(smoothing_amount: float) -> float:
    """EMA weight of the newest displayed pitch; more smoothing, lower weight."""
    amount = float(np.clip(smoothing_amount, 0.0, 1.0))
    return 0.9 - amount * 0.5


class AnalysisEngine:
    """
    Sequences every analyzer once per incoming audio frame.

    Parameters
    ----------
    settings:
        Shared settings store.  A fresh default store is created when
        omitted.
    clock:
        Zero-argument callable returning seconds; used when
        :meth:`update` is called without an explicit timestamp.  Must be
        monotonic.
    """

    def __init__(
        self,
        settings: Optional[SettingsStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or SettingsStore()
        self.clock = clock

        self.pitch_detector = PitchDetector()
        self.stability = StabilityAnalyzer()
        self.breathiness = BreathinessAnalyzer()
        self.volume = VolumeConsistencyAnalyzer()
        self.dynamic_range = DynamicRangeAnalyzer()
        self.sustain = SustainTracker()
        self.scale = ScaleMatcher()
        self.calibration = CalibrationController(self.settings)

        self._display_history: deque = deque()
        self._last_display_pitch: Optional[float] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear every analyzer's history; call at session start and stop."""
        self.pitch_detector.reset()
        self.stability.reset()
        self.breathiness.reset()
        self.volume.reset()
        self.dynamic_range.reset()
        self.sustain.reset()
        self.scale.reset()
        self.calibration.reset()
        self._display_history.clear()
        self._last_display_pitch = None
        logger.debug("Engine context reset")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_settings(self) -> EngineSettings:
        return self.settings.get()

    def update_settings(self, **partial: Any) -> None:
        self.settings.update(**partial)

    def apply_preset(self, preset_id: str) -> None:
        self.settings.apply_preset(preset_id)

    def reset_settings(self) -> None:
        self.settings.reset()

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def start_calibration(self, timestamp: Optional[float] = None) -> None:
        self.calibration.start(self.clock() if timestamp is None else timestamp)

    def get_calibration_state(self, now: Optional[float] = None) -> CalibrationState:
        return self.calibration.state(self.clock() if now is None else now)

    def set_noise_gate(self, value: float) -> None:
        self.calibration.set_noise_gate(value)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def _smooth_display_pitch(self, frequency: float, smoothing_amount: float) -> float:
        window = display_window(smoothing_amount)
        self._display_history.append(frequency)
        while len(self._display_history) > window:
            self._display_history.popleft()

        if len(self._display_history) >= min(MIN_DISPLAY_WINDOW, window):
            ordered = sorted(self._display_history)
            display = ordered[len(ordered) // 2]
        else:
            display = frequency

        if self._last_display_pitch is not None:
            alpha = display_alpha(smoothing_amount)
            display = alpha * display + (1.0 - alpha) * self._last_display_pitch
        self._last_display_pitch = display
        return display

    def update(
        self,
        frame: np.ndarray,
        sample_rate: int,
        previous_state: Optional[EngineState] = None,
        settings: Optional[EngineSettings] = None,
        timestamp: Optional[float] = None,
    ) -> EngineState:
        """
        Analyze one frame and derive the next state snapshot.

        Args:
            frame: Mono float samples.  Frame length may vary between calls.
            sample_rate: Stream sample rate in Hz.
            previous_state: Snapshot returned by the previous call (a fresh
                EngineState when omitted).
            settings: Settings snapshot to use for this frame; taken from
                the engine's store when omitted.
            timestamp: Frame time in seconds; defaults to ``clock()``.

        Returns:
            New EngineState.  Fields of disabled modules are None; fields
            not touched this frame carry over from *previous_state*.

        Raises:
            ValueError: If the frame is empty or the sample rate is not
                positive.
        """
        samples = np.asarray(frame, dtype=np.float64).ravel()
        if samples.size == 0:
            raise ValueError("Audio frame must not be empty")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        cfg = settings if settings is not None else self.settings.get()
        now = self.clock() if timestamp is None else timestamp
        state = previous_state if previous_state is not None else EngineState()
        fields: Dict[str, Any] = {}

        rms = frame_rms(samples)
        fields["rms"] = rms

        if self.calibration.is_active:
            self.calibration.add_sample(rms, now)
        noise_gate = self.calibration.noise_gate if self.calibration.is_active else cfg.noise_gate_rms

        pre = preprocess_frame(samples, noise_gate)
        fields["is_voiced"] = pre.is_voiced

        pitch = None
        if cfg.modules.pitch and pre.is_voiced:
            pitch = self.pitch_detector.detect(pre.normalized, sample_rate)

        if pitch is not None and pitch.confidence >= cfg.pitch_confidence_threshold:
            display = self._smooth_display_pitch(pitch.frequency, cfg.smoothing_amount)
            note_name, cents = frequency_to_note(display)
            fields.update(
                pitch_detected=True,
                pitch_hz=display,
                note_name=note_name,
                cents=cents,
                pitch_confidence=pitch.confidence,
            )

            scale_def = get_scale(cfg.scale_id)
            if scale_def is not None:
                in_scale = is_note_in_scale(note_name, scale_def.id)
                self.scale.add(in_scale, now)
                fields.update(
                    scale_in_key=in_scale,
                    scale_match=self.scale.match_ratio(),
                    scale_label=scale_def.label,
                )

            if cfg.modules.stability:
                self.stability.add(display, pitch.confidence, now)
                fields["pitch_stability"] = self.stability.stability()

            if state.range_low_hz is None or display < state.range_low_hz:
                fields.update(range_low_hz=display, range_low_note=note_name)
            if state.range_high_hz is None or display > state.range_high_hz:
                fields.update(range_high_hz=display, range_high_note=note_name)
        else:
            self._display_history.clear()
            self._last_display_pitch = None
            fields.update(
                pitch_detected=False,
                pitch_hz=None,
                note_name=None,
                cents=None,
                pitch_confidence=None,
                scale_in_key=None,
            )

        if cfg.modules.sustain:
            sustain = self.sustain.update(
                fields["pitch_confidence"],
                fields["cents"],
                rms,
                fields["pitch_hz"],
                now,
            )
            fields.update(
                sustain_seconds=sustain.current_seconds,
                best_sustain_seconds=sustain.best_seconds,
                is_sustaining=sustain.is_sustaining,
            )
        else:
            fields.update(sustain_seconds=None, is_sustaining=False)

        if cfg.modules.volume:
            self.volume.add(rms)
            self.dynamic_range.add(rms, pre.is_voiced, now)
            stats = self.dynamic_range.stats()
            fields.update(
                volume_consistency=self.volume.consistency(),
                dynamic_range_db=stats.dynamic_range_db if stats else None,
                loudness_std_db=stats.loudness_std_db if stats else None,
            )
        else:
            fields.update(volume_consistency=None, dynamic_range_db=None, loudness_std_db=None)

        if cfg.modules.breathiness:
            fields["breathiness"] = self.breathiness.update(samples, sample_rate)
            fields["breathiness_debug"] = self.breathiness.debug
        else:
            fields.update(breathiness=None, breathiness_debug=None)

        if cfg.modules.stability:
            vibrato = self.stability.vibrato()
            fields.update(
                vibrato_rate_hz=vibrato.rate_hz if vibrato else None,
                vibrato_depth_cents=vibrato.depth_cents if vibrato else None,
            )
        else:
            fields.update(pitch_stability=None, vibrato_rate_hz=None, vibrato_depth_cents=None)

        return replace(state, **fields)
