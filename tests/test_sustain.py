"""Tests for the note-sustain state machine."""

import pytest

from vocalscope.core.sustain import SustainSettings, SustainTracker
from vocalscope.settings import ConfigurationError

FRAME_DT = 0.025


def _good(tracker, i, pitch=220.0):
    return tracker.update(0.9, 5.0, 0.05, pitch, i * FRAME_DT)


class TestSustainTracker:
    def test_short_run_is_not_a_sustain(self):
        tracker = SustainTracker()
        states = [_good(tracker, i) for i in range(3)]
        assert not any(s.is_sustaining for s in states)
        assert states[-1].current_seconds == 0.0

    def test_run_becomes_sustain(self):
        tracker = SustainTracker()
        states = [_good(tracker, i) for i in range(10)]
        assert states[-1].is_sustaining
        assert states[-1].current_seconds == pytest.approx(9 * FRAME_DT)
        assert states[-1].best_seconds == pytest.approx(9 * FRAME_DT)

    def test_durations_are_monotone_while_sustaining(self):
        tracker = SustainTracker()
        states = [_good(tracker, i) for i in range(12)]
        sustained = [s.current_seconds for s in states if s.is_sustaining]
        assert sustained == sorted(sustained)

    def test_failing_frame_resets_current_not_best(self):
        tracker = SustainTracker()
        for i in range(10):
            _good(tracker, i)
        broken = tracker.update(0.9, 40.0, 0.05, 220.0, 10 * FRAME_DT)
        assert broken.current_seconds == 0.0
        assert not broken.is_sustaining
        assert broken.best_seconds == pytest.approx(9 * FRAME_DT)

    @pytest.mark.parametrize(
        "confidence, cents, rms",
        [(None, 0.0, 0.05), (0.5, 0.0, 0.05), (0.9, None, 0.05), (0.9, 0.0, 0.001)],
    )
    def test_condition_failures(self, confidence, cents, rms):
        tracker = SustainTracker()
        assert not tracker.meets_conditions(confidence, cents, rms, 220.0)

    def test_pitch_jump_ends_run(self):
        tracker = SustainTracker()
        for i in range(10):
            _good(tracker, i)
        jumped = _good(tracker, 10, pitch=250.0)
        assert not jumped.is_sustaining

    def test_best_survives_until_reset(self):
        tracker = SustainTracker()
        for i in range(10):
            _good(tracker, i)
        tracker.update(None, None, 0.0, None, 1.0)
        assert tracker.best_seconds > 0
        tracker.reset_best()
        assert tracker.best_seconds == 0.0

    def test_configure(self):
        tracker = SustainTracker()
        tracker.configure(cents_tolerance=50.0)
        assert tracker.meets_conditions(0.9, 40.0, 0.05, None)
        with pytest.raises(ConfigurationError):
            tracker.configure(cents_tolerance=-1.0)
        with pytest.raises(ConfigurationError):
            tracker.configure(bogus=1)
        assert tracker.settings.cents_tolerance == 50.0

    def test_invalid_initial_settings(self):
        with pytest.raises(ConfigurationError):
            SustainTracker(SustainSettings(pitch_confidence_threshold=2.0))

    @pytest.mark.parametrize("field", ["pitch_confidence_threshold", "cents_tolerance", "min_rms_threshold"])
    def test_non_finite_thresholds_rejected(self, field):
        tracker = SustainTracker()
        with pytest.raises(ConfigurationError):
            tracker.configure(**{field: float("nan")})
        with pytest.raises(ConfigurationError):
            SustainTracker(SustainSettings(**{field: float("inf")}))

    def test_needs_three_frames_even_after_long_gaps(self):
        # frames far apart pass the elapsed-time gate on the second frame
        tracker = SustainTracker()
        first = tracker.update(0.9, 5.0, 0.05, 220.0, 0.0)
        second = tracker.update(0.9, 5.0, 0.05, 220.0, 0.2)
        third = tracker.update(0.9, 5.0, 0.05, 220.0, 0.4)
        assert not first.is_sustaining
        assert not second.is_sustaining
        assert second.current_seconds == 0.0
        assert third.is_sustaining
        assert third.current_seconds == pytest.approx(0.4)
