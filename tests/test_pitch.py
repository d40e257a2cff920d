"""Tests for the NSDF pitch detector."""

import numpy as np
import pytest

from vocalscope.core.pitch import (
    PitchDetector,
    compute_nsdf,
    find_key_maxima,
    parabolic_interpolation,
)
from vocalscope.core.preprocess import preprocess_frame

from conftest import TEST_SR, noise_frames, sine_frames


def _detect_sequence(detector, frames, sr=TEST_SR):
    results = []
    for frame in frames:
        pre = preprocess_frame(frame, noise_gate=0.002)
        results.append(detector.detect(pre.normalized, sr))
    return results


# ---------------------------------------------------------------------------
# Accuracy on pure tones
# ---------------------------------------------------------------------------

class TestSineAccuracy:
    @pytest.mark.parametrize(
        "freq", [82.41, 110.0, 196.0, 220.0, 329.63, 440.0, 659.25, 880.0, 990.0]
    )
    def test_within_one_percent_once_window_full(self, freq):
        detector = PitchDetector()
        results = _detect_sequence(detector, sine_frames(freq, 9))
        assert all(r is not None for r in results)
        last = results[-1]
        assert abs(last.frequency - freq) / freq < 0.01
        assert last.confidence > 0.8

    def test_no_sub_octave_error(self):
        # 220 Hz has a period of 200.45 samples; the double-period peak
        # sits closer to an integer lag and must still lose.
        detector = PitchDetector()
        result = _detect_sequence(detector, sine_frames(220.0, 1))[0]
        assert result is not None
        assert result.frequency == pytest.approx(220.0, rel=0.01)

    def test_note_and_cents_attached(self):
        detector = PitchDetector()
        result = _detect_sequence(detector, sine_frames(220.0, 7))[-1]
        assert result.note_name == "A3"
        assert abs(result.cents) < 5

    def test_lower_sample_rate(self):
        detector = PitchDetector()
        results = _detect_sequence(detector, sine_frames(196.0, 7, sr=22050), sr=22050)
        assert results[-1].frequency == pytest.approx(196.0, rel=0.01)


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

class TestRejection:
    def test_silence_has_no_pitch(self):
        detector = PitchDetector()
        assert detector.detect(np.zeros(2048), TEST_SR) is None

    def test_white_noise_has_no_pitch(self):
        detector = PitchDetector()
        results = _detect_sequence(detector, noise_frames(3, rms=0.1))
        assert all(r is None for r in results)

    def test_above_range_rejected(self):
        detector = PitchDetector()
        assert _detect_sequence(detector, sine_frames(1500.0, 1))[0] is None

    def test_below_range_rejected(self):
        detector = PitchDetector()
        assert _detect_sequence(detector, sine_frames(60.0, 1))[0] is None

    def test_frame_too_short_for_range(self):
        detector = PitchDetector()
        assert detector.detect(np.ones(40), TEST_SR) is None


# ---------------------------------------------------------------------------
# Median history
# ---------------------------------------------------------------------------

class TestMedianHistory:
    def test_single_outlier_suppressed(self):
        detector = PitchDetector()
        _detect_sequence(detector, sine_frames(220.0, 5))
        jump = _detect_sequence(detector, sine_frames(440.0, 1, start=5))[0]
        assert jump.raw_frequency == pytest.approx(440.0, rel=0.01)
        assert jump.frequency == pytest.approx(220.0, rel=0.01)

    def test_raw_output_before_three_estimates(self):
        detector = PitchDetector()
        first = _detect_sequence(detector, sine_frames(330.0, 1))[0]
        assert first.frequency == first.raw_frequency

    def test_reset_clears_history(self):
        detector = PitchDetector()
        _detect_sequence(detector, sine_frames(220.0, 5))
        detector.reset()
        result = _detect_sequence(detector, sine_frames(440.0, 1))[0]
        assert result.frequency == pytest.approx(440.0, rel=0.01)

    def test_even_window_rejected(self):
        with pytest.raises(ValueError):
            PitchDetector(median_window=6)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

class TestNSDF:
    def test_zero_lag_is_one(self):
        frame = sine_frames(220.0, 1)[0].astype(np.float64)
        curve = compute_nsdf(frame, 600)
        assert curve[0] == pytest.approx(1.0, abs=1e-9)
        assert np.all(np.abs(curve) <= 1.0 + 1e-9)

    def test_peak_at_period(self):
        # 441 Hz at 44100 Hz has an exact 100-sample period
        frame = sine_frames(441.0, 1)[0].astype(np.float64)
        curve = compute_nsdf(frame, 300)
        peaks = find_key_maxima(curve, 0.25)
        assert peaks[0] == 100
        assert curve[100] == pytest.approx(1.0, abs=1e-3)

    def test_parabolic_symmetric_peak(self):
        curve = np.array([0.0, 0.5, 1.0, 0.5, 0.0])
        assert parabolic_interpolation(curve, 2) == pytest.approx(2.0)

    def test_parabolic_shifted_peak(self):
        curve = np.array([0.0, 0.6, 1.0, 0.8, 0.0])
        assert 2.0 < parabolic_interpolation(curve, 2) < 2.5

    def test_parabolic_degenerate_falls_back(self):
        flat = np.array([1.0, 1.0, 1.0, 1.0])
        assert parabolic_interpolation(flat, 1) == 1.0
        assert parabolic_interpolation(flat, 0) == 0.0
        assert parabolic_interpolation(flat, 3) == 3.0
