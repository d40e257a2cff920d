"""
Frame preprocessing: level measurement, DC removal and gain normalization.
"""

from dataclasses import dataclass

import numpy as np

TARGET_RMS = 0.15
MIN_GAIN = 0.8
MAX_GAIN = 150.0


@dataclass
class PreprocessedFrame:
    """A single frame ready for pitch detection."""

    original: np.ndarray
    normalized: np.ndarray
    rms: float
    is_voiced: bool


def frame_rms(frame: np.ndarray) -> float:
    """Root-mean-square amplitude of a frame (0.0 for an empty frame)."""
    if len(frame) == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


def preprocess_frame(frame: np.ndarray, noise_gate: float) -> PreprocessedFrame:
    """
    Gate, center and normalize one frame.

    Voiced frames are scaled toward ``TARGET_RMS`` with the gain clamped
    to [MIN_GAIN, MAX_GAIN] so near-silent input is never blown up into
    full-scale noise.  Unvoiced frames come back as all zeros.

    Args:
        frame: Raw mono samples.
        noise_gate: RMS threshold separating voice from background.

    Returns:
        PreprocessedFrame with the original, normalized samples, RMS
        and voiced flag.
    """
    samples = np.asarray(frame, dtype=np.float64)
    rms = frame_rms(samples)
    is_voiced = rms >= noise_gate

    centered = samples - samples.mean() if len(samples) else samples

    if is_voiced and rms > 0.0:
        gain = float(np.clip(TARGET_RMS / rms, MIN_GAIN, MAX_GAIN))
        normalized = centered * gain
    else:
        normalized = np.zeros_like(centered)

    return PreprocessedFrame(
        original=samples,
        normalized=normalized,
        rms=rms,
        is_voiced=bool(is_voiced),
    )
