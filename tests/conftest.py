"""Shared fixtures: synthetic voice-like signals cut into capture-sized frames."""

import numpy as np
import pytest

from vocalscope.core.engine import AnalysisEngine
from vocalscope.settings import SettingsStore

TEST_SR = 44100
FRAME_SIZE = 2048
FRAME_SECONDS = FRAME_SIZE / TEST_SR


def sine_frames(freq, n_frames, amplitude=0.3, sr=TEST_SR, frame_size=FRAME_SIZE, start=0):
    """Consecutive phase-continuous frames of a pure tone."""
    frames = []
    for k in range(start, start + n_frames):
        t = (np.arange(frame_size) + k * frame_size) / sr
        frames.append((amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32))
    return frames


def noise_frames(n_frames, rms=0.1, seed=0, frame_size=FRAME_SIZE):
    """Frames of Gaussian white noise at a given RMS."""
    rng = np.random.default_rng(seed)
    return [(rms * rng.standard_normal(frame_size)).astype(np.float32) for _ in range(n_frames)]


def silent_frame(frame_size=FRAME_SIZE):
    return np.zeros(frame_size, dtype=np.float32)


@pytest.fixture
def engine():
    return AnalysisEngine(settings=SettingsStore(), clock=lambda: 0.0)


@pytest.fixture
def pure_sine():
    """Two seconds of A3 at 0.3 amplitude."""
    sr = TEST_SR
    t = np.linspace(0, 2.0, int(sr * 2.0), endpoint=False)
    return (0.3 * np.sin(2 * np.pi * 220.0 * t)).astype(np.float32), sr
