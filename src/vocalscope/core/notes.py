"""
Frequency <-> note name conversion in 12-tone equal temperament (A4 = 440 Hz).
"""

import math
from typing import Optional, Tuple

import librosa
from librosa.util.exceptions import ParameterError

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

A4_HZ = 440.0
A4_MIDI = 69


def frequency_to_midi(frequency_hz: float) -> float:
    """Fractional MIDI note number for a frequency."""
    if not math.isfinite(frequency_hz) or frequency_hz <= 0:
        raise ValueError(f"Frequency must be positive and finite, got {frequency_hz}")
    return A4_MIDI + 12.0 * math.log2(frequency_hz / A4_HZ)


def frequency_to_note(frequency_hz: float) -> Tuple[str, int]:
    """
    Map a frequency to its nearest note name and cents deviation.

    Args:
        frequency_hz: Positive, finite frequency.

    Returns:
        Tuple of (note_name, cents), e.g. ("A3", -2).  Cents lie in
        [-50, 50].

    Raises:
        ValueError: If the frequency is non-positive or not finite.
    """
    midi = frequency_to_midi(frequency_hz)
    # half-up rounding, not banker's rounding
    nearest = int(math.floor(midi + 0.5))
    cents = int(math.floor((midi - nearest) * 100.0 + 0.5))
    octave = nearest // 12 - 1
    return f"{NOTE_NAMES[nearest % 12]}{octave}", cents


def note_to_pitch_class(note_name: str) -> Optional[int]:
    """Pitch class (0-11) of a note name such as "A3", "Bb" or "F#4"."""
    if not note_name:
        return None
    try:
        return int(librosa.note_to_midi(note_name)) % 12
    except ParameterError:
        return None


def note_to_frequency(note_name: str) -> float:
    """
    Frequency of a fully qualified note name such as "A4" or "Eb3".

    Raises:
        ValueError: If the name has no octave or cannot be parsed.
    """
    if not note_name or not note_name[-1].isdigit():
        raise ValueError(f"Not a note name with octave: {note_name!r}")
    try:
        return float(librosa.note_to_hz(note_name))
    except ParameterError as exc:
        raise ValueError(f"Not a note name with octave: {note_name!r}") from exc
