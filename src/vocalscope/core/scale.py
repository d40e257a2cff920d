"""
Scale membership and rolling in-key ratio.
"""

from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from vocalscope.core.notes import note_to_pitch_class

MAJOR_INTERVALS = (0, 2, 4, 5, 7, 9, 11)
MINOR_INTERVALS = (0, 2, 3, 5, 7, 8, 10)

SCALE_WINDOW_SECONDS = 2.0
MIN_MATCH_SAMPLES = 5


@dataclass(frozen=True)
class ScaleDefinition:
    id: str
    label: str
    root: str
    mode: str  # "major" | "minor"

    @property
    def pitch_classes(self) -> FrozenSet[int]:
        intervals = MAJOR_INTERVALS if self.mode == "major" else MINOR_INTERVALS
        root = note_to_pitch_class(self.root)
        return frozenset((root + i) % 12 for i in intervals)


COMMON_SCALES: List[ScaleDefinition] = [
    ScaleDefinition("c_major", "C Major", "C", "major"),
    ScaleDefinition("g_major", "G Major", "G", "major"),
    ScaleDefinition("d_major", "D Major", "D", "major"),
    ScaleDefinition("a_major", "A Major", "A", "major"),
    ScaleDefinition("e_major", "E Major", "E", "major"),
    ScaleDefinition("f_major", "F Major", "F", "major"),
    ScaleDefinition("bb_major", "Bb Major", "Bb", "major"),
    ScaleDefinition("eb_major", "Eb Major", "Eb", "major"),
    ScaleDefinition("a_minor", "A Minor", "A", "minor"),
    ScaleDefinition("e_minor", "E Minor", "E", "minor"),
    ScaleDefinition("d_minor", "D Minor", "D", "minor"),
    ScaleDefinition("g_minor", "G Minor", "G", "minor"),
    ScaleDefinition("c_minor", "C Minor", "C", "minor"),
    ScaleDefinition("f_minor", "F Minor", "F", "minor"),
]

_SCALES_BY_ID: Dict[str, ScaleDefinition] = {s.id: s for s in COMMON_SCALES}


def get_scale(scale_id: str) -> Optional[ScaleDefinition]:
    return _SCALES_BY_ID.get(scale_id)


def is_note_in_scale(note_name: str, scale_id: str) -> bool:
    """True if the note's pitch class belongs to the scale (any octave)."""
    scale = get_scale(scale_id)
    if scale is None:
        return False
    pitch_class = note_to_pitch_class(note_name)
    if pitch_class is None:
        return False
    return pitch_class in scale.pitch_classes


class ScaleMatcher:
    """
    Fraction of recently sung notes that fall inside the target scale.

    While the window holds fewer than ``MIN_MATCH_SAMPLES`` entries the
    last computed ratio is reported instead of a misleading zero.
    """

    def __init__(self, window_seconds: float = SCALE_WINDOW_SECONDS):
        self.window_seconds = window_seconds
        self._samples: deque = deque()
        self._last_match = 0.0

    def __len__(self) -> int:
        return len(self._samples)

    def reset(self) -> None:
        self._samples.clear()
        self._last_match = 0.0

    def add(self, in_scale: bool, timestamp: float) -> None:
        self._samples.append((timestamp, bool(in_scale)))
        cutoff = timestamp - self.window_seconds
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    def match_ratio(self) -> float:
        if len(self._samples) < MIN_MATCH_SAMPLES:
            return self._last_match
        in_count = sum(1 for _, in_scale in self._samples if in_scale)
        self._last_match = in_count / len(self._samples)
        return self._last_match
