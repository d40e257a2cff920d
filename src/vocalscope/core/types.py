"""
Per-frame output snapshot of the analysis engine.

Every field defaults to None so callers can tell "not computed this
frame" apart from a measured zero.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BreathinessDebug:
    """Diagnostic sub-scores behind a breathiness reading."""

    rms: float = 0.0
    periodicity: float = 0.0
    zcr: float = 0.0
    raw_score: float = 0.0
    smoothed_score: float = 0.0


@dataclass(frozen=True)
class EngineState:
    """
    Immutable snapshot produced by one engine update.

    The engine derives each snapshot from the previous one, so fields a
    stage did not touch this frame (e.g. the vocal range extremes) carry
    over unchanged.
    """

    # Level / gating
    rms: Optional[float] = None
    is_voiced: Optional[bool] = None

    # Pitch
    pitch_detected: Optional[bool] = None
    pitch_hz: Optional[float] = None
    note_name: Optional[str] = None
    cents: Optional[int] = None
    pitch_confidence: Optional[float] = None

    # Stability / vibrato
    pitch_stability: Optional[float] = None
    vibrato_rate_hz: Optional[float] = None
    vibrato_depth_cents: Optional[float] = None

    # Breathiness
    breathiness: Optional[float] = None
    breathiness_debug: Optional[BreathinessDebug] = None

    # Volume / dynamics
    volume_consistency: Optional[float] = None
    dynamic_range_db: Optional[float] = None
    loudness_std_db: Optional[float] = None

    # Vocal range this session
    range_low_hz: Optional[float] = None
    range_low_note: Optional[str] = None
    range_high_hz: Optional[float] = None
    range_high_note: Optional[str] = None

    # Sustain
    sustain_seconds: Optional[float] = None
    best_sustain_seconds: Optional[float] = 0.0
    is_sustaining: Optional[bool] = False

    # Scale
    scale_in_key: Optional[bool] = None
    scale_match: Optional[float] = None
    scale_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
