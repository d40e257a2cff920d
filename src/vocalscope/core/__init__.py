"""Core streaming analysis modules."""

from vocalscope.core.engine import AnalysisEngine
from vocalscope.core.pitch import PitchDetector, PitchResult
from vocalscope.core.types import BreathinessDebug, EngineState

__all__ = ["AnalysisEngine", "PitchDetector", "PitchResult", "EngineState", "BreathinessDebug"]
