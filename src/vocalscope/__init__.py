"""Real-time singing voice analysis engine."""

from vocalscope.core.engine import AnalysisEngine
from vocalscope.core.types import EngineState
from vocalscope.io.exporter import SnapshotExporter
from vocalscope.session import SessionSummary, VoiceSession
from vocalscope.settings import ConfigurationError, EngineSettings, ModuleFlags, SettingsStore

__version__ = "0.1.0"
__all__ = [
    "AnalysisEngine",
    "EngineState",
    "EngineSettings",
    "ModuleFlags",
    "SettingsStore",
    "ConfigurationError",
    "SnapshotExporter",
    "SessionSummary",
    "VoiceSession",
]
