"""
Engine configuration and presets.

Holds the thresholds every analyzer reads, the per-module enable flags,
and the named presets for common recording situations.  Validation
happens here, at the configuration boundary, so the per-frame audio
path never has to check its inputs.
"""

import copy
import logging
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when a setting, module flag or preset is malformed."""


def check_finite(name: str, value: Any) -> None:
    """Reject NaN, infinities and non-numeric threshold values."""
    try:
        finite = math.isfinite(value)
    except TypeError as exc:
        raise ConfigurationError(f"{name} must be numeric, got {value!r}") from exc
    if not finite:
        raise ConfigurationError(f"{name} must be finite, got {value}")


@dataclass
class ModuleFlags:
    """Enable switches for the optional analysis stages."""

    pitch: bool = True
    stability: bool = True
    volume: bool = True
    breathiness: bool = True
    sustain: bool = True


@dataclass
class EngineSettings:
    """Shared configuration consumed by all analyzers."""

    noise_gate_rms: float = 0.002
    pitch_confidence_threshold: float = 0.5
    cents_tolerance: float = 50.0
    smoothing_amount: float = 0.3
    scale_id: str = "c_major"
    modules: ModuleFlags = field(default_factory=ModuleFlags)

    def validate(self) -> None:
        """
        Check every field for a physically meaningful value.

        Raises:
            ConfigurationError: If any threshold is non-finite, negative
                or out of range.
        """
        numeric = (
            "noise_gate_rms",
            "pitch_confidence_threshold",
            "cents_tolerance",
            "smoothing_amount",
        )
        for name in numeric:
            check_finite(name, getattr(self, name))
        if self.noise_gate_rms < 0:
            raise ConfigurationError(
                f"noise_gate_rms must be >= 0, got {self.noise_gate_rms}"
            )
        if not 0.0 <= self.pitch_confidence_threshold <= 1.0:
            raise ConfigurationError(
                "pitch_confidence_threshold must be in [0, 1], "
                f"got {self.pitch_confidence_threshold}"
            )
        if self.cents_tolerance < 0:
            raise ConfigurationError(
                f"cents_tolerance must be >= 0, got {self.cents_tolerance}"
            )
        if not 0.0 <= self.smoothing_amount <= 1.0:
            raise ConfigurationError(
                f"smoothing_amount must be in [0, 1], got {self.smoothing_amount}"
            )
        if not isinstance(self.scale_id, str):
            raise ConfigurationError(f"scale_id must be a string, got {self.scale_id!r}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineSettings":
        """Build validated settings from a plain mapping (e.g. parsed JSON)."""
        settings = cls()
        _merge_into(settings, dict(data))
        settings.validate()
        return settings


PRESETS: Dict[str, Dict[str, float]] = {
    "quiet": {
        "noise_gate_rms": 0.0015,
        "pitch_confidence_threshold": 0.5,
        "cents_tolerance": 50.0,
        "smoothing_amount": 0.3,
    },
    "noisy": {
        "noise_gate_rms": 0.0035,
        "pitch_confidence_threshold": 0.6,
        "cents_tolerance": 50.0,
        "smoothing_amount": 0.5,
    },
    "whisper": {
        "noise_gate_rms": 0.001,
        "pitch_confidence_threshold": 0.55,
        "cents_tolerance": 50.0,
        "smoothing_amount": 0.4,
    },
    "belting": {
        "noise_gate_rms": 0.0025,
        "pitch_confidence_threshold": 0.5,
        "cents_tolerance": 50.0,
        "smoothing_amount": 0.25,
    },
    "iphone": {
        "noise_gate_rms": 0.003,
        "pitch_confidence_threshold": 0.55,
        "cents_tolerance": 50.0,
        "smoothing_amount": 0.5,
    },
}

PRESET_LABELS: Dict[str, str] = {
    "quiet": "Quiet room",
    "noisy": "Noisy room",
    "whisper": "Whisper",
    "belting": "Belting",
    "iphone": "iPhone mic",
}


def _merge_modules(target: ModuleFlags, value: Union[ModuleFlags, Mapping[str, bool]]) -> None:
    if isinstance(value, ModuleFlags):
        value = asdict(value)
    elif not isinstance(value, Mapping):
        raise ConfigurationError(
            f"modules must be a mapping of flag names to booleans, got {value!r}"
        )
    known = {f.name for f in fields(ModuleFlags)}
    for key, enabled in value.items():
        if key not in known:
            raise ConfigurationError(f"Unknown module flag: {key!r}")
        setattr(target, key, bool(enabled))


def _merge_into(settings: EngineSettings, partial: Dict[str, Any]) -> None:
    """Merge *partial* into *settings* in place; module flags merge per key."""
    known = {f.name for f in fields(EngineSettings)}
    for key, value in partial.items():
        if key not in known:
            raise ConfigurationError(f"Unknown setting: {key!r}")
        if key == "modules":
            _merge_modules(settings.modules, value)
        elif key == "scale_id":
            settings.scale_id = value
        else:
            try:
                setattr(settings, key, float(value))
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(f"{key} must be numeric, got {value!r}") from exc


class SettingsStore:
    """
    Session-wide owner of the mutable :class:`EngineSettings`.

    The UI layer mutates settings between frames; the engine takes one
    :meth:`get` snapshot per frame so a change can never be observed
    half-applied inside a single update.
    """

    def __init__(self, initial: Optional[EngineSettings] = None):
        if initial is not None:
            initial.validate()
        self._settings = copy.deepcopy(initial) if initial else EngineSettings()
        self._current_preset: Optional[str] = None

    def get(self) -> EngineSettings:
        """Return an independent copy of the current settings."""
        return copy.deepcopy(self._settings)

    def update(self, **partial: Any) -> None:
        """
        Merge a partial update into the current settings.

        The ``modules`` entry may be a mapping or a :class:`ModuleFlags`;
        only the named flags change.  The update is applied atomically:
        if validation fails, the previous settings are kept.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        candidate = copy.deepcopy(self._settings)
        _merge_into(candidate, partial)
        candidate.validate()
        self._settings = candidate
        self._current_preset = None

    def apply_preset(self, preset_id: str) -> None:
        """Overwrite the numeric thresholds with a preset, keeping module flags."""
        values = PRESETS.get(preset_id)
        if values is None:
            raise ConfigurationError(
                f"Unknown preset {preset_id!r}; expected one of {sorted(PRESETS)}"
            )
        candidate = copy.deepcopy(self._settings)
        for key, value in values.items():
            setattr(candidate, key, value)
        candidate.validate()
        self._settings = candidate
        self._current_preset = preset_id
        logger.debug("Applied preset %s", preset_id)

    def reset(self) -> None:
        self._settings = EngineSettings()
        self._current_preset = None

    def is_module_enabled(self, module: str) -> bool:
        try:
            return bool(getattr(self._settings.modules, module))
        except AttributeError as exc:
            raise ConfigurationError(f"Unknown module flag: {module!r}") from exc

    @property
    def current_preset(self) -> Optional[str]:
        return self._current_preset

    @staticmethod
    def available_presets() -> List[Dict[str, str]]:
        return [{"id": key, "label": PRESET_LABELS[key]} for key in PRESETS]
