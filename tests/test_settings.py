"""Tests for engine settings, presets and the settings store."""

import pytest

from vocalscope.settings import (
    PRESETS,
    ConfigurationError,
    EngineSettings,
    ModuleFlags,
    SettingsStore,
)


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.noise_gate_rms == 0.002
        assert settings.pitch_confidence_threshold == 0.5
        assert settings.cents_tolerance == 50.0
        assert settings.smoothing_amount == 0.3
        assert settings.scale_id == "c_major"
        assert settings.modules == ModuleFlags()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"noise_gate_rms": -0.1},
            {"pitch_confidence_threshold": 1.5},
            {"cents_tolerance": -5.0},
            {"smoothing_amount": 2.0},
        ],
    )
    def test_validation(self, overrides):
        with pytest.raises(ConfigurationError):
            EngineSettings(**overrides).validate()

    def test_dict_round_trip_keeps_module_flags(self):
        data = EngineSettings(scale_id="d_minor").to_dict()
        data["modules"]["breathiness"] = False
        restored = EngineSettings.from_dict(data)
        assert restored.scale_id == "d_minor"
        assert restored.modules.breathiness is False

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_dict({"gain": 3})

    @pytest.mark.parametrize(
        "field",
        ["noise_gate_rms", "pitch_confidence_threshold", "cents_tolerance", "smoothing_amount"],
    )
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_values_rejected(self, field, value):
        with pytest.raises(ConfigurationError):
            EngineSettings(**{field: value}).validate()


class TestSettingsStore:
    def test_get_returns_copy(self):
        store = SettingsStore()
        snapshot = store.get()
        snapshot.noise_gate_rms = 0.5
        snapshot.modules.pitch = False
        assert store.get().noise_gate_rms == 0.002
        assert store.is_module_enabled("pitch")

    def test_partial_module_update(self):
        store = SettingsStore()
        store.update(modules={"breathiness": False})
        modules = store.get().modules
        assert modules.breathiness is False
        assert modules.pitch is True
        assert modules.sustain is True

    def test_failed_update_is_atomic(self):
        store = SettingsStore()
        with pytest.raises(ConfigurationError):
            store.update(noise_gate_rms=0.01, smoothing_amount=5.0)
        assert store.get().noise_gate_rms == 0.002

    @pytest.mark.parametrize(
        "partial",
        [{"volume_boost": 1.0}, {"modules": {"reverb": True}}, {"cents_tolerance": "wide"}],
    )
    def test_bad_updates_rejected(self, partial):
        store = SettingsStore()
        with pytest.raises(ConfigurationError):
            store.update(**partial)

    def test_preset_keeps_module_flags(self):
        store = SettingsStore()
        store.update(modules={"volume": False})
        store.apply_preset("noisy")
        settings = store.get()
        assert settings.noise_gate_rms == PRESETS["noisy"]["noise_gate_rms"]
        assert settings.smoothing_amount == 0.5
        assert settings.modules.volume is False
        assert store.current_preset == "noisy"

    def test_manual_update_clears_preset(self):
        store = SettingsStore()
        store.apply_preset("whisper")
        store.update(cents_tolerance=30.0)
        assert store.current_preset is None

    def test_unknown_preset(self):
        store = SettingsStore()
        with pytest.raises(ConfigurationError):
            store.apply_preset("stadium")

    def test_reset(self):
        store = SettingsStore()
        store.apply_preset("belting")
        store.update(modules={"pitch": False})
        store.reset()
        assert store.get() == EngineSettings()
        assert store.current_preset is None

    def test_available_presets(self):
        ids = [p["id"] for p in SettingsStore.available_presets()]
        assert ids == list(PRESETS)
        assert {"quiet", "noisy", "whisper", "belting", "iphone"} == set(ids)

    def test_unknown_module_query(self):
        with pytest.raises(ConfigurationError):
            SettingsStore().is_module_enabled("reverb")

    def test_nan_noise_gate_rejected(self):
        store = SettingsStore()
        with pytest.raises(ConfigurationError):
            store.update(noise_gate_rms=float("nan"))
        assert store.get().noise_gate_rms == 0.002

    @pytest.mark.parametrize("modules", [None, True, ["pitch"]])
    def test_modules_must_be_a_mapping(self, modules):
        store = SettingsStore()
        with pytest.raises(ConfigurationError):
            store.update(modules=modules)
        assert store.get().modules == ModuleFlags()
