"""Unit tests for indoor.config (presets and JSON configuration files)."""

import json

import pytest

import indoor
from indoor.config import (
    PRESETS,
    PositioningConfig,
    config_from_dict,
    get_preset,
    load_config,
    save_config,
)
from indoor.errors import InvalidArgumentError
from indoor.fingerprinting import DEFAULT_EPSILON


class TestPositioningConfig:
    """Test defaults and validation."""

    def test_defaults(self):
        config = PositioningConfig()
        assert config.k == 3
        assert config.epsilon == DEFAULT_EPSILON
        assert config.taylor_order == 3
        assert not config.use_no_mean_distance

    @pytest.mark.parametrize(
        "overrides, match",
        [
            ({"k": 0}, "k must be"),
            ({"k": 2.5}, "k must be"),
            ({"k": True}, "k must be"),
            ({"epsilon": 0.0}, "epsilon"),
            ({"taylor_order": 4}, "taylor_order"),
            ({"frequency": -1.0}, "frequency"),
            ({"path_loss_exponent": 0.0}, "path_loss_exponent"),
            ({"fallback_rssi_std": 0.0}, "fallback_rssi_std"),
            ({"max_iterations": 0}, "max_iterations"),
            ({"tolerance": 0.0}, "tolerance"),
        ],
    )
    def test_invalid_values(self, overrides, match):
        with pytest.raises(InvalidArgumentError, match=match):
            PositioningConfig(**overrides)

    def test_with_overrides_validates(self):
        config = PositioningConfig().with_overrides(k=7)
        assert config.k == 7
        with pytest.raises(InvalidArgumentError):
            config.with_overrides(taylor_order=0)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            PositioningConfig().k = 4


class TestPresets:
    """Test named presets."""

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_all_presets_are_valid(self, name):
        assert isinstance(get_preset(name), PositioningConfig)

    def test_cross_device_removes_means(self):
        assert get_preset("cross_device").use_no_mean_distance

    def test_unknown_preset(self):
        with pytest.raises(InvalidArgumentError, match="Unknown preset"):
            get_preset("nope")

    def test_exported_from_package(self):
        assert indoor.get_preset("fast").taylor_order == 1


class TestConfigFiles:
    """Test dictionaries and JSON files."""

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Unknown configuration keys"):
            config_from_dict({"kk": 3})

    def test_description_ignored(self):
        assert config_from_dict({"description": "x", "k": 2}).k == 2

    def test_round_trip(self, tmp_path):
        config = get_preset("sparse_grid").with_overrides(epsilon=1e-5)
        path = tmp_path / "nested" / "positioning.json"
        save_config(config, path)
        assert load_config(path) == config
        assert json.loads(path.read_text())["k"] == config.k

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "positioning.json"
        path.write_text("[1, 2]")
        with pytest.raises(InvalidArgumentError, match="JSON object"):
            load_config(path)
