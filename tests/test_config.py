import logging
import math

import pytest

from terrain_erosion.config import ConfigurationError, ErosionConfig, load_config


def test_defaults_are_valid():
    cfg = ErosionConfig()
    cfg.validate()
    assert cfg.cell_area == 1.0
    assert cfg.talus == pytest.approx(1.0)


def test_talus_follows_cell_length_and_angle():
    cfg = ErosionConfig(cell_length=2.0, slippage_angle=30.0)
    assert cfg.cell_area == 4.0
    assert cfg.talus == pytest.approx(2.0 * math.tan(math.radians(30.0)))


@pytest.mark.parametrize("overrides", [
    {"width": 0},
    {"length": -3},
    {"cell_length": 0.0},
    {"fluid_density": 0.0},
    {"slippage_angle": 90.0},
    {"evaporation_rate": -0.1},
    {"terrain_hardness": 1.5},
    {"output_interval": 0},
    {"total_steps": -1},
    {"metrics_interval": -5},
])
def test_validate_rejects_unrunnable_values(overrides):
    cfg = ErosionConfig(**overrides)
    with pytest.raises(ConfigurationError):
        cfg.validate()


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("width: 32\nlength: 16\nis_raining: true\nslippage_angle: 30.0\n")

    cfg = load_config(path)
    assert (cfg.width, cfg.length) == (32, 16)
    assert cfg.is_raining is True
    assert cfg.slippage_angle == 30.0
    assert cfg.evaporation_rate == ErosionConfig().evaporation_rate


def test_unknown_keys_are_warned_and_ignored(tmp_path, caplog):
    path = tmp_path / "run.yaml"
    path.write_text("width: 8\nmanning_n: 0.03\ncell_area: 9.0\n")

    with caplog.at_level(logging.WARNING):
        cfg = load_config(path)
    assert cfg.width == 8
    assert cfg.cell_area == 1.0
    assert "manning_n" in caplog.text
    assert "cell_area" in caplog.text


def test_invalid_values_in_file_are_refused(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("cell_length: 0\n")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == ErosionConfig()


def test_zero_output_interval_in_file_is_refused(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("output_interval: 0\n")
    with pytest.raises(ConfigurationError):
        load_config(path)
