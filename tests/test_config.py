import pytest
from pydantic import ValidationError

from orbital.config import Config, load_config


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")

    assert config == Config()
    assert config.physics.velocity_decay == 0.4
    assert config.layout.base_orbit_radius == 150.0


def test_yaml_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "layout:\n"
        "  angle_mode: fan\n"
        "  retain_collapsed_state: false\n"
        "physics:\n"
        "  repulsion_strength: 12.5\n"
    )

    config = load_config(path)

    assert config.layout.angle_mode == "fan"
    assert config.layout.retain_collapsed_state is False
    assert config.physics.repulsion_strength == 12.5
    assert config.physics.orbit_strength == 0.06


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")

    assert load_config(path) == Config()


def test_env_var_points_at_config(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("server:\n  log_level: DEBUG\n")
    monkeypatch.setenv("ORBITAL_CONFIG", str(path))

    assert load_config().server.log_level == "DEBUG"


def test_unknown_key_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("physics:\n  gravity: 9.8\n")

    with pytest.raises(ValidationError):
        load_config(path)


def test_invalid_angle_mode_rejected():
    with pytest.raises(ValidationError):
        Config(layout={"angle_mode": "spiral"})
