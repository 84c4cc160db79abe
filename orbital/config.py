"""Configuration loading for the orbital layout service."""

import math
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field


class LayoutConfig(BaseModel):
    """Orbit planning constants and layout policies."""
    model_config = ConfigDict(extra="forbid")

    base_orbit_radius: float = 150.0
    level_spacing: float = 110.0
    expansion_multiplier: float = 1.18
    child_bonus_per_child: float = 14.0
    child_bonus_cap: float = 90.0
    angle_offset: float = -math.pi / 2
    angle_mode: Literal["orbit", "fan"] = "orbit"
    fan_arc: float = 2 * math.pi / 3

    # Visual radius per depth: max(min_node_radius, max_node_radius - depth * node_radius_step)
    min_node_radius: float = 22.0
    max_node_radius: float = 75.0
    node_radius_step: float = 12.0

    synthetic_root_id: str = "__root__"
    synthetic_root_name: str = "root"

    retain_collapsed_state: bool = True
    forget_descendants_on_collapse: bool = False
    recenter_on_resize: bool = True


class PhysicsConfig(BaseModel):
    """Force integrator tuning."""
    model_config = ConfigDict(extra="forbid")

    dt: float = 1.0
    velocity_decay: float = 0.4
    orbit_strength: float = 0.06
    link_strength: float = 0.02
    repulsion_strength: float = 30.0
    repulsion_distance_max: float = 600.0
    collision_iterations: int = 3
    collision_padding: float = 4.0
    energy_threshold: float = 0.01
    max_ticks_per_run: int = 600
    frame_interval: float = 1 / 60
    epsilon: float = 1e-3
    random_seed: int = 0


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_level: str = "INFO"
    default_width: float = 900.0
    default_height: float = 700.0


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    physics: PhysicsConfig = Field(default_factory=PhysicsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """
    Load config from YAML. Falls back to defaults if the file is missing.

    Lookup order: explicit path, ORBITAL_CONFIG environment variable,
    config.yaml at the project root.
    """
    if config_path is None:
        env_path = os.environ.get("ORBITAL_CONFIG")
        config_path = Path(env_path) if env_path else _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        return Config(**raw)

    return Config()
