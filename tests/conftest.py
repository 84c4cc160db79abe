"""Shared test fixtures for orbital layout tests."""

import pytest

from orbital.config import Config, PhysicsConfig
from orbital.schemas.hierarchy import FolderItem
from orbital.services.engine import OrbitalEngine


def build_items():
    """
    Sample hierarchy:

        root
          A (10)
            A1 (6)
            A2 (4)
          B (5)
            B1 (5)
    """
    return [
        FolderItem(id="root", name="Root", children=[
            FolderItem(id="A", name="A", size=10, children=[
                FolderItem(id="A1", name="A1", size=6),
                FolderItem(id="A2", name="A2", size=4),
            ]),
            FolderItem(id="B", name="B", size=5, children=[
                FolderItem(id="B1", name="B1", size=5),
            ]),
        ])
    ]


@pytest.fixture
def sample_items():
    return build_items()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def fast_config():
    """Config whose frame loop does not wait between ticks"""
    return Config(physics=PhysicsConfig(frame_interval=0.0))


@pytest.fixture
def engine(config, sample_items):
    """Engine with the sample hierarchy on a 900x700 viewport, nothing expanded"""
    engine = OrbitalEngine(config, map_id="test-map")
    engine.set_hierarchy(sample_items)
    engine.set_viewport(900, 700)
    yield engine
    engine.detach()
