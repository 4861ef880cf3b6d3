"""
Shared test fixtures for the tiling core.
"""
import itertools
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from seamgrid.conditions import default_engine
from seamgrid.config import DEFAULT_CONFIG
from seamgrid.operations import OperationEnv
from seamgrid.strategies import default_strategies
from seamgrid.tiling import Tile, Tiling, full_tiling


@pytest.fixture
def single_tiling():
    """One tile covering the whole container."""
    return full_tiling("tile-0")


@pytest.fixture
def split_tiling():
    """Two tiles side by side, seam at x=50."""
    return Tiling([
        Tile("a", 0, 0, 50, 100),
        Tile("b", 50, 0, 50, 100),
    ])


@pytest.fixture
def quad_tiling():
    """2x2 grid: a b on top, c d below."""
    return Tiling([
        Tile("a", 0, 0, 50, 50),
        Tile("b", 50, 0, 50, 50),
        Tile("c", 0, 50, 50, 50),
        Tile("d", 50, 50, 50, 50),
    ])


@pytest.fixture
def t_tiling():
    """Full-height tile on the left, two stacked tiles on the right."""
    return Tiling([
        Tile("left", 0, 0, 50, 100),
        Tile("top-right", 50, 0, 50, 50),
        Tile("bottom-right", 50, 50, 50, 50),
    ])


@pytest.fixture
def make_env():
    """Factory for an OperationEnv whose ids are new-1, new-2, ..."""

    def _make(config=DEFAULT_CONFIG):
        counter = itertools.count(1)
        return OperationEnv(
            config=config,
            engine=default_engine(),
            strategies=default_strategies(),
            next_id=lambda: f"new-{next(counter)}",
        )

    return _make


@pytest.fixture
def env(make_env):
    return make_env()
