"""Shared fixtures for gridfluid tests."""

import numpy as np
import pytest

from gridfluid import GridSolver, SolverConfig
from gridfluid.constants import DIRECTION_NONE


@pytest.fixture
def still_config():
    """No gravity, no viscosity, default closed box."""
    return SolverConfig(gravity=[0.0, 0.0])


@pytest.fixture
def open_config():
    """Gravity on, every outer wall open."""
    return SolverConfig(gravity=[0.0, -9.8], closed_domain_boundary_flag=DIRECTION_NONE)


@pytest.fixture
def make_solver():
    """Factory for small 2-D solvers on the unit square."""

    def _make(n=4, config=None, **kwargs):
        return GridSolver((n, n), spacing=1.0 / n, origin=(0.0, 0.0), config=config, **kwargs)

    return _make


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def assert_ghost_border(data):
    """Edge ghosts copy their interior neighbour; corners average their two edge ghosts."""
    nx, ny = data.shape
    np.testing.assert_array_equal(data[0, 1:-1], data[1, 1:-1])
    np.testing.assert_array_equal(data[-1, 1:-1], data[-2, 1:-1])
    np.testing.assert_array_equal(data[1:-1, 0], data[1:-1, 1])
    np.testing.assert_array_equal(data[1:-1, -1], data[1:-1, -2])
    for i, j in ((0, 0), (0, ny - 1), (nx - 1, 0), (nx - 1, ny - 1)):
        di = 1 if i == 0 else -1
        dj = 1 if j == 0 else -1
        expected = 0.5 * (data[i + di, j] + data[i, j + dj])
        assert data[i, j] == pytest.approx(expected)


@pytest.fixture
def ghost_border():
    return assert_ghost_border
