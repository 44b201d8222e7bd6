"""Tests for SolverConfig."""

import pytest
import yaml

from gridfluid.config import SolverConfig, default_gravity
from gridfluid.constants import DIRECTION_ALL, DIRECTION_LEFT, EPS


class TestDefaults:

    def test_defaults(self):
        config = SolverConfig()
        assert config.gravity is None
        assert config.max_cfl == 5.0
        assert config.closed_domain_boundary_flag == DIRECTION_ALL
        assert config.use_fixed_sub_time_steps is False

    def test_default_gravity_points_down_y(self):
        assert default_gravity(2) == [0.0, -9.8]
        assert default_gravity(3) == [0.0, -9.8, 0.0]
        assert default_gravity(1) == [0.0]


class TestClamping:

    def test_degenerate_values_clamped(self):
        config = SolverConfig(viscosity_coefficient=-1.0, diffusion_coefficient=-2.0,
                              max_cfl=0.0, number_of_fixed_sub_time_steps=0, pressure_iterations=-5)
        assert config.viscosity_coefficient == 0.0
        assert config.diffusion_coefficient == 0.0
        assert config.max_cfl == EPS
        assert config.number_of_fixed_sub_time_steps == 1
        assert config.pressure_iterations == 1

    def test_gravity_dimension_checked(self):
        with pytest.raises(ValueError):
            SolverConfig(gravity=[0.0, -9.8]).gravity_for(3)


class TestSerialization:

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="viscosity"):
            SolverConfig.from_dict({"viscosity": 0.1})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            SolverConfig.from_dict([1, 2, 3])

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "solver.yaml"
        original = SolverConfig(gravity=[1.0, 2.0], max_cfl=2.5, closed_domain_boundary_flag=DIRECTION_LEFT)
        original.to_yaml(path)

        assert SolverConfig.from_yaml(path) == original

    def test_yaml_under_solver_key(self, tmp_path):
        path = tmp_path / "scene.yaml"
        path.write_text(yaml.safe_dump({"solver": {"viscosity_coefficient": 0.01, "max_cfl": 3}}))

        config = SolverConfig.from_yaml(path)
        assert config.viscosity_coefficient == 0.01
        assert config.max_cfl == 3.0

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SolverConfig.from_yaml(path) == SolverConfig()
