"""
config.py — Solver Configuration
=================================
Every recognised option in one dataclass. Degenerate values are clamped
rather than rejected, matching what the solver's own setters do:

  - viscosity / diffusion below zero       → 0 (diffusion becomes a no-op)
  - max CFL at or below EPS                → EPS
  - fixed sub-step count below one         → 1

Configs can be built in code, from a plain dict, or from a YAML file:

    gravity: [0.0, -9.8]
    viscosity_coefficient: 0.0
    max_cfl: 5.0
    closed_domain_boundary_flag: 63
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .constants import DIRECTION_ALL, EPS


def default_gravity(dimension: int = 2) -> List[float]:
    """-9.8 along +y, zero elsewhere."""
    gravity = [0.0] * dimension
    if dimension > 1:
        gravity[1] = -9.8
    return gravity


@dataclass
class SolverConfig:
    """Options recognised by GridSolver."""

    gravity: Optional[List[float]] = None
    viscosity_coefficient: float = 0.0
    diffusion_coefficient: float = 0.0
    max_cfl: float = 5.0
    closed_domain_boundary_flag: int = DIRECTION_ALL
    use_fixed_sub_time_steps: bool = False
    number_of_fixed_sub_time_steps: int = 1
    diffusion_iterations: int = 20
    pressure_iterations: int = 500
    pressure_tolerance: float = 1e-6

    def __post_init__(self):
        self.validate()

    def validate(self) -> "SolverConfig":
        """Clamp every option into its legal range (in place)."""
        self.viscosity_coefficient = max(float(self.viscosity_coefficient), 0.0)
        self.diffusion_coefficient = max(float(self.diffusion_coefficient), 0.0)
        self.max_cfl = max(float(self.max_cfl), EPS)
        self.closed_domain_boundary_flag = int(self.closed_domain_boundary_flag)
        self.use_fixed_sub_time_steps = bool(self.use_fixed_sub_time_steps)
        self.number_of_fixed_sub_time_steps = max(int(self.number_of_fixed_sub_time_steps), 1)
        self.diffusion_iterations = max(int(self.diffusion_iterations), 1)
        self.pressure_iterations = max(int(self.pressure_iterations), 1)
        self.pressure_tolerance = max(float(self.pressure_tolerance), 0.0)
        if self.gravity is not None:
            self.gravity = [float(g) for g in self.gravity]
        return self

    def gravity_for(self, dimension: int) -> List[float]:
        if self.gravity is None:
            return default_gravity(dimension)
        if len(self.gravity) != dimension:
            raise ValueError(f"gravity has {len(self.gravity)} components, grid is {dimension}-D")
        return list(self.gravity)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "SolverConfig":
        if not isinstance(config_dict, dict):
            raise ValueError(f"Solver config must be a mapping, got {type(config_dict).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ValueError(f"Unknown solver config key(s): {', '.join(unknown)}")
        return cls(**config_dict)

    @classmethod
    def from_yaml(cls, path) -> "SolverConfig":
        with open(Path(path), "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        # Allow the options to sit under a top-level `solver:` key
        if isinstance(data, dict) and set(data) == {"solver"}:
            data = data["solver"]
        return cls.from_dict(data)

    def to_yaml(self, path):
        with open(Path(path), "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
