"""
simulation.py — The Grid Solver (Master Physics Loop)
======================================================
One call to `advance(dt)` moves the fluid forward by dt seconds.

The requested interval is split into sub-steps by the CFL criterion:

  cfl(dt)   = max_cell |v + dt·g| · dt / min(spacing)
  sub-steps = max(ceil(cfl / max_cfl), 1)

Each sub-step runs the same state machine:

  BEGIN_STEP     update collider + emitter, rasterize collider,
                 apply boundary condition
  DENSITY_STEP   source → density diffusion → density advection
  VELOCITY_STEP  external forces (gravity) → viscosity → pressure
                 projection → velocity advection
  END_STEP       end-of-step hook

The boundary condition is reapplied after every stage that can change
a value: velocity is constrained against the collider and the closed
walls, and the one-cell ghost border around the density interior is
refreshed (edges copy their interior neighbour, corners average their
edge neighbours).

Grid layout: for a resolution of N cells per axis, both fields carry
N + 2 cells per axis. The extra ring is the ghost border; the physical
domain starts one cell in, at the requested origin.
"""

import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from itertools import combinations, product
from typing import Callable, Optional

import numpy as np

from .advect import advect_density, advect_velocity
from .animation import PhysicsAnimation
from .boundary import BoundaryConditionSolver, extrapolate_to_region
from .config import SolverConfig
from .constants import EPS, INF, is_inside_sdf
from .diffuse import BackwardEulerDiffusionSolver
from .fields import ConstantScalarField
from .forces import apply_gravity
from .grid import CellCenteredScalarGrid, FaceCenteredGrid
from .solver import SinglePhasePressureSolver

log = logging.getLogger(__name__)

# Upper bound on adaptive sub-steps per advance (runaway or non-finite velocity)
MAX_SUB_TIME_STEPS = 1000


class SolverState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    BEGIN_STEP = "begin_step"
    DENSITY_STEP = "density_step"
    VELOCITY_STEP = "velocity_step"
    END_STEP = "end_step"
    TERMINAL = "terminal"


@dataclass
class SolverHooks:
    """
    Optional extension callbacks. Any hook left as None falls back to the
    default behaviour.

      on_begin_step(solver, dt)            end of BEGIN_STEP
      on_end_step(solver, dt)              END_STEP
      compute_external_forces(solver, dt)  replaces gravity in VELOCITY_STEP
      fluid_sdf(solver) -> field           replaces "fluid everywhere"
      on_stage_complete(solver, state, dt) after each of the four stages
    """

    on_begin_step: Optional[Callable] = None
    on_end_step: Optional[Callable] = None
    compute_external_forces: Optional[Callable] = None
    fluid_sdf: Optional[Callable] = None
    on_stage_complete: Optional[Callable] = None


class GridSolver(PhysicsAnimation):
    """
    Staggered-grid smoke solver with collider support.

    Usage:
        solver = GridSolver((64, 64), spacing=1/64, origin=(0, 0))
        solver.density[10, 10] = 1.0
        for frame in range(100):
            metrics = solver.advance(1 / 60)
            density = solver.density     # hand to the renderer
    """

    def __init__(self, resolution, spacing, origin, config: Optional[SolverConfig] = None,
                 hooks: Optional[SolverHooks] = None, collider=None, emitter=None):
        """
        Args:
            resolution : interior cell count per axis (e.g. (32, 32))
            spacing    : cell size, scalar or per axis
            origin     : world position of the domain's lower corner
            config     : SolverConfig (defaults if omitted)
            hooks      : SolverHooks (all defaults if omitted)
            collider   : optional borrowed obstacle
            emitter    : optional density/velocity source
        """
        super().__init__()
        resolution = tuple(int(r) for r in np.atleast_1d(resolution))
        if not resolution or any(r <= 0 for r in resolution):
            raise ValueError(f"Solver resolution must be positive on every axis, got {resolution}")
        dim = len(resolution)
        spacing = np.broadcast_to(np.asarray(spacing, dtype=np.float64), (dim,)).copy()
        origin = np.broadcast_to(np.asarray(origin, dtype=np.float64), (dim,)).copy()
        if np.any(spacing <= 0.0):
            raise ValueError(f"Solver spacing must be positive, got {spacing}")

        self._resolution = resolution
        size = tuple(r + 2 for r in resolution)
        self._velocity = FaceCenteredGrid(size, spacing, origin - spacing)
        self._density = CellCenteredScalarGrid(size, spacing, origin - spacing)

        config = config if config is not None else SolverConfig()
        self.hooks = hooks if hooks is not None else SolverHooks()
        self._diffusion_solver = BackwardEulerDiffusionSolver(config.diffusion_iterations)
        self._pressure_solver = SinglePhasePressureSolver(config.pressure_iterations,
                                                          config.pressure_tolerance)
        self._boundary_condition_solver = BoundaryConditionSolver(config.closed_domain_boundary_flag)
        self.apply_config(config)

        self._collider = collider
        self._emitter = emitter
        self._default_fluid_sdf = ConstantScalarField(INF)
        self._state = SolverState.UNINITIALIZED
        self._last_cfl = None
        self._stage_ms = {}
        self.perf_log = []

    # ── Configuration ─────────────────────────────────────────────────────
    def apply_config(self, config: SolverConfig):
        self.gravity = config.gravity_for(self.dimension)
        self.viscosity_coefficient = config.viscosity_coefficient
        self.diffusion_coefficient = config.diffusion_coefficient
        self.max_cfl = config.max_cfl
        self.closed_domain_boundary_flag = config.closed_domain_boundary_flag
        self.use_fixed_sub_time_steps = config.use_fixed_sub_time_steps
        self.number_of_fixed_sub_time_steps = config.number_of_fixed_sub_time_steps
        self._diffusion_solver.iterations = max(int(config.diffusion_iterations), 1)
        self._pressure_solver.iterations = max(int(config.pressure_iterations), 1)
        self._pressure_solver.tolerance = float(config.pressure_tolerance)

    @property
    def gravity(self) -> np.ndarray:
        return self._gravity

    @gravity.setter
    def gravity(self, value):
        gravity = np.asarray(value, dtype=np.float64)
        if gravity.shape != (self.dimension,):
            raise ValueError(f"gravity must have {self.dimension} components, got {gravity.shape}")
        self._gravity = gravity

    @property
    def viscosity_coefficient(self) -> float:
        return self._viscosity_coefficient

    @viscosity_coefficient.setter
    def viscosity_coefficient(self, value: float):
        self._viscosity_coefficient = max(float(value), 0.0)

    @property
    def diffusion_coefficient(self) -> float:
        return self._diffusion_coefficient

    @diffusion_coefficient.setter
    def diffusion_coefficient(self, value: float):
        self._diffusion_coefficient = max(float(value), 0.0)

    @property
    def max_cfl(self) -> float:
        return self._max_cfl

    @max_cfl.setter
    def max_cfl(self, value: float):
        self._max_cfl = max(float(value), EPS)

    @property
    def closed_domain_boundary_flag(self) -> int:
        return self._boundary_condition_solver.closed_domain_boundary_flag

    @closed_domain_boundary_flag.setter
    def closed_domain_boundary_flag(self, flag: int):
        self._boundary_condition_solver.closed_domain_boundary_flag = int(flag)

    # ── Read-only accessors (for renderers, after a step) ────────────────
    @property
    def dimension(self) -> int:
        return len(self._resolution)

    @property
    def resolution(self) -> tuple:
        return self._resolution

    @property
    def grid_spacing(self) -> np.ndarray:
        return self._velocity.spacing

    @property
    def grid_origin(self) -> np.ndarray:
        """Lower corner of the stored grid, ghost border included."""
        return self._velocity.origin

    @property
    def velocity(self) -> FaceCenteredGrid:
        return self._velocity

    @property
    def density(self) -> CellCenteredScalarGrid:
        return self._density

    @property
    def collider(self):
        return self._collider

    @property
    def emitter(self):
        return self._emitter

    @property
    def state(self) -> SolverState:
        return self._state

    @property
    def diffusion_solver(self) -> BackwardEulerDiffusionSolver:
        return self._diffusion_solver

    @property
    def pressure_solver(self) -> SinglePhasePressureSolver:
        return self._pressure_solver

    @property
    def boundary_condition_solver(self) -> BoundaryConditionSolver:
        return self._boundary_condition_solver

    def interior_density(self) -> np.ndarray:
        """View of the density without its ghost border."""
        return self._density.data[tuple(slice(1, -1) for _ in self._resolution)]

    def set_collider(self, collider):
        self._collider = collider
        log.info("Collider %s", "attached" if collider is not None else "detached")

    def set_emitter(self, emitter):
        self._emitter = emitter

    # ── Sub-stepping ──────────────────────────────────────────────────────
    def cfl(self, time_interval: float) -> float:
        """Largest distance any cell-center velocity carries in `time_interval`, in cells."""
        velocity = self._velocity.value_at_cell_center() + time_interval * self._gravity
        max_speed = float(np.max(np.linalg.norm(velocity, axis=-1)))
        return max_speed * time_interval / float(np.min(self.grid_spacing))

    def number_of_sub_time_steps(self, time_interval: float) -> int:
        cfl = self.cfl(time_interval)
        self._last_cfl = cfl
        steps = cfl / self._max_cfl
        if not np.isfinite(steps) or steps > MAX_SUB_TIME_STEPS:
            log.warning("CFL %.3e needs more than %d sub-steps; clamping", cfl, MAX_SUB_TIME_STEPS)
            return MAX_SUB_TIME_STEPS
        return max(int(math.ceil(steps)), 1)

    def on_initialize(self):
        self._update_collider(0.0)
        self._update_emitter(0.0)
        self._state = SolverState.INITIALIZED
        log.info("Grid solver initialized: resolution=%s spacing=%s",
                 self._resolution, self.grid_spacing.tolist())

    def advance(self, time_interval: float) -> dict:
        """
        Advance the simulation by `time_interval` seconds.

        Returns a metrics dict (also appended to `perf_log`).
        """
        if self._state is SolverState.TERMINAL:
            raise RuntimeError("Cannot advance a closed GridSolver")

        t_start = time.perf_counter()
        self._last_cfl = None
        self._stage_ms = {}
        sub_steps = super().advance(time_interval)
        total_ms = (time.perf_counter() - t_start) * 1000

        div = self._velocity.divergence()[tuple(slice(1, -1) for _ in self._resolution)]
        metrics = {
            "time": self.current_time,
            "time_interval": time_interval,
            "sub_steps": sub_steps,
            "cfl": self._last_cfl,
            "total_ms": total_ms,
            "density_total": float(self.interior_density().sum()),
            "divergence_max": float(np.abs(div).max()) if div.size else 0.0,
        }
        metrics.update({f"{name}_ms": ms for name, ms in self._stage_ms.items()})
        self.perf_log.append(metrics)
        return metrics

    def on_advance_time_step(self, time_interval: float):
        self._begin_advance_time_step(time_interval)
        self._density_step(time_interval)
        self._velocity_step(time_interval)
        self._end_advance_time_step(time_interval)

    def close(self):
        """Release the collider/emitter references; the solver cannot step afterwards."""
        self._collider = None
        self._emitter = None
        self._state = SolverState.TERMINAL
        log.info("Grid solver closed at t=%.4f", self.current_time)

    # ── Stages ────────────────────────────────────────────────────────────
    @contextmanager
    def _timed(self, name: str):
        t0 = time.perf_counter()
        yield
        elapsed = (time.perf_counter() - t0) * 1000
        self._stage_ms[name] = self._stage_ms.get(name, 0.0) + elapsed
        log.debug("%s took %.3f ms", name, elapsed)

    def _stage_complete(self, time_interval: float):
        if self.hooks.on_stage_complete is not None:
            self.hooks.on_stage_complete(self, self._state, time_interval)

    def _begin_advance_time_step(self, time_interval: float):
        self._state = SolverState.BEGIN_STEP
        self._update_collider(time_interval)
        self._update_emitter(time_interval)

        self._boundary_condition_solver.update_collider(
            self._collider,
            self._velocity.resolution,
            self._velocity.spacing,
            self._velocity.origin,
        )
        if self._collider is not None:
            self.extrapolate_into_collider(self._density)

        self.apply_boundary_condition()

        if self.hooks.on_begin_step is not None:
            self.hooks.on_begin_step(self, time_interval)
        self._stage_complete(time_interval)

    def _density_step(self, time_interval: float):
        self._state = SolverState.DENSITY_STEP
        self.compute_source(time_interval)
        self.compute_density_diffusion(time_interval)
        with self._timed("advect_density"):
            advect_density(self._density, self._velocity, time_interval)
            self.apply_boundary_condition()
        self._stage_complete(time_interval)

    def _velocity_step(self, time_interval: float):
        self._state = SolverState.VELOCITY_STEP
        with self._timed("forces"):
            self.compute_external_forces(time_interval)
        self.compute_viscosity(time_interval)
        self.compute_pressure(time_interval)
        with self._timed("advect_velocity"):
            advect_velocity(self._velocity, time_interval)
            self.apply_boundary_condition()
        self._stage_complete(time_interval)

    def _end_advance_time_step(self, time_interval: float):
        self._state = SolverState.END_STEP
        if self.hooks.on_end_step is not None:
            self.hooks.on_end_step(self, time_interval)
        self._stage_complete(time_interval)

    def _update_collider(self, time_interval: float):
        if self._collider is not None:
            self._collider.update(self.current_time, time_interval)

    def _update_emitter(self, time_interval: float):
        if self._emitter is not None:
            self._emitter.update(self, self.current_time, time_interval)

    def compute_source(self, time_interval: float):
        self.apply_boundary_condition()

    def compute_density_diffusion(self, time_interval: float):
        if self._diffusion_coefficient <= EPS:
            return
        with self._timed("diffuse_density"):
            result = self._diffusion_solver.solve_scalar(
                self._density, self._diffusion_coefficient, time_interval,
                self.collider_sdf(), self.fluid_sdf())
            self._density.set(result)
            self.apply_boundary_condition()

    def compute_external_forces(self, time_interval: float):
        if self.hooks.compute_external_forces is not None:
            self.hooks.compute_external_forces(self, time_interval)
            self.apply_boundary_condition()
        else:
            self.compute_gravity(time_interval)

    def compute_gravity(self, time_interval: float):
        if apply_gravity(self._velocity, self._gravity, time_interval):
            self.apply_boundary_condition()

    def compute_viscosity(self, time_interval: float):
        if self._viscosity_coefficient <= EPS:
            return
        with self._timed("viscosity"):
            result = self._diffusion_solver.solve(
                self._velocity, self._viscosity_coefficient, time_interval,
                self.collider_sdf(), self.fluid_sdf())
            self._velocity.set(result)
            self.apply_boundary_condition()

    def compute_pressure(self, time_interval: float):
        with self._timed("pressure"):
            result = self._pressure_solver.solve(
                self._velocity, time_interval,
                self.collider_sdf(), self.fluid_sdf(), self.collider_velocity_field())
            self._velocity.set(result)
            self.apply_boundary_condition()

    # ── Boundary handling ────────────────────────────────────────────────
    def fluid_sdf(self):
        if self.hooks.fluid_sdf is not None:
            return self.hooks.fluid_sdf(self)
        return self._default_fluid_sdf

    def collider_sdf(self):
        return self._boundary_condition_solver.collider_sdf

    def collider_velocity_field(self):
        return self._boundary_condition_solver.collider_velocity_field

    def extrapolation_depth(self) -> int:
        return int(math.ceil(self._max_cfl))

    def apply_boundary_condition(self):
        self._boundary_condition_solver.constrain_velocity(self._velocity, self.extrapolation_depth())
        self._refresh_ghost_border()

    def _refresh_ghost_border(self):
        """
        Zero-gradient ghost border around the density interior.

        A ghost cell with k ghost coordinates takes the mean of its k
        neighbours one step inward along those axes. Filling k = 1 first
        (edges copy the interior), then k = 2 (corners average two edges),
        and so on, means every mean only reads values already refreshed.
        """
        data = self._density.data
        dim = data.ndim
        for k in range(1, dim + 1):
            for ghost_axes in combinations(range(dim), k):
                for sides in product((0, 1), repeat=k):
                    target = [slice(1, n - 1) for n in data.shape]
                    inward = {}
                    for axis, side in zip(ghost_axes, sides):
                        n = data.shape[axis]
                        target[axis] = 0 if side == 0 else n - 1
                        inward[axis] = 1 if side == 0 else n - 2
                    total = 0.0
                    for axis in ghost_axes:
                        source = list(target)
                        source[axis] = inward[axis]
                        total = total + data[tuple(source)]
                    data[tuple(target)] = total / k

    def extrapolate_into_collider(self, grid: CellCenteredScalarGrid):
        """Overwrite cells inside the collider with values grown from outside it."""
        sdf = self.collider_sdf()
        if sdf is None:
            return
        valid = ~is_inside_sdf(sdf.sample(grid.data_positions()))
        grid.data[...] = extrapolate_to_region(grid.data, valid, self.extrapolation_depth())

    # ── Reporting ─────────────────────────────────────────────────────────
    def snapshot(self) -> dict:
        """Copies of the current fields, safe to keep across steps."""
        return {
            "time": self.current_time,
            "density": self._density.data.copy(),
            "velocity": [comp.data.copy() for comp in self._velocity.components],
            "divergence": self._velocity.divergence(),
        }

    def print_status(self):
        """Pretty-print current simulation state."""
        density = self.interior_density()
        centers = self._velocity.value_at_cell_center()
        div = self._velocity.divergence()
        print(f"\n{'='*50}")
        print(f"  t = {self.current_time:.4f}s  |  state: {self._state.value}")
        print(f"  Density   : max={density.max():.4f}, total={density.sum():.2f}")
        print(f"  Velocity  : max={np.linalg.norm(centers, axis=-1).max():.4f}")
        print(f"  Divergence: max={np.abs(div).max():.6f}, mean={np.abs(div).mean():.8f}")
        if self.perf_log:
            last = self.perf_log[-1]
            print(f"  Perf      : {last['total_ms']:.1f}ms/step, {last['sub_steps']} sub-step(s)")
        print(f"{'='*50}")
