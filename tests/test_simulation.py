"""End-to-end tests for the grid solver's time step."""

import numpy as np
import pytest

from gridfluid import (
    Box,
    Collider,
    GridSolver,
    RigidBodyCollider,
    SolverConfig,
    SolverHooks,
    SolverState,
    Sphere,
    VolumeGridEmitter,
)
from gridfluid.constants import EPS
from gridfluid.fields import ConstantScalarField
from gridfluid.simulation import MAX_SUB_TIME_STEPS

STAGES = [SolverState.BEGIN_STEP, SolverState.DENSITY_STEP,
          SolverState.VELOCITY_STEP, SolverState.END_STEP]


class TestConstruction:

    def test_ghost_border_layout(self, make_solver):
        solver = make_solver(4)

        assert solver.density.size == (6, 6)
        assert solver.velocity.component(0).size == (7, 6)
        np.testing.assert_allclose(solver.grid_origin, [-0.25, -0.25])
        assert solver.interior_density().shape == (4, 4)
        assert solver.state is SolverState.UNINITIALIZED

    def test_bad_resolution_rejected(self):
        with pytest.raises(ValueError):
            GridSolver((0, 4), spacing=1.0, origin=(0.0, 0.0))

    def test_gravity_dimension_checked(self, make_solver):
        with pytest.raises(ValueError):
            make_solver(4, config=SolverConfig(gravity=[0.0, 0.0, -9.8]))

    def test_setters_clamp(self, make_solver):
        solver = make_solver(4)
        solver.viscosity_coefficient = -3.0
        solver.max_cfl = -1.0
        assert solver.viscosity_coefficient == 0.0
        assert solver.max_cfl == EPS


class TestSubStepping:

    def test_cfl_sub_steps_monotonic_and_at_least_one(self, make_solver, still_config):
        solver = make_solver(4, config=still_config)
        solver.max_cfl = 1.5
        counts = []
        for speed in [0.0, 0.1, 1.0, 5.0, 10.0, 50.0]:
            solver.velocity.fill((speed, 0.0))
            counts.append(solver.number_of_sub_time_steps(0.1))

        assert all(c >= 1 for c in counts)
        assert counts == sorted(counts)
        # speed 10, dt 0.1, h 0.25 → cfl 4 → ceil(4 / 1.5)
        assert counts[4] == 3

    def test_adaptive_steps_used_by_advance(self, make_solver, still_config):
        solver = make_solver(4, config=still_config)
        solver.max_cfl = 1.5
        solver.velocity.component(0).data[2:-2] = 10.0

        metrics = solver.advance(0.1)

        assert metrics["sub_steps"] >= 2
        assert metrics["cfl"] > 1.5

    def test_fixed_sub_steps(self, make_solver, still_config):
        still_config.use_fixed_sub_time_steps = True
        still_config.number_of_fixed_sub_time_steps = 3
        solver = make_solver(4, config=still_config)
        assert solver.advance(0.1)["sub_steps"] == 3
        assert solver.current_time == pytest.approx(0.1)

    def test_overflowing_speed_clamps_sub_steps(self, make_solver, still_config):
        solver = make_solver(4, config=still_config)
        solver.velocity.fill((1e200, 1e200))

        steps = solver.number_of_sub_time_steps(0.1)

        assert steps == MAX_SUB_TIME_STEPS

    def test_nan_velocity_clamps_sub_steps(self, make_solver, still_config):
        solver = make_solver(4, config=still_config)
        solver.velocity.component(0).data[3, 2] = np.nan
        assert solver.number_of_sub_time_steps(0.1) == MAX_SUB_TIME_STEPS


class TestStepInvariants:

    def test_zero_velocity_leaves_interior_density(self, make_solver, still_config, rng):
        solver = make_solver(6, config=still_config)
        solver.density.data[...] = rng.random(solver.density.size)
        before = solver.interior_density().copy()

        solver.advance(0.1)

        np.testing.assert_array_equal(solver.interior_density(), before)

    @pytest.mark.parametrize("viscosity", [0.0, -1.0, float(np.nextafter(EPS, 0.0)), EPS])
    def test_zero_viscosity_is_bit_identical(self, make_solver, rng, viscosity):
        solver = make_solver(4)
        solver.viscosity_coefficient = viscosity
        for comp in solver.velocity.components:
            comp.data[...] = rng.standard_normal(comp.size)
        before = [comp.data.copy() for comp in solver.velocity.components]

        solver.compute_viscosity(0.1)

        for comp, old in zip(solver.velocity.components, before):
            np.testing.assert_array_equal(comp.data, old)

    def test_ghost_border_after_every_stage(self, make_solver, rng, ghost_border):
        seen = []

        def check(solver, state, dt):
            ghost_border(solver.density.data)
            seen.append(state)

        solver = make_solver(6, hooks=SolverHooks(on_stage_complete=check))
        solver.density.data[...] = rng.random(solver.density.size)
        solver.velocity.fill((0.5, 0.25))

        solver.advance(0.05)

        assert seen[:4] == STAGES
        assert len(seen) % 4 == 0

    def test_four_by_four_single_cell(self, make_solver, ghost_border):
        config = SolverConfig(gravity=[0.0, 0.0], viscosity_coefficient=0.0)
        solver = make_solver(4, config=config)
        solver.density[1, 3] = 1.0
        before = solver.density.data.copy()

        solver.advance(0.1)

        data = solver.density.data
        np.testing.assert_array_equal(data[1:-1, 1:-1], before[1:-1, 1:-1])
        ghost_border(data)
        assert data[0, 3] == 1.0

    def test_uniform_gravity_open_domain(self, make_solver, open_config, ghost_border):
        solver = make_solver(4, config=open_config)
        solver.density[2, 2] = 0.5
        u_before = solver.velocity.component(0).data.copy()
        v_before = solver.velocity.component(1).data.copy()

        solver.advance(0.01)

        v = solver.velocity.component(1).data
        np.testing.assert_allclose(v[1:-1, 1:-1] - v_before[1:-1, 1:-1], -0.098, rtol=1e-12)
        np.testing.assert_array_equal(solver.velocity.component(0).data, u_before)
        ghost_border(solver.density.data)

    def test_closed_box_at_rest_stays_at_rest(self, make_solver):
        solver = make_solver(32)

        for _ in range(10):
            metrics = solver.advance(1.0 / 60.0)

        for comp in solver.velocity.components:
            assert np.abs(comp.data).max() < 1e-3
        assert metrics["divergence_max"] < 1e-3
        assert solver.pressure_solver.last_residual <= solver.pressure_solver.tolerance


class TestHooks:

    def test_external_force_hook_replaces_gravity(self, make_solver):
        calls = []
        hooks = SolverHooks(compute_external_forces=lambda solver, dt: calls.append(dt))
        solver = make_solver(4, hooks=hooks)

        solver.advance(0.01)

        assert calls == [pytest.approx(0.01)]
        for comp in solver.velocity.components:
            assert np.all(comp.data == 0.0)

    def test_begin_and_end_hooks(self, make_solver, still_config):
        order = []
        hooks = SolverHooks(on_begin_step=lambda s, dt: order.append(("begin", s.state)),
                            on_end_step=lambda s, dt: order.append(("end", s.state)))
        make_solver(4, config=still_config, hooks=hooks).advance(0.1)
        assert order == [("begin", SolverState.BEGIN_STEP), ("end", SolverState.END_STEP)]

    def test_fluid_sdf_hook(self, make_solver):
        air = ConstantScalarField(-1.0)
        solver = make_solver(4, hooks=SolverHooks(fluid_sdf=lambda s: air))
        assert solver.fluid_sdf() is air
        solver.advance(0.01)
        assert np.all(solver.pressure_solver.pressure == 0.0)

    def test_default_fluid_sdf_is_everywhere(self, make_solver):
        solver = make_solver(4)
        assert solver.fluid_sdf() is solver.fluid_sdf()
        assert solver.fluid_sdf().sample(np.zeros((1, 2)))[0] > 0.0


class TestColliderAndEmitter:

    def test_collider_updated_once_per_sub_step(self, make_solver, still_config):
        still_config.use_fixed_sub_time_steps = True
        still_config.number_of_fixed_sub_time_steps = 2
        calls = []
        collider = Collider(Sphere((0.5, 0.5), 0.2), on_update=lambda c, t, dt: calls.append(dt))

        solver = make_solver(8, config=still_config, collider=collider)
        solver.advance(0.1)

        # once at initialization, then once per sub-step
        assert calls == [0.0, pytest.approx(0.05), pytest.approx(0.05)]

    def test_density_extrapolated_into_collider(self, make_solver, still_config):
        solver = make_solver(8, config=still_config)
        solver.density.fill(0.25)
        solver.set_collider(Collider(Box((0.3, 0.3), (0.7, 0.7))))
        solver.density[5, 5] = 9.0

        solver.advance(0.01)

        assert solver.density[5, 5] == pytest.approx(0.25)

    def test_moving_obstacle_and_plume_stay_finite(self, make_solver):
        collider = RigidBodyCollider(Sphere((0.5, 0.6), 0.15), linear_velocity=(0.2, 0.0))
        emitter = VolumeGridEmitter(Box((0.4, 0.0), (0.6, 0.2)), velocity=(0.0, 1.0), is_one_shot=False)
        solver = make_solver(12, collider=collider, emitter=emitter)

        for _ in range(5):
            metrics = solver.advance(1.0 / 60.0)

        assert metrics["density_total"] > 0.0
        for comp in solver.velocity.components:
            assert np.all(np.isfinite(comp.data))
        assert np.all(np.isfinite(solver.density.data))


class TestLifecycle:

    def test_metrics_recorded(self, make_solver):
        solver = make_solver(4)
        metrics = solver.advance(0.01)

        assert solver.perf_log == [metrics]
        for key in ("time", "sub_steps", "cfl", "total_ms", "pressure_ms",
                    "advect_density_ms", "advect_velocity_ms", "divergence_max"):
            assert key in metrics
        assert solver.state is SolverState.END_STEP

    def test_closed_solver_cannot_advance(self, make_solver):
        solver = make_solver(4)
        solver.advance(0.01)
        solver.close()

        assert solver.state is SolverState.TERMINAL
        assert solver.collider is None
        with pytest.raises(RuntimeError):
            solver.advance(0.01)

    def test_snapshot_is_a_copy(self, make_solver):
        solver = make_solver(4)
        snap = solver.snapshot()
        solver.density[2, 2] = 1.0
        assert snap["density"][2, 2] == 0.0

    def test_default_config_advances(self, make_solver):
        solver = make_solver(8)
        solver.density[4, 4] = 1.0

        solver.advance(1.0 / 60.0)

        assert solver.state is SolverState.END_STEP
        assert solver.current_time == pytest.approx(1.0 / 60.0)
        for comp in solver.velocity.components:
            assert np.all(np.isfinite(comp.data))
