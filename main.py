"""
main.py — Master Entry Point
=============================
Runs a 2-D smoke-plume scene through the grid solver.

Usage:
    python main.py                          # Headless run, stats every 10 frames
    python main.py --mode benchmark         # Per-stage timing breakdown
    python main.py --mode live              # matplotlib window
    python main.py --config solver.yaml     # Solver options from YAML
    python main.py --obstacle --wind 2.0    # Moving sphere + side wind
"""

import argparse
import logging

import numpy as np

FRAME_DT = 1.0 / 60.0


def build_solver(N: int = 32, config_path: str = None, obstacle: bool = False, wind: float = 0.0):
    """Smoke plume in a unit box: emitter at the bottom, optional obstacle and wind."""
    from gridfluid import (Box, GridSolver, RigidBodyCollider, SolverConfig, SolverHooks,
                           Sphere, VolumeGridEmitter)
    from gridfluid.forces import apply_gravity, apply_uniform_force

    config = SolverConfig.from_yaml(config_path) if config_path else SolverConfig()

    hooks = SolverHooks()
    if wind:
        def wind_and_gravity(solver, dt):
            apply_gravity(solver.velocity, solver.gravity, dt)
            apply_uniform_force(solver.velocity, (wind, 0.0), dt)
        hooks.compute_external_forces = wind_and_gravity

    h = 1.0 / N
    emitter = VolumeGridEmitter(Box((0.4, 0.05), (0.6, 0.15)), density=1.0,
                                velocity=(0.0, 2.0), is_one_shot=False)
    solver = GridSolver((N, N), spacing=h, origin=(0.0, 0.0), config=config,
                        hooks=hooks, emitter=emitter)

    if obstacle:
        collider = RigidBodyCollider(Sphere((0.3, 0.55), 0.1), linear_velocity=(0.3, 0.0))

        def follow_velocity(body, t, dt):
            body.surface.center = body.surface.center + dt * body.linear_velocity

        collider.on_update = follow_velocity
        solver.set_collider(collider)
    return solver


def run_live(N: int = 32, config_path: str = None, obstacle: bool = False, wind: float = 0.0):
    """Live visualization."""
    from visualizer import FluidVisualizer

    print(f"Starting live simulation (N={N})...")
    print("Close the window to exit.\n")

    solver = build_solver(N, config_path, obstacle, wind)
    viz = FluidVisualizer(solver, frame_dt=FRAME_DT)
    viz.run(fps=30)


def run_headless(N: int = 32, frames: int = 100, config_path: str = None,
                 obstacle: bool = False, wind: float = 0.0):
    """Run simulation without display — prints stats each 10 frames."""
    solver = build_solver(N, config_path, obstacle, wind)

    print(f"\nHeadless simulation | N={N} | {frames} frames")
    print(f"{'─'*60}")

    total_times = []
    for f in range(frames):
        metrics = solver.advance(FRAME_DT)
        total_times.append(metrics["total_ms"])

        if f % 10 == 0:
            print(f"  Frame {f:03d} | {metrics['total_ms']:6.1f}ms | "
                  f"sub-steps={metrics['sub_steps']} cfl={metrics['cfl'] or 0.0:.3f} | "
                  f"div_max={metrics['divergence_max']:.5f} | "
                  f"density={metrics['density_total']:.1f}")

    solver.print_status()
    print(f"\n{'─'*60}")
    print(f"  Average: {np.mean(total_times):.1f}ms/frame")
    print(f"  Min:     {np.min(total_times):.1f}ms")
    print(f"  Max:     {np.max(total_times):.1f}ms")
    solver.close()


def run_benchmark(N: int = 32, frames: int = 50, config_path: str = None,
                  obstacle: bool = False, wind: float = 0.0):
    """Per-stage timing breakdown of the solver."""
    print(f"\n{'='*60}")
    print(f"  GRID SOLVER BENCHMARK | N={N} | {frames} frames")
    print(f"{'='*60}")

    solver = build_solver(N, config_path, obstacle, wind)

    # Warm up
    for _ in range(5):
        solver.advance(FRAME_DT)

    logs = [solver.advance(FRAME_DT) for _ in range(frames)]

    keys = ["forces_ms", "viscosity_ms", "diffuse_density_ms", "pressure_ms",
            "advect_density_ms", "advect_velocity_ms", "total_ms"]

    print(f"\n{'Stage':<20} {'Mean':>8} {'Min':>8} {'Max':>8}")
    print(f"{'─'*50}")
    for k in keys:
        vals = [m[k] for m in logs if k in m]
        if not vals:
            continue
        print(f"  {k:<18} {np.mean(vals):>7.1f}ms {np.min(vals):>7.1f}ms {np.max(vals):>7.1f}ms")

    sub_steps = [m["sub_steps"] for m in logs]
    iterations = solver.pressure_solver.last_iterations
    print(f"\n{'─'*50}")
    print(f"  Sub-steps/frame: mean {np.mean(sub_steps):.2f}, max {np.max(sub_steps)}")
    print(f"  Last pressure solve: {iterations} iterations")
    solver.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="2D Grid Fluid Simulation")
    parser.add_argument(
        "--mode", choices=["live", "headless", "benchmark"],
        default="headless",
        help="Run mode (default: headless)"
    )
    parser.add_argument("--N",        type=int,   default=32,  help="Grid resolution (default: 32)")
    parser.add_argument("--frames",   type=int,   default=100, help="Number of frames")
    parser.add_argument("--config",   type=str,   default=None, help="YAML solver config")
    parser.add_argument("--obstacle", action="store_true",     help="Add a moving sphere collider")
    parser.add_argument("--wind",     type=float, default=0.0, help="Horizontal wind acceleration")
    parser.add_argument("--verbose",  action="store_true",     help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    if args.mode == "live":
        run_live(N=args.N, config_path=args.config, obstacle=args.obstacle, wind=args.wind)
    elif args.mode == "headless":
        run_headless(N=args.N, frames=args.frames, config_path=args.config,
                     obstacle=args.obstacle, wind=args.wind)
    elif args.mode == "benchmark":
        run_benchmark(N=args.N, frames=args.frames, config_path=args.config,
                      obstacle=args.obstacle, wind=args.wind)
