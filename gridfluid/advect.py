"""
advect.py — Semi-Lagrangian Advection
======================================
This is what makes fluid look like it's *actually flowing*.

The algorithm (per sample):
  1. Look at the sample's position (cell center for density, face
     center for a velocity component).
  2. Trace BACKWARD along the velocity field by one timestep (Δt).
     → "Where did the stuff at this sample come FROM?"
  3. Clamp the traced point so it stays one full cell inside the data
     bounds on every axis. The ghost layer is never read through, at the
     price of a little accuracy right next to the walls.
  4. Sample the OLD field there with (bi/tri)linear interpolation.

All new values are computed from a frozen copy of the old field before
anything is written, so no sample ever sees an already-updated
neighbour.

Back-tracing happens in index space (displacement = v·Δt / spacing),
which keeps a zero displacement bit-exact.

Key reference: Jos Stam, "Stable Fluids" (SIGGRAPH 1999)
"""

import numpy as np

from .grid import CellCenteredScalarGrid, FaceCenteredGrid


def _interior(size) -> tuple:
    return tuple(slice(1, n - 1) for n in size)


def _index_coords(size) -> np.ndarray:
    """Fractional index coordinates of the interior samples, shape (..., D)."""
    axes = np.meshgrid(*[np.arange(1, n - 1, dtype=np.float64) for n in size], indexing="ij")
    return np.stack(axes, axis=-1)


def backtrace(coords: np.ndarray, velocity: np.ndarray, dt: float, spacing, size) -> np.ndarray:
    """
    Back-traced, clamped index coordinates.

    Args:
        coords   : (..., D) index coordinates of the samples
        velocity : (..., D) world-space velocity at those samples
        dt       : time interval
        spacing  : cell size per axis
        size     : data extent per axis

    Returns:
        coords - v·Δt/spacing, clamped to [1, n-2] on each axis
    """
    traced = coords - velocity * (dt / np.asarray(spacing, dtype=np.float64))
    for axis, n in enumerate(size):
        lo = min(1, n - 1)
        hi = max(n - 2, lo)
        traced[..., axis] = np.clip(traced[..., axis], lo, hi)
    return traced


def advect_density(density: CellCenteredScalarGrid, velocity: FaceCenteredGrid, dt: float):
    """
    Advect the density (smoke) field through the velocity field.

    Only interior cells are updated; the ghost border is left for the
    boundary condition. Velocity at each cell center is the average of
    the two faces bounding it, per component.

    Modifies: density (in place, from a frozen copy)
    """
    interior = _interior(density.size)
    coords = _index_coords(density.size)
    centers = velocity.value_at_cell_center()[interior]

    traced = backtrace(coords, centers, dt, density.spacing, density.size)
    new_values = density.sample_index(traced)
    density.data[interior] = new_values


def advect_velocity(velocity: FaceCenteredGrid, dt: float):
    """
    Advect the velocity field through itself (self-advection).

    Each velocity component lives on its own staggered faces, so each is
    traced back from its own face positions. The full vector at a face is
    the stored component plus the other components interpolated there.

    Modifies: velocity (in place, from a frozen copy)
    """
    frozen = velocity.clone()
    for axis, comp in enumerate(velocity.components):
        source = frozen.component(axis)
        interior = _interior(comp.size)
        coords = _index_coords(comp.size)
        if coords.size == 0:
            continue

        positions = source.data_position(coords)
        vel = frozen.sample(positions)
        vel[..., axis] = source.data[interior]

        traced = backtrace(coords, vel, dt, comp.spacing, comp.size)
        comp.data[interior] = source.sample_index(traced)
