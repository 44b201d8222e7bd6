"""
boundary.py — Collider Rasterization and Velocity Constraints
==============================================================
Two jobs, run by the grid solver at different moments:

  1. update_collider()   — once per sub-step. Bake the collider's signed
                           distance onto the cell centers and its surface
                           velocity onto the faces, using the same layout
                           as the fluid velocity grid.
  2. constrain_velocity() — after every stage that touches velocity.
     a. Extrapolate fluid velocity into faces buried in the solid, so
        interpolation near the obstacle never reads garbage.
     b. Inside the solid, replace the normal component of the relative
        velocity with the collider's own (no penetration, free slip).
     c. Zero the normal velocity on every closed outer wall.

Closed walls are also baked into the rasterized SDF: the ghost ring of
cells behind a closed wall reads as solid (at rest), so the diffusion
and pressure solvers see the wall without knowing about the flag.

Convention: SDF < 0 inside the solid. Without a collider the SDF is INF
everywhere and the collider velocity is zero.
"""

import numpy as np

from .constants import DIRECTION_ALL, INF, is_inside_sdf, wall_flags
from .grid import CellCenteredScalarGrid, FaceCenteredGrid, shift_values


def extrapolate_to_region(values: np.ndarray, valid: np.ndarray, depth: int) -> np.ndarray:
    """
    Grow the valid region outward by `depth` layers.

    Each pass, every invalid sample touching at least one valid face
    neighbour takes the average of those neighbours and becomes valid.
    Samples further than `depth` layers away keep their original value.

    Args:
        values : array to extrapolate (not modified)
        valid  : same-shape marker, nonzero where `values` is trusted
        depth  : number of layers

    Returns:
        A new array
    """
    out = np.array(values, dtype=np.float64, copy=True)
    valid = np.asarray(valid).astype(bool)
    if valid.shape != out.shape:
        raise ValueError(f"Marker shape {valid.shape} does not match values {out.shape}")
    if not valid.any():
        return out

    for _ in range(int(depth)):
        if valid.all():
            break
        total = np.zeros_like(out)
        count = np.zeros(out.shape, dtype=np.int64)
        for axis in range(out.ndim):
            for shift in (-1, 1):
                nb_valid = shift_values(valid, axis, shift, False)
                nb_value = shift_values(out, axis, shift, 0.0)
                total += np.where(nb_valid, nb_value, 0.0)
                count += nb_valid
        grow = ~valid & (count > 0)
        if not grow.any():
            break
        out[grow] = total[grow] / count[grow]
        valid = valid | grow
    return out


class BoundaryConditionSolver:
    """
    Rasterizes a collider and constrains a FaceCenteredGrid against it.

    Args:
        closed_domain_boundary_flag : bitmask of solid outer walls
                                      (see constants.DIRECTION_*)
    """

    def __init__(self, closed_domain_boundary_flag: int = DIRECTION_ALL):
        self.closed_domain_boundary_flag = int(closed_domain_boundary_flag)
        self._collider = None
        self._collider_sdf = None
        self._collider_velocity = None

    @property
    def collider(self):
        return self._collider

    @property
    def collider_sdf(self) -> CellCenteredScalarGrid:
        return self._collider_sdf

    @property
    def collider_velocity_field(self) -> FaceCenteredGrid:
        return self._collider_velocity

    def update_collider(self, collider, grid_size, spacing, origin):
        """Bake `collider` (or nothing, if None) onto the given grid layout."""
        self._collider = collider
        size = tuple(int(s) for s in grid_size)

        # Reuse the rasterization grids while the layout is unchanged
        if (self._collider_sdf is None or self._collider_sdf.size != size
                or not np.array_equal(self._collider_sdf.spacing, spacing)
                or not np.array_equal(self._collider_sdf.origin, origin)):
            self._collider_sdf = CellCenteredScalarGrid(size, spacing, origin, initial_value=INF)
            self._collider_velocity = FaceCenteredGrid(size, spacing, origin)

        if collider is None:
            self._collider_sdf.fill(INF)
            self._collider_velocity.fill(0.0)
        else:
            self._collider_sdf.data[...] = collider.signed_distance(self._collider_sdf.data_positions())
            for axis, comp in enumerate(self._collider_velocity.components):
                comp.data[...] = collider.velocity_at(comp.data_positions())[..., axis]

        self._rasterize_closed_walls()

    def _rasterize_closed_walls(self):
        # The ghost ring behind a closed wall is solid and at rest
        sdf = self._collider_sdf
        for axis in range(sdf.dimension):
            lower_bit, upper_bit = wall_flags(axis)
            depth = -0.5 * sdf.spacing[axis]
            for bit, cell in ((lower_bit, 0), (upper_bit, sdf.size[axis] - 1)):
                if not self.closed_domain_boundary_flag & bit:
                    continue
                index = [slice(None)] * sdf.dimension
                index[axis] = cell
                sdf.data[tuple(index)] = np.minimum(sdf.data[tuple(index)], depth)

                for k, comp in enumerate(self._collider_velocity.components):
                    n = comp.size[axis]
                    face_index = [slice(None)] * comp.dimension
                    if k == axis:
                        face_index[axis] = slice(0, 2) if cell == 0 else slice(n - 2, n)
                    else:
                        face_index[axis] = 0 if cell == 0 else n - 1
                    comp.data[tuple(face_index)] = 0.0

    def sdf_normal(self, points: np.ndarray) -> np.ndarray:
        """Unit gradient of the rasterized SDF (zero where it is flat)."""
        sdf = self._collider_sdf
        # Distances beyond the grid diameter carry no direction; clip so INF never overflows
        reach = float(np.linalg.norm(np.asarray(sdf.size) * sdf.spacing))
        grad = np.zeros_like(points)
        for axis in range(points.shape[-1]):
            step = np.zeros(points.shape[-1])
            step[axis] = sdf.spacing[axis]
            ahead = np.clip(sdf.sample(points + step), -reach, reach)
            behind = np.clip(sdf.sample(points - step), -reach, reach)
            grad[..., axis] = (ahead - behind) / (2.0 * step[axis])
        length = np.linalg.norm(grad, axis=-1, keepdims=True)
        return np.divide(grad, length, out=np.zeros_like(grad), where=length > 0.0)

    def constrain_velocity(self, velocity: FaceCenteredGrid, extrapolation_depth: int = 5):
        """Apply collider and closed-wall constraints to `velocity` in place."""
        if self._collider_sdf is not None:
            solid_masks = []
            for comp in velocity.components:
                solid = is_inside_sdf(self._collider_sdf.sample(comp.data_positions()))
                solid_masks.append(solid)
                if solid.any():
                    comp.data[...] = extrapolate_to_region(comp.data, ~solid, extrapolation_depth)

            if any(mask.any() for mask in solid_masks):
                extrapolated = velocity.clone()
                for axis, (comp, solid) in enumerate(zip(velocity.components, solid_masks)):
                    if not solid.any():
                        continue
                    points = comp.data_positions()[solid]
                    collider_vel = self._collider_velocity.sample(points)
                    relative = extrapolated.sample(points) - collider_vel
                    normal = self.sdf_normal(points)
                    tangential = relative - np.sum(relative * normal, axis=-1, keepdims=True) * normal
                    flat = ~np.any(normal != 0.0, axis=-1)
                    tangential[flat] = 0.0
                    comp.data[solid] = (tangential + collider_vel)[..., axis]

        self._close_domain_walls(velocity)

    def _close_domain_walls(self, velocity: FaceCenteredGrid):
        # Wall faces sit one face in from the ghost layer on each side
        for axis, comp in enumerate(velocity.components):
            lower_bit, upper_bit = wall_flags(axis)
            n = comp.size[axis]
            index = [slice(None)] * comp.dimension
            if self.closed_domain_boundary_flag & lower_bit:
                index[axis] = slice(0, 2)
                comp.data[tuple(index)] = 0.0
            if self.closed_domain_boundary_flag & upper_bit:
                index[axis] = slice(n - 2, n)
                comp.data[tuple(index)] = 0.0
