"""
solver.py — Pressure Projection
================================
The pressure projection step enforces INCOMPRESSIBILITY:
  div(v) = 0 everywhere

After forces and diffusion, the velocity field is generally NOT
divergence-free (fluid "piles up" in some cells). We fix this by:
  1. Pinning faces inside the collider to the collider's own velocity
     (no penetration, moving obstacles push fluid)
  2. Computing divergence of the resulting velocity field
  3. Solving the Poisson equation for pressure: ∇²p = div(v) / Δt
     (sparse matrix, Jacobi-preconditioned conjugate gradient)
  4. Subtracting the pressure gradient: v = v - Δt·∇p

Cells are classified from the signed distance fields:
  - solid : inside the collider           → Neumann (no flux through it)
  - air   : outside the fluid SDF         → Dirichlet p = 0
  - fluid : everything else               → unknown pressure
The grid edge is treated like a solid wall.

A fluid region that touches no air only fixes pressure up to a constant.
Its right-hand side is shifted to zero mean so the system stays consistent.
"""

import logging

import numpy as np
from scipy.ndimage import label
from scipy.sparse import csr_matrix, diags
from scipy.sparse.linalg import cg

from .constants import is_inside_sdf
from .fields import ConstantVectorField
from .grid import CellCenteredScalarGrid, FaceCenteredGrid, shift_values

log = logging.getLogger(__name__)


class SinglePhasePressureSolver:
    """
    Pressure projection on a staggered grid.

    Args:
        iterations : maximum conjugate gradient iterations
        tolerance  : relative residual ||Ap - b|| / ||b|| to stop at
    """

    def __init__(self, iterations: int = 500, tolerance: float = 1e-6):
        self.iterations = max(int(iterations), 1)
        self.tolerance = float(tolerance)
        self.pressure = None
        self.last_residual = 0.0
        self.last_iterations = 0
        self._cell_positions = None
        self._cell_layout = None

    def _cell_centers(self, velocity: FaceCenteredGrid) -> np.ndarray:
        layout = (velocity.resolution, tuple(velocity.spacing), tuple(velocity.origin))
        if layout != self._cell_layout:
            cells = CellCenteredScalarGrid(velocity.resolution, velocity.spacing, velocity.origin)
            self._cell_positions = cells.data_positions()
            self._cell_layout = layout
        return self._cell_positions

    def _solve_poisson(self, active, touches_air, diagonal, couplings, b):
        """Solve the Poisson system on the `active` cells; returns their pressures."""
        n = int(active.sum())
        index = np.full(active.shape, -1, dtype=np.int64)
        index[active] = np.arange(n)

        # Row i: diagonal[i]·p_i − Σ c·p_nb over fluid neighbours
        rows, cols, values = [index[active]], [index[active]], [diagonal[active]]
        for axis, shift, c, nb_fluid in couplings:
            link = active & nb_fluid
            rows.append(index[link])
            cols.append(shift_values(index, axis, shift, -1)[link])
            values.append(np.full(int(link.sum()), -c))
        A = csr_matrix((np.concatenate(values), (np.concatenate(rows), np.concatenate(cols))),
                       shape=(n, n))

        b = b.copy()
        labels, count = label(active)
        for region in range(1, count + 1):
            cells = labels == region
            if not touches_air[cells].any():
                b[cells] -= b[cells].mean()

        rhs = b[active]
        norm = float(np.linalg.norm(rhs))
        if norm == 0.0:
            return np.zeros(n)

        iterations = [0]

        def count_iteration(_):
            iterations[0] += 1

        x, info = cg(A, rhs, rtol=self.tolerance, atol=0.0, maxiter=self.iterations,
                     M=diags(1.0 / diagonal[active]), callback=count_iteration)
        if info < 0:
            raise RuntimeError(f"Pressure solve failed: cg returned {info}")

        self.last_iterations = iterations[0]
        self.last_residual = float(np.linalg.norm(A @ x - rhs)) / norm
        if info > 0:
            log.warning("Pressure solve hit %d iterations, residual %.3e",
                        self.iterations, self.last_residual)
        return x

    def solve(self, velocity: FaceCenteredGrid, dt: float, collider_sdf, fluid_sdf,
              collider_velocity=None) -> FaceCenteredGrid:
        """
        Project `velocity` onto the divergence-free fields.

        Returns a new FaceCenteredGrid; `self.pressure` keeps the pressure
        that was used (shape = velocity.resolution).
        """
        if collider_velocity is None:
            collider_velocity = ConstantVectorField(np.zeros(velocity.dimension))

        result = velocity.clone()
        spacing = velocity.spacing

        # ── Step 1: classify cells, pin solid faces ─────────────────────────
        centers = self._cell_centers(velocity)
        solid = is_inside_sdf(collider_sdf.sample(centers))
        air = ~solid & is_inside_sdf(fluid_sdf.sample(centers))
        fluid = ~solid & ~air

        solid_faces = []
        for axis, comp in enumerate(result.components):
            positions = comp.data_positions()
            inside = is_inside_sdf(collider_sdf.sample(positions))
            if inside.any():
                comp.data[inside] = collider_velocity.sample(positions[inside])[..., axis]
            solid_faces.append(inside)

        # ── Step 2: divergence ──────────────────────────────────────────────
        rhs = result.divergence() / dt

        # ── Step 3: Poisson solve (conjugate gradient) ──────────────────────
        inv_h2 = 1.0 / (spacing * spacing)
        couplings = []
        diagonal = np.zeros(velocity.resolution, dtype=np.float64)
        touches_air = np.zeros(velocity.resolution, dtype=bool)
        for axis in range(velocity.dimension):
            for shift in (-1, 1):
                nb_fluid = shift_values(fluid, axis, shift, False)
                nb_air = shift_values(air, axis, shift, False)
                diagonal += inv_h2[axis] * (nb_fluid | nb_air)
                touches_air |= nb_air
                couplings.append((axis, shift, inv_h2[axis], nb_fluid))
        active = fluid & (diagonal > 0.0)

        p = np.zeros(velocity.resolution, dtype=np.float64)
        self.last_residual = 0.0
        self.last_iterations = 0
        if active.any():
            p[active] = self._solve_poisson(active, touches_air, diagonal, couplings, -rhs)

        self.pressure = p
        log.debug("Pressure solve: %d iterations, residual %.3e",
                  self.last_iterations, self.last_residual)

        # ── Step 4: subtract Δt·∇p on faces between two non-solid cells ─────
        for axis, comp in enumerate(result.components):
            lo = [slice(None)] * velocity.dimension
            hi = [slice(None)] * velocity.dimension
            faces = [slice(None)] * velocity.dimension
            lo[axis] = slice(0, -1)
            hi[axis] = slice(1, None)
            faces[axis] = slice(1, -1)
            lo, hi, faces = tuple(lo), tuple(hi), tuple(faces)

            update = (~solid[lo] & ~solid[hi] & (fluid[lo] | fluid[hi])
                      & ~solid_faces[axis][faces])
            gradient = (p[hi] - p[lo]) / spacing[axis]
            interior = comp.data[faces]
            interior[update] -= dt * gradient[update]

        return result
