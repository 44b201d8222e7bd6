"""
emitter.py — Density / Velocity Sources
========================================
An emitter injects smoke (and optionally a push) into a region of the
grid. The grid solver calls `update(solver, current_time, dt)` at the
start of every sub-step, right after the collider update.

Density inside the region is raised to at least `density` (it never
lowers what is already there), so a continuous emitter saturates
instead of piling up without bound.
"""

import logging

import numpy as np

log = logging.getLogger(__name__)


class VolumeGridEmitter:
    """
    Emit into every cell/face whose center lies inside `region`.

    Args:
        region      : surface with signed_distance(points); < 0 is inside
        density     : density value written into the region
        velocity    : optional velocity vector imposed on faces in the region
        is_one_shot : emit only on the first update
    """

    def __init__(self, region, density: float = 1.0, velocity=None, is_one_shot: bool = True):
        self.region = region
        self.density = float(density)
        self.velocity = None if velocity is None else np.asarray(velocity, dtype=np.float64)
        self.is_one_shot = is_one_shot
        self.is_enabled = True
        self._has_emitted = False

    def update(self, solver, current_time: float, dt: float):
        if not self.is_enabled or (self.is_one_shot and self._has_emitted):
            return

        density = solver.density
        inside = self.region.signed_distance(density.data_positions()) < 0.0
        density.data[inside] = np.maximum(density.data[inside], self.density)

        if self.velocity is not None:
            for axis, comp in enumerate(solver.velocity.components):
                faces = self.region.signed_distance(comp.data_positions()) < 0.0
                comp.data[faces] = self.velocity[axis]

        if not self._has_emitted:
            log.debug("Emitter fired at t=%.4f over %d cells", current_time, int(inside.sum()))
        self._has_emitted = True
