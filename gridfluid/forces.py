"""
forces.py — External Forces
============================
Body forces are added straight onto the staggered velocity components.
Gravity is uniform, so each component array just gets Δt·g_k added to
every face; no interpolation between faces is needed.
"""

import numpy as np

from .constants import EPS
from .grid import FaceCenteredGrid


def apply_gravity(velocity: FaceCenteredGrid, gravity, dt: float) -> bool:
    """
    v_k += Δt · g_k on every face of component k.

    Axes whose gravity component is exactly zero are skipped, and the whole
    call is a no-op when |g|² is below EPS.

    Returns:
        True if any component was changed (the caller then reapplies the
        boundary condition)
    """
    gravity = np.asarray(gravity, dtype=np.float64)
    if float(gravity @ gravity) < EPS:
        return False

    applied = False
    for comp, g in zip(velocity.components, gravity):
        if g == 0.0:
            continue
        comp.data[...] += dt * g
        applied = True
    return applied


def apply_uniform_force(velocity: FaceCenteredGrid, acceleration, dt: float, region=None):
    """
    Add Δt·a to every face whose position lies inside `region` (an SDF
    surface), or everywhere if no region is given. Used for wind and fans.
    """
    acceleration = np.asarray(acceleration, dtype=np.float64)
    for axis, comp in enumerate(velocity.components):
        if acceleration[axis] == 0.0:
            continue
        if region is None:
            comp.data[...] += dt * acceleration[axis]
        else:
            inside = region.signed_distance(comp.data_positions()) < 0.0
            comp.data[inside] += dt * acceleration[axis]
