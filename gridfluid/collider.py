"""
collider.py — Obstacles as Signed Distance Fields
===================================================
A collider is anything the fluid must flow around. The solver never
looks at its geometry directly; it only asks two questions at arbitrary
world-space points:

  - signed_distance(points) → negative inside the solid, positive outside
  - velocity_at(points)     → how fast the solid surface is moving there

The grid solver calls `update(current_time, dt)` exactly once at the
beginning of every sub-step. That is the only place a collider may
change; the numerical stages treat it as read-only.

Moving obstacles are driven from outside (mouse dragging, scripted
paths) by passing an `on_update` callback that edits the surface.
"""

from typing import Callable, Optional, Sequence

import numpy as np


# ── Implicit surfaces ────────────────────────────────────────────────────────

class Sphere:
    """Circle in 2-D, sphere in 3-D."""

    def __init__(self, center, radius: float):
        self.center = np.asarray(center, dtype=np.float64)
        self.radius = float(radius)

    def signed_distance(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return np.linalg.norm(points - self.center, axis=-1) - self.radius


class Box:
    """Axis-aligned box between `lower` and `upper` corners."""

    def __init__(self, lower, upper):
        self.lower = np.asarray(lower, dtype=np.float64)
        self.upper = np.asarray(upper, dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        return 0.5 * (self.lower + self.upper)

    def signed_distance(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        half = 0.5 * (self.upper - self.lower)
        q = np.abs(points - self.center) - half
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=-1)
        inside = np.minimum(np.max(q, axis=-1), 0.0)
        return outside + inside


class Plane:
    """Half-space; the solid side is opposite the normal."""

    def __init__(self, normal, point):
        normal = np.asarray(normal, dtype=np.float64)
        self.normal = normal / np.linalg.norm(normal)
        self.point = np.asarray(point, dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        return self.point

    def signed_distance(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return (points - self.point) @ self.normal


class SurfaceSet:
    """Union of surfaces: the SDF is the pointwise minimum."""

    def __init__(self, surfaces: Sequence):
        if not surfaces:
            raise ValueError("SurfaceSet needs at least one surface")
        self.surfaces = list(surfaces)

    @property
    def center(self) -> np.ndarray:
        return np.mean([s.center for s in self.surfaces], axis=0)

    def signed_distance(self, points) -> np.ndarray:
        return np.minimum.reduce([s.signed_distance(points) for s in self.surfaces])


# ── Colliders ────────────────────────────────────────────────────────────────

class Collider:
    """
    Static obstacle. Subclasses override `velocity_at` for moving solids.

    Args:
        surface   : any object with signed_distance(points)
        on_update : optional callback(collider, current_time, dt), invoked
                    from `update`; the place to move the surface
    """

    def __init__(self, surface, on_update: Optional[Callable] = None):
        self.surface = surface
        self.on_update = on_update

    def signed_distance(self, points) -> np.ndarray:
        return self.surface.signed_distance(points)

    def velocity_at(self, points) -> np.ndarray:
        return np.zeros_like(np.asarray(points, dtype=np.float64))

    def is_penetrating(self, points) -> np.ndarray:
        return self.signed_distance(points) < 0.0

    def update(self, current_time: float, time_interval: float):
        if self.on_update is not None:
            self.on_update(self, current_time, time_interval)


class RigidBodyCollider(Collider):
    """
    Obstacle moving as a rigid body: v(p) = v_linear + ω × (p - center).

    In 2-D `angular_velocity` is a scalar (counter-clockwise), in 3-D a
    vector. The rotation center defaults to the surface's own center.
    """

    def __init__(self, surface, linear_velocity=None, angular_velocity=0.0,
                 center=None, on_update: Optional[Callable] = None):
        super().__init__(surface, on_update=on_update)
        self.linear_velocity = None if linear_velocity is None else np.asarray(linear_velocity, dtype=np.float64)
        self.angular_velocity = np.asarray(angular_velocity, dtype=np.float64)
        self._center = None if center is None else np.asarray(center, dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        if self._center is not None:
            return self._center
        return np.asarray(self.surface.center, dtype=np.float64)

    def velocity_at(self, points) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        dim = points.shape[-1]
        vel = np.zeros_like(points)
        if self.linear_velocity is not None:
            vel += self.linear_velocity
        if np.any(self.angular_velocity != 0.0):
            r = points - self.center
            if dim == 2:
                w = float(self.angular_velocity)
                vel[..., 0] -= w * r[..., 1]
                vel[..., 1] += w * r[..., 0]
            elif dim == 3:
                vel += np.cross(self.angular_velocity, r)
            else:
                raise ValueError(f"Angular velocity is only defined in 2-D and 3-D, got {dim}-D")
        return vel
