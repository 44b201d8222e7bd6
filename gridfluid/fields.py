"""
fields.py — Analytic (non-grid) fields
=======================================
Anything with a `sample(points)` method can stand in wherever the
solvers expect a scalar or vector field. Grids implement it by
interpolation; the classes here answer the same query analytically.
"""

import numpy as np


class ConstantScalarField:
    """Same value at every point. Used as the default fluid SDF."""

    def __init__(self, value: float):
        self.value = float(value)

    def sample(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return np.full(points.shape[:-1], self.value, dtype=np.float64)

    def __repr__(self):
        return f"ConstantScalarField({self.value!r})"


class ConstantVectorField:
    """Same vector at every point."""

    def __init__(self, value):
        self.value = np.asarray(value, dtype=np.float64)

    def sample(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return np.broadcast_to(self.value, points.shape[:-1] + self.value.shape).copy()

    def __repr__(self):
        return f"ConstantVectorField({self.value.tolist()!r})"
