"""
constants.py — Numeric Limits and Domain Direction Flags
=========================================================
EPS and INF mirror the limits the solver clamps against:
  - EPS : smallest positive normal float64. Anything at or below it is
          treated as exactly zero (viscosity, gravity magnitude, max CFL).
  - INF : largest finite float64. Used as "infinitely far" for signed
          distance fields, so arithmetic on it never produces NaN.

The direction flags form the closed-domain bitmask: each bit marks one
outer wall of the box as solid.
"""

import numpy as np

EPS = float(np.finfo(np.float64).tiny)
INF = float(np.finfo(np.float64).max)

# ── Closed-domain wall flags (one bit per side, axis-major) ──────────────────
DIRECTION_NONE  = 0
DIRECTION_LEFT  = 1 << 0    # -x
DIRECTION_RIGHT = 1 << 1    # +x
DIRECTION_DOWN  = 1 << 2    # -y
DIRECTION_UP    = 1 << 3    # +y
DIRECTION_BACK  = 1 << 4    # -z
DIRECTION_FRONT = 1 << 5    # +z
DIRECTION_ALL = (DIRECTION_LEFT | DIRECTION_RIGHT | DIRECTION_DOWN |
                 DIRECTION_UP | DIRECTION_BACK | DIRECTION_FRONT)


def wall_flags(axis: int) -> tuple[int, int]:
    """(lower, upper) wall bits for an axis."""
    return 1 << (2 * axis), 1 << (2 * axis + 1)


def is_inside_sdf(phi):
    """Signed distance convention: negative means inside the region."""
    return np.asarray(phi) < 0.0
