"""
gridfluid/ — Staggered-Grid Fluid Solver Package
=================================================
Exports the interfaces a driver (CLI, renderer, tests) needs.

Driver imports: GridSolver, SolverConfig → advance(), density, velocity
Scene setup imports: Sphere/Box/Plane, Collider, RigidBodyCollider,
                     VolumeGridEmitter
"""

from .animation import Frame, PhysicsAnimation
from .boundary import BoundaryConditionSolver
from .collider import Box, Collider, Plane, RigidBodyCollider, Sphere, SurfaceSet
from .config import SolverConfig
from .constants import (
    DIRECTION_ALL,
    DIRECTION_BACK,
    DIRECTION_DOWN,
    DIRECTION_FRONT,
    DIRECTION_LEFT,
    DIRECTION_NONE,
    DIRECTION_RIGHT,
    DIRECTION_UP,
    EPS,
    INF,
)
from .diffuse import BackwardEulerDiffusionSolver
from .emitter import VolumeGridEmitter
from .fields import ConstantScalarField, ConstantVectorField
from .grid import CellCenteredScalarGrid, FaceCenteredGrid, GridData
from .simulation import GridSolver, SolverHooks, SolverState
from .solver import SinglePhasePressureSolver

__all__ = [
    "BackwardEulerDiffusionSolver",
    "BoundaryConditionSolver",
    "Box",
    "CellCenteredScalarGrid",
    "Collider",
    "ConstantScalarField",
    "ConstantVectorField",
    "DIRECTION_ALL",
    "DIRECTION_BACK",
    "DIRECTION_DOWN",
    "DIRECTION_FRONT",
    "DIRECTION_LEFT",
    "DIRECTION_NONE",
    "DIRECTION_RIGHT",
    "DIRECTION_UP",
    "EPS",
    "FaceCenteredGrid",
    "Frame",
    "GridData",
    "GridSolver",
    "INF",
    "PhysicsAnimation",
    "Plane",
    "RigidBodyCollider",
    "SinglePhasePressureSolver",
    "SolverConfig",
    "SolverHooks",
    "SolverState",
    "Sphere",
    "SurfaceSet",
]
