"""
grid.py — Grid Data and the MAC (Marker-and-Cell) Staggered Layout
====================================================================
The foundation of the entire simulation.

Every field is a dense numpy array over a D-dimensional index space plus
the physical frame that places it in the world:

  - `origin`      : lower corner of the grid (world space)
  - `spacing`     : cell size along each axis
  - `data_origin` : world position of sample index 0

Layout on a single cell (2-D shown, 3-D adds `w` on Z-faces):
  - Density `d` lives at CELL CENTERS  → shape (Nx, Ny)
  - Velocity `u` lives on X-FACES      → shape (Nx+1, Ny)
  - Velocity `v` lives on Y-FACES      → shape (Nx, Ny+1)

Why staggered? It prevents the "checkerboard" pressure instability
that appears on collocated grids. There is no stored "velocity at a
point": the full vector is always rebuilt by sampling each face
component on its own grid.

Arrays are indexed [i, j(, k)] with axis 0 = x, stored row-major.
"""

import numpy as np


def _as_size(size) -> tuple:
    size = tuple(int(s) for s in np.atleast_1d(size))
    if not size:
        raise ValueError("Grid size needs at least one axis")
    if any(s <= 0 for s in size):
        raise ValueError(f"Grid size must be positive on every axis, got {size}")
    return size


def _as_vector(value, dimension: int, name: str) -> np.ndarray:
    vec = np.asarray(value, dtype=np.float64)
    if vec.ndim == 0:
        vec = np.full(dimension, float(vec))
    if vec.shape != (dimension,):
        raise ValueError(f"{name} must have {dimension} components, got {vec.shape}")
    vec.setflags(write=False)
    return vec


def index_to_offset(index, size) -> int:
    """Flat storage offset of a D-dimensional index (row-major)."""
    return int(np.ravel_multi_index(tuple(int(i) for i in index), tuple(size)))


def offset_to_index(offset: int, size) -> tuple:
    """Inverse of `index_to_offset`."""
    return tuple(int(i) for i in np.unravel_index(int(offset), tuple(size)))


def interpolate(data: np.ndarray, coords: np.ndarray) -> np.ndarray:
    """
    Multi-linear interpolation of `data` at fractional index coordinates.

    Each axis coordinate is clamped to [0, n-1] before the lookup, so the
    read never leaves the array. Blending uses a + t*(b - a), which makes
    a constant neighbourhood come back bit-exact.

    Args:
        data   : D-dimensional array
        coords : (..., D) fractional indices

    Returns:
        Interpolated values, shape coords.shape[:-1]
    """
    coords = np.asarray(coords, dtype=np.float64)
    dim = data.ndim
    lower, upper, weights = [], [], []
    for axis in range(dim):
        n = data.shape[axis]
        x = np.clip(coords[..., axis], 0.0, n - 1)
        i0 = np.clip(np.floor(x).astype(np.intp), 0, max(n - 2, 0))
        i1 = np.minimum(i0 + 1, n - 1)
        lower.append(i0)
        upper.append(i1)
        weights.append(x - i0)

    def blend(axis, picked):
        if axis == dim:
            return data[tuple(picked)]
        lo = blend(axis + 1, picked + [lower[axis]])
        hi = blend(axis + 1, picked + [upper[axis]])
        return lo + weights[axis] * (hi - lo)

    return blend(0, [])


class GridData:
    """
    A dense scalar array with a fixed physical frame.

    `size`, `spacing` and the origins never change after construction;
    only the stored values do.
    """

    def __init__(self, size, spacing, origin, data_origin=None, initial_value: float = 0.0):
        self._size = _as_size(size)
        dim = len(self._size)
        self._spacing = _as_vector(spacing, dim, "spacing")
        if np.any(self._spacing <= 0.0):
            raise ValueError(f"Grid spacing must be positive, got {self._spacing}")
        self._origin = _as_vector(origin, dim, "origin")
        self._data_origin = self._origin if data_origin is None else _as_vector(data_origin, dim, "data_origin")
        self._data = np.full(self._size, initial_value, dtype=np.float64)

    # ── Frame ─────────────────────────────────────────────────────────────
    @property
    def size(self) -> tuple:
        return self._size

    @property
    def dimension(self) -> int:
        return len(self._size)

    @property
    def spacing(self) -> np.ndarray:
        return self._spacing

    @property
    def origin(self) -> np.ndarray:
        return self._origin

    @property
    def data_origin(self) -> np.ndarray:
        return self._data_origin

    @property
    def data(self) -> np.ndarray:
        """The live storage array (mutations are visible to the grid)."""
        return self._data

    @property
    def length(self) -> int:
        return self._data.size

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """World-space box spanned by the samples (first to last)."""
        lower = self._data_origin.copy()
        upper = self._data_origin + (np.asarray(self._size) - 1) * self._spacing
        return lower, upper

    def index(self, offset: int) -> tuple:
        return offset_to_index(offset, self._size)

    def data_position(self, index) -> np.ndarray:
        """origin + index * spacing. Accepts a single index or a (..., D) array."""
        return self._data_origin + np.asarray(index, dtype=np.float64) * self._spacing

    def data_positions(self) -> np.ndarray:
        """World position of every sample, shape size + (D,)."""
        axes = np.meshgrid(*[np.arange(n, dtype=np.float64) for n in self._size], indexing="ij")
        return self.data_position(np.stack(axes, axis=-1))

    # ── Values ────────────────────────────────────────────────────────────
    def __getitem__(self, index):
        return self._data[index]

    def __setitem__(self, index, value):
        self._data[index] = value

    def sample_index(self, coords) -> np.ndarray:
        return interpolate(self._data, coords)

    def sample(self, points) -> np.ndarray:
        """Interpolated value at world-space points, shape (..., D) → (...)."""
        coords = (np.asarray(points, dtype=np.float64) - self._data_origin) / self._spacing
        return interpolate(self._data, coords)

    def fill(self, value: float):
        self._data.fill(value)

    def set(self, other: "GridData"):
        """Copy another grid's values into this one without reallocating."""
        if other.size != self._size:
            raise ValueError(f"Cannot copy grid of size {other.size} into {self._size}")
        np.copyto(self._data, other.data)

    def clone(self) -> "GridData":
        copy = GridData.__new__(type(self))
        copy.__dict__.update(self.__dict__)
        copy._data = self._data.copy()
        return copy

    def __repr__(self):
        return (f"{type(self).__name__}(size={self._size}, spacing={self._spacing.tolist()}, "
                f"origin={self._origin.tolist()})")


class CellCenteredScalarGrid(GridData):
    """Scalar samples at the geometric center of each cell (density, SDFs)."""

    def __init__(self, resolution, spacing, origin, initial_value: float = 0.0):
        size = _as_size(resolution)
        spacing_vec = _as_vector(spacing, len(size), "spacing")
        origin_vec = _as_vector(origin, len(size), "origin")
        super().__init__(size, spacing_vec, origin_vec,
                         data_origin=origin_vec + 0.5 * spacing_vec,
                         initial_value=initial_value)

    @property
    def resolution(self) -> tuple:
        return self.size


class FaceCenteredGrid:
    """
    Staggered vector field: one GridData per axis.

    Component k lives on the faces perpendicular to axis k, so its extent
    along k is one larger than the cell count and its data origin is
    shifted half a cell on every *other* axis.
    """

    def __init__(self, resolution, spacing, origin, initial_value=0.0):
        self._resolution = _as_size(resolution)
        dim = len(self._resolution)
        self._spacing = _as_vector(spacing, dim, "spacing")
        self._origin = _as_vector(origin, dim, "origin")
        initial = np.broadcast_to(np.asarray(initial_value, dtype=np.float64), (dim,))

        components = []
        for axis in range(dim):
            size = list(self._resolution)
            size[axis] += 1
            shift = 0.5 * self._spacing.copy()
            shift[axis] = 0.0
            components.append(GridData(size, self._spacing, self._origin,
                                       data_origin=self._origin + shift,
                                       initial_value=float(initial[axis])))
        self._components = tuple(components)

    @property
    def resolution(self) -> tuple:
        return self._resolution

    @property
    def dimension(self) -> int:
        return len(self._resolution)

    @property
    def spacing(self) -> np.ndarray:
        return self._spacing

    @property
    def origin(self) -> np.ndarray:
        return self._origin

    @property
    def components(self) -> tuple:
        return self._components

    def component(self, axis: int) -> GridData:
        return self._components[axis]

    def component_positions(self, axis: int) -> np.ndarray:
        return self._components[axis].data_positions()

    def velocity_at(self, axis: int, index):
        """Raw stored face value of one component (no interpolation)."""
        return self._components[axis][index]

    def value_at_cell_center(self) -> np.ndarray:
        """
        Average the two faces bounding each cell, per component.

        Returns: array of shape resolution + (D,)
        """
        centers = []
        for axis, comp in enumerate(self._components):
            lo = [slice(None)] * self.dimension
            hi = [slice(None)] * self.dimension
            lo[axis] = slice(0, -1)
            hi[axis] = slice(1, None)
            centers.append(0.5 * (comp.data[tuple(lo)] + comp.data[tuple(hi)]))
        return np.stack(centers, axis=-1)

    def sample(self, points) -> np.ndarray:
        """Reconstruct full velocity vectors at world points, (..., D) → (..., D)."""
        return np.stack([comp.sample(points) for comp in self._components], axis=-1)

    def divergence(self) -> np.ndarray:
        """
        div(v) = du/dx + dv/dy (+ dw/dz) per cell.
        For an incompressible fluid this should be ~0 everywhere.
        """
        div = np.zeros(self._resolution, dtype=np.float64)
        for axis, comp in enumerate(self._components):
            div += np.diff(comp.data, axis=axis) / self._spacing[axis]
        return div

    def fill(self, value):
        value = np.broadcast_to(np.asarray(value, dtype=np.float64), (self.dimension,))
        for comp, v in zip(self._components, value):
            comp.fill(float(v))

    def set(self, other: "FaceCenteredGrid"):
        if other.resolution != self._resolution:
            raise ValueError(f"Cannot copy velocity of resolution {other.resolution} into {self._resolution}")
        for mine, theirs in zip(self._components, other.components):
            mine.set(theirs)

    def clone(self) -> "FaceCenteredGrid":
        copy = FaceCenteredGrid.__new__(FaceCenteredGrid)
        copy.__dict__.update(self.__dict__)
        copy._components = tuple(comp.clone() for comp in self._components)
        return copy

    def __repr__(self):
        return (f"FaceCenteredGrid(resolution={self._resolution}, spacing={self._spacing.tolist()}, "
                f"origin={self._origin.tolist()})")


def shift_values(values: np.ndarray, axis: int, shift: int, fill) -> np.ndarray:
    """out[i] = values[i + shift] along `axis` (shift = ±1); reads past the edge give `fill`."""
    out = np.roll(values, -shift, axis=axis)
    edge = [slice(None)] * values.ndim
    edge[axis] = slice(-1, None) if shift > 0 else slice(0, 1)
    out[tuple(edge)] = fill
    return out
