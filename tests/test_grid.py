"""Tests for grid storage, interpolation and the staggered layout."""

import numpy as np
import pytest

from gridfluid.grid import (
    CellCenteredScalarGrid,
    FaceCenteredGrid,
    GridData,
    index_to_offset,
    interpolate,
    offset_to_index,
    shift_values,
)


class TestGridData:
    """Frame and value storage of a single scalar grid."""

    def test_shape_and_frame(self):
        grid = GridData((3, 5), spacing=0.5, origin=(1.0, 2.0), initial_value=7.0)

        assert grid.size == (3, 5)
        assert grid.dimension == 2
        assert grid.length == 15
        np.testing.assert_array_equal(grid.spacing, [0.5, 0.5])
        np.testing.assert_array_equal(grid.data_origin, grid.origin)
        assert np.all(grid.data == 7.0)

    def test_data_position_is_origin_plus_index_times_spacing(self):
        grid = GridData((4, 4), spacing=(0.5, 0.25), origin=(1.0, -1.0))
        np.testing.assert_allclose(grid.data_position((2, 3)), [2.0, -0.25])
        assert grid.data_positions().shape == (4, 4, 2)

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError):
            GridData((0, 4), spacing=1.0, origin=(0.0, 0.0))

    def test_spacing_dimension_mismatch_rejected(self):
        with pytest.raises(ValueError):
            GridData((4, 4), spacing=(1.0, 1.0, 1.0), origin=(0.0, 0.0))

    def test_set_requires_matching_size(self):
        a = GridData((4, 4), 1.0, (0.0, 0.0))
        b = GridData((5, 4), 1.0, (0.0, 0.0))
        with pytest.raises(ValueError):
            a.set(b)

    def test_clone_is_independent(self):
        grid = CellCenteredScalarGrid((3, 3), 1.0, (0.0, 0.0))
        copy = grid.clone()
        copy[1, 1] = 5.0

        assert grid[1, 1] == 0.0
        assert isinstance(copy, CellCenteredScalarGrid)

    def test_offset_index_inverse(self):
        size = (3, 4, 5)
        for offset in (0, 7, 59):
            assert index_to_offset(offset_to_index(offset, size), size) == offset


class TestInterpolation:
    """Multi-linear sampling in index space."""

    def test_integer_coordinates_are_exact(self, rng):
        data = rng.random((5, 6))
        i, j = np.meshgrid(np.arange(5.0), np.arange(6.0), indexing="ij")
        coords = np.stack([i, j], axis=-1)
        np.testing.assert_array_equal(interpolate(data, coords), data)

    def test_linear_data_reproduced(self):
        i, j = np.meshgrid(np.arange(4.0), np.arange(4.0), indexing="ij")
        data = 2.0 * i + 3.0 * j
        assert interpolate(data, np.array([1.5, 2.25])) == pytest.approx(2.0 * 1.5 + 3.0 * 2.25)

    def test_coordinates_clamped_to_data(self):
        data = np.arange(4.0)
        assert interpolate(data, np.array([[-10.0]]))[0] == 0.0
        assert interpolate(data, np.array([[10.0]]))[0] == 3.0

    def test_cell_centered_sample_at_world_point(self):
        grid = CellCenteredScalarGrid((4, 4), spacing=0.25, origin=(0.0, 0.0))
        grid.data[...] = grid.data_positions()[..., 0]
        assert grid.sample(np.array([0.5, 0.5])) == pytest.approx(0.5)


class TestFaceCenteredGrid:
    """Staggered MAC layout."""

    def test_component_sizes_and_offsets(self):
        vel = FaceCenteredGrid((4, 3), spacing=0.5, origin=(0.0, 0.0))
        u, v = vel.components

        assert u.size == (5, 3)
        assert v.size == (4, 4)
        np.testing.assert_array_equal(u.data_origin, [0.0, 0.25])
        np.testing.assert_array_equal(v.data_origin, [0.25, 0.0])

    def test_value_at_cell_center_averages_faces(self):
        vel = FaceCenteredGrid((3, 3), spacing=1.0, origin=(0.0, 0.0))
        vel.component(0).data[...] = np.arange(4.0)[:, None]
        centers = vel.value_at_cell_center()

        assert centers.shape == (3, 3, 2)
        np.testing.assert_array_equal(centers[:, 0, 0], [0.5, 1.5, 2.5])
        assert np.all(centers[..., 1] == 0.0)

    def test_divergence_of_linear_field(self):
        vel = FaceCenteredGrid((4, 4), spacing=0.25, origin=(0.0, 0.0))
        u = vel.component(0)
        u.data[...] = u.data_positions()[..., 0]
        np.testing.assert_allclose(vel.divergence(), 1.0)

    def test_sample_rebuilds_vector(self):
        vel = FaceCenteredGrid((4, 4), spacing=0.25, origin=(0.0, 0.0), initial_value=(1.0, -2.0))
        np.testing.assert_array_equal(vel.sample(np.array([[0.3, 0.7]])), [[1.0, -2.0]])

    def test_set_requires_matching_resolution(self):
        with pytest.raises(ValueError):
            FaceCenteredGrid((4, 4), 1.0, (0, 0)).set(FaceCenteredGrid((3, 4), 1.0, (0, 0)))


def test_shift_values_fills_past_edge():
    values = np.array([1.0, 2.0, 3.0])
    np.testing.assert_array_equal(shift_values(values, 0, 1, 0.0), [2.0, 3.0, 0.0])
    np.testing.assert_array_equal(shift_values(values, 0, -1, 0.0), [0.0, 1.0, 2.0])
