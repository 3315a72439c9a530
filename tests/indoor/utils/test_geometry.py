"""Unit tests for indoor.utils.geometry."""

import numpy as np
import pytest

from indoor.errors import InvalidArgumentError, InvalidGeometryError
from indoor.utils.geometry import (
    as_covariance,
    as_position,
    check_separation,
    squared_distance,
)


class TestAsPosition:
    def test_returns_float_copy(self):
        source = [1, 2]
        p = as_position(source)
        assert p.dtype == float
        np.testing.assert_array_equal(p, [1.0, 2.0])

    @pytest.mark.parametrize("bad", [None, [1.0], [1.0, 2.0, 3.0, 4.0], [[1.0, 2.0]]])
    def test_rejects_bad_shapes(self, bad):
        with pytest.raises(InvalidArgumentError):
            as_position(bad)

    def test_rejects_nan(self):
        with pytest.raises(InvalidArgumentError, match="non-finite"):
            as_position([np.nan, 0.0])


class TestAsCovariance:
    def test_none_passes_through(self):
        assert as_covariance(None, 2) is None

    def test_rejects_asymmetric(self):
        with pytest.raises(InvalidArgumentError, match="symmetric"):
            as_covariance([[1.0, 0.5], [0.0, 1.0]], 2)

    def test_accepts_singular_psd(self):
        cov = as_covariance(np.zeros((3, 3)), 3)
        np.testing.assert_array_equal(cov, np.zeros((3, 3)))


class TestSeparation:
    def test_squared_distance(self):
        assert squared_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(25.0)

    def test_coincident_points_rejected(self):
        with pytest.raises(InvalidGeometryError, match="coincide"):
            check_separation(np.array([1.0, 1.0]), np.array([1.0, 1.0]))

    def test_returns_squared_distance(self):
        assert check_separation([0.0, 0.0, 0.0], [1.0, 2.0, 2.0]) == pytest.approx(9.0)
