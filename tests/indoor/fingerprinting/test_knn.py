"""Unit tests for K-nearest fingerprint search."""

import math

import numpy as np
import pytest
from scipy.spatial import cKDTree

from indoor.errors import InvalidArgumentError
from indoor.fingerprinting import (
    Fingerprint,
    KNearestFinder,
    LocatedFingerprint,
    NoMeanKNearestFinder,
    RssiReading,
    find_k_nearest,
    find_nearest,
    no_mean_sqr_distance,
)
from indoor.rf import RadioSource

AP_X = RadioSource.wifi("ap-x")
AP_Y = RadioSource.wifi("ap-y")
AP_OTHER = RadioSource.wifi("ap-other")


def coordinate_fingerprint(position, located=True):
    """Fingerprint whose readings equal its coordinates, so signal space = physical space."""
    readings = [RssiReading(AP_X, position[0]), RssiReading(AP_Y, position[1])]
    if located:
        return LocatedFingerprint(readings, position=position)
    return Fingerprint(readings)


@pytest.fixture
def grid_map():
    """3x3 grid with 1 m spacing."""
    return [coordinate_fingerprint([float(x), float(y)]) for x in range(3) for y in range(3)]


class TestFindKNearest:
    """Test the K-nearest search."""

    def test_sorted_by_distance(self, grid_map):
        query = coordinate_fingerprint([0.1, 0.2], located=False)
        nearest, d2 = find_k_nearest(grid_map, query, 3)
        np.testing.assert_array_equal(nearest[0].position, [0.0, 0.0])
        assert d2[0] == pytest.approx(0.05)
        assert d2 == sorted(d2)
        assert len(nearest) == len(d2) == 3

    def test_matches_kdtree_on_positions(self):
        rng = np.random.default_rng(7)
        positions = rng.uniform(-60.0, -30.0, size=(40, 2))
        radio_map = [coordinate_fingerprint(p) for p in positions]
        tree = cKDTree(positions)

        for q in rng.uniform(-60.0, -30.0, size=(10, 2)):
            expected_d, expected_i = tree.query(q, k=5)
            nearest, d2 = find_k_nearest(radio_map, coordinate_fingerprint(q, False), 5)
            got = [radio_map.index(fp) for fp in nearest]
            assert got == list(expected_i)
            np.testing.assert_allclose(np.sqrt(d2), expected_d, rtol=1e-9)

    def test_prefix_consistency(self, grid_map):
        query = coordinate_fingerprint([1.0, 1.0], located=False)
        all_nearest, _ = find_k_nearest(grid_map, query, len(grid_map))
        for k in range(1, len(grid_map) + 1):
            nearest, _ = find_k_nearest(grid_map, query, k)
            assert nearest == all_nearest[:k]

    def test_ties_keep_database_order(self, grid_map):
        # the four direct neighbours of the centre are at the same distance
        query = coordinate_fingerprint([1.0, 1.0], located=False)
        nearest, d2 = find_k_nearest(grid_map, query, 5)
        assert d2[0] == 0.0
        assert d2[1:] == [1.0] * 4
        order = [grid_map.index(fp) for fp in nearest[1:]]
        assert order == sorted(order)

    def test_incomparable_fingerprints_last(self, grid_map):
        stranger = LocatedFingerprint([RssiReading(AP_OTHER, -40.0)], position=[9.0, 9.0])
        radio_map = [stranger] + grid_map
        query = coordinate_fingerprint([2.0, 2.0], located=False)
        nearest, d2 = find_k_nearest(radio_map, query, len(radio_map))
        assert nearest[-1] is stranger
        assert d2[-1] == math.inf

    def test_k_equal_to_database_size(self, grid_map):
        query = coordinate_fingerprint([0.5, 0.5], located=False)
        nearest, _ = find_k_nearest(grid_map, query, len(grid_map))
        assert len(nearest) == len(grid_map)

    def test_custom_metric(self, grid_map):
        query = coordinate_fingerprint([5.0, 5.0], located=False)
        _, d2 = find_k_nearest(grid_map, query, 3, metric=no_mean_sqr_distance)
        # points on the diagonal have the same shape as the query once means are removed
        assert d2 == [0.0, 0.0, 0.0]

    @pytest.mark.parametrize("k", [0, -1, 10])
    def test_k_out_of_range(self, grid_map, k):
        query = coordinate_fingerprint([0.0, 0.0], located=False)
        with pytest.raises(InvalidArgumentError, match="k"):
            find_k_nearest(grid_map, query, k)

    def test_none_inputs_rejected(self, grid_map):
        with pytest.raises(InvalidArgumentError, match="database"):
            find_k_nearest(None, Fingerprint([]), 1)
        with pytest.raises(InvalidArgumentError, match="query"):
            find_k_nearest(grid_map, None, 1)


class TestFindNearest:
    """Test the single nearest search."""

    def test_nearest(self, grid_map):
        query = coordinate_fingerprint([1.9, 0.2], located=False)
        np.testing.assert_array_equal(find_nearest(grid_map, query).position, [2.0, 0.0])

    def test_empty_database(self):
        assert find_nearest([], coordinate_fingerprint([0.0, 0.0], located=False)) is None


class TestFinders:
    """Test the finder classes bound to a radio map."""

    def test_finder(self, grid_map):
        finder = KNearestFinder(grid_map)
        query = coordinate_fingerprint([2.0, 1.1], located=False)
        np.testing.assert_array_equal(finder.find_nearest_to(query).position, [2.0, 1.0])
        nearest, d2 = finder.find_k_nearest_to(query, 2)
        assert len(nearest) == 2
        assert d2[0] == pytest.approx(0.01)

    def test_finder_copies_database(self, grid_map):
        finder = KNearestFinder(grid_map)
        grid_map.clear()
        assert len(finder.database) == 9

    def test_no_mean_finder_ignores_offset(self, grid_map):
        shifted = Fingerprint(
            [RssiReading(AP_X, 1.0 - 20.0), RssiReading(AP_Y, 2.0 - 20.0)]
        )
        plain = KNearestFinder(grid_map).find_nearest_to(shifted)
        no_mean = NoMeanKNearestFinder(grid_map).find_nearest_to(shifted)
        np.testing.assert_array_equal(plain.position, [2.0, 2.0])
        # [0, 1] is the first map entry with the same shape (y - x = 1)
        np.testing.assert_array_equal(no_mean.position, [0.0, 1.0])

    def test_none_database_rejected(self):
        with pytest.raises(InvalidArgumentError):
            KNearestFinder(None)
