"""Unit tests for indoor.eval.metrics (position errors and K selection)."""

import numpy as np
import pytest

from indoor.errors import InvalidArgumentError
from indoor.eval import (
    KSweepResult,
    compute_error_stats,
    compute_position_errors,
    compute_rmse,
    sweep_k,
)
from indoor.fingerprinting import (
    Fingerprint,
    LocatedFingerprint,
    RssiReading,
    locate,
)
from indoor.rf import RadioSource

AP_X = RadioSource.wifi("ap-x")
AP_Y = RadioSource.wifi("ap-y")

def coordinate_readings(position):
    return [RssiReading(AP_X, float(position[0])), RssiReading(AP_Y, float(position[1]))]

@pytest.fixture
def radio_map():
    return [
        LocatedFingerprint(coordinate_readings([x, y]), position=[float(x), float(y)])
        for x in range(6)
        for y in range(6)
    ]

class TestPositionErrors:
    """Test error vectors and RMSE."""

    def test_errors(self):
        truth = np.array([[0.0, 0.0], [1.0, 1.0]])
        estimated = np.array([[3.0, 4.0], [1.0, 2.0]])
        np.testing.assert_array_equal(
            compute_position_errors(truth, estimated), [[3.0, 4.0], [0.0, 1.0]]
        )

    def test_shape_mismatch(self):
        with pytest.raises(InvalidArgumentError, match="Shape mismatch"):
            compute_position_errors(np.zeros((2, 2)), np.zeros((2, 3)))

    def test_rmse_of_error_norms(self):
        errors = np.array([[3.0, 4.0], [0.0, 0.0]])
        assert compute_rmse(errors) == pytest.approx(np.sqrt(12.5))

    def test_rmse_axes(self):
        errors = np.array([[3.0, 4.0], [1.0, 0.0]])
        np.testing.assert_allclose(compute_rmse(errors, axis=1), [5.0, 1.0])
        np.testing.assert_allclose(compute_rmse(errors, axis=0), [np.sqrt(5.0), np.sqrt(8.0)])

    def test_rmse_1d(self):
        assert compute_rmse(np.array([3.0, -4.0])) == pytest.approx(np.sqrt(12.5))

    def test_empty_rejected(self):
        with pytest.raises(InvalidArgumentError):
            compute_rmse(np.array([]))
        with pytest.raises(InvalidArgumentError):
            compute_error_stats(np.array([]))

class TestErrorStats:
    """Test summary statistics."""

    def test_keys_and_values(self):
        errors = np.column_stack([np.arange(1.0, 11.0), np.zeros(10)])
        stats = compute_error_stats(errors)
        assert set(stats) == {"mean", "median", "std", "rmse", "p75", "p90", "p95", "max"}
        assert stats["mean"] == pytest.approx(5.5)
        assert stats["median"] == pytest.approx(5.5)
        assert stats["max"] == pytest.approx(10.0)
        assert stats["rmse"] == pytest.approx(np.sqrt(np.mean(np.arange(1.0, 11.0) ** 2)))
        assert stats["p75"] <= stats["p90"] <= stats["p95"] <= stats["max"]

    def test_scalar_errors_use_magnitude(self):
        stats = compute_error_stats(np.array([-2.0, 2.0]))
        assert stats["mean"] == pytest.approx(2.0)
        assert stats["std"] == pytest.approx(0.0)

class TestSweepK:
    """Test held-out K selection."""

    def test_rmse_per_k(self, radio_map):
        truths = np.array([[1.2, 3.7], [4.4, 0.6], [2.5, 2.5]])
        queries = [Fingerprint(coordinate_readings(t)) for t in truths]

        result = sweep_k(radio_map, queries, truths, k_values=[1, 2, 4])

        assert isinstance(result, KSweepResult)
        np.testing.assert_array_equal(result.k_values, [1, 2, 4])
        for k, rmse in zip(result.k_values, result.rmse):
            estimated = np.array([locate(radio_map, q, k) for q in queries])
            assert rmse == pytest.approx(compute_rmse(estimated - truths))
        assert result.best_rmse == pytest.approx(result.rmse.min())
        assert result.best_k in (1, 2, 4)

    def test_exact_matches_prefer_k1(self, radio_map):
        truths = np.array([[1.0, 1.0], [4.0, 2.0]])
        queries = [Fingerprint(coordinate_readings(t)) for t in truths]

        result = sweep_k(radio_map, queries, truths, k_values=[1, 3, 5])

        assert result.best_k == 1
        assert result.best_rmse == pytest.approx(0.0, abs=1e-12)

    def test_ties_pick_smallest_k(self):
        # both fingerprints sit at the origin, so every K gives the same estimate
        radio_map = [
            LocatedFingerprint(coordinate_readings([0.0, 0.0]), position=[0.0, 0.0]),
            LocatedFingerprint(coordinate_readings([1.0, 0.0]), position=[0.0, 0.0]),
        ]
        truths = np.array([[1.0, 1.0]])
        queries = [Fingerprint(coordinate_readings(t)) for t in truths]
        result = sweep_k(radio_map, queries, truths, k_values=[2, 1])
        assert result.rmse[0] == result.rmse[1]
        assert result.best_k == 1

    def test_validation(self, radio_map):
        truths = np.array([[1.0, 1.0]])
        queries = [Fingerprint(coordinate_readings(t)) for t in truths]
        with pytest.raises(InvalidArgumentError, match="query"):
            sweep_k(radio_map, [], truths, k_values=[1])
        with pytest.raises(InvalidArgumentError, match="truths"):
            sweep_k(radio_map, queries, np.zeros((2, 2)), k_values=[1])
        with pytest.raises(InvalidArgumentError, match="K value"):
            sweep_k(radio_map, queries, truths, k_values=[])
        with pytest.raises(InvalidArgumentError, match="exceeds"):
            sweep_k(radio_map, queries, truths, k_values=[len(radio_map) + 1])
