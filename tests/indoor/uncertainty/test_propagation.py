"""Unit tests for indoor.uncertainty.propagation (delta method, distance variance)."""

import numpy as np
import pytest

from indoor.errors import InvalidArgumentError
from indoor.rf.signal_model import distance_from_power, received_power_dbm
from indoor.uncertainty.propagation import (
    NormalDistribution,
    distance_distribution,
    distance_gradient,
    distance_variance_from_power,
    propagate_normal,
)


def numerical_gradient(f, x, epsilon=1e-6):
    """Central-difference gradient of a scalar function."""
    x = np.asarray(x, dtype=float)
    grad = np.zeros_like(x)
    for i in range(len(x)):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += epsilon
        x_minus[i] -= epsilon
        grad[i] = (f(x_plus) - f(x_minus)) / (2 * epsilon)
    return grad


class TestPropagateNormal:
    """Test the generic J Σ J^T step."""

    def test_scalar_output(self):
        dist = propagate_normal(3.0, [2.0, -1.0], np.diag([0.25, 4.0]))
        assert isinstance(dist, NormalDistribution)
        np.testing.assert_array_equal(dist.mean, [3.0])
        assert dist.variance == pytest.approx(4.0 * 0.25 + 4.0)
        assert dist.standard_deviation == pytest.approx(np.sqrt(5.0))

    def test_vector_output(self):
        J = np.array([[1.0, 0.0], [1.0, 1.0]])
        P = np.array([[2.0, 0.5], [0.5, 1.0]])
        dist = propagate_normal([0.0, 1.0], J, P)
        np.testing.assert_allclose(dist.covariance, J @ P @ J.T)

    def test_zero_covariance_gives_zero_variance(self):
        dist = propagate_normal(1.0, [1e6, -3.0], np.zeros((2, 2)))
        assert dist.variance == 0.0

    def test_shape_mismatch_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Covariance must have shape"):
            propagate_normal(1.0, [1.0, 2.0], np.eye(3))


class TestDistanceGradient:
    """Analytic partials of d(Pte, Pr, n) against central differences."""

    @pytest.mark.parametrize(
        "tx, rx, n",
        [(-20.0, -60.0, 2.0), (-35.0, -52.0, 2.7), (-10.0, -90.0, 3.4)],
    )
    def test_matches_numerical(self, tx, rx, n):
        analytic = distance_gradient(tx, rx, n)
        numeric = numerical_gradient(
            lambda v: distance_from_power(v[0], v[1], v[2]), [tx, rx, n]
        )
        np.testing.assert_allclose(analytic, numeric, rtol=1e-3)

    def test_matches_numerical_over_valid_ranges(self):
        rng = np.random.default_rng(8)
        for _ in range(200):
            tx, rx = rng.uniform(-100.0, 100.0, size=2)
            n = rng.uniform(1.6, 2.0)
            analytic = distance_gradient(tx, rx, n)
            numeric = numerical_gradient(
                lambda v: distance_from_power(v[0], v[1], v[2]), [tx, rx, n], epsilon=1e-5
            )
            scale = distance_from_power(tx, rx, n)
            np.testing.assert_allclose(analytic, numeric, rtol=1e-5, atol=1e-6 * scale)

    def test_tx_and_rx_partials_are_opposite(self):
        grad = distance_gradient(-30.0, -70.0, 2.2)
        assert grad[0] == pytest.approx(-grad[1])


class TestDistanceVarianceFromPower:
    """Test variance due to received power only."""

    def test_absent_variance_is_zero(self):
        assert distance_variance_from_power(-20.0, -60.0, 2.0, 2.4e9, None) == 0.0
        assert distance_variance_from_power(-20.0, -60.0, 2.0, 2.4e9, 0.0) == 0.0

    def test_value(self):
        grad = distance_gradient(-20.0, -60.0, 2.0)
        expected = grad[1] ** 2 * 9.0
        assert distance_variance_from_power(-20.0, -60.0, 2.0, 2.4e9, 9.0) == pytest.approx(
            expected
        )

    def test_negative_variance_rejected(self):
        with pytest.raises(InvalidArgumentError, match="non-negative"):
            distance_variance_from_power(-20.0, -60.0, rx_power_variance=-1.0)

    @pytest.mark.parametrize("variance", [None, 0.0, 4.0])
    @pytest.mark.parametrize(
        "n, frequency, message",
        [(2.0, -1.0, "Frequency"), (2.0, 0.0, "Frequency"), (0.0, 2.4e9, "Path-loss")],
    )
    def test_invalid_model_rejected_even_without_noise(self, variance, n, frequency, message):
        with pytest.raises(InvalidArgumentError, match=message):
            distance_variance_from_power(
                -40.0, -60.0, n, frequency, rx_power_variance=variance
            )


class TestDistanceDistribution:
    """Test full distance distribution."""

    def test_none_when_all_variances_absent(self):
        assert distance_distribution(-20.0, -60.0) is None

    def test_zero_variance_idempotence(self):
        rx = received_power_dbm(-20.0, 5.0, 2.0)
        dist = distance_distribution(
            -20.0, rx, 2.0, 2.4e9,
            tx_power_variance=0.0, rx_power_variance=0.0, path_loss_exponent_variance=0.0,
        )
        assert dist.mean[0] == pytest.approx(5.0)
        assert dist.variance == 0.0

    def test_missing_variances_count_as_zero(self):
        full = distance_distribution(
            -20.0, -60.0, tx_power_variance=1.0, rx_power_variance=0.0,
            path_loss_exponent_variance=0.0,
        )
        partial = distance_distribution(-20.0, -60.0, tx_power_variance=1.0)
        assert partial.variance == pytest.approx(full.variance)

    def test_variance_combines_all_inputs(self):
        tx, rx, n = -25.0, -65.0, 2.4
        variances = np.array([1.0, 4.0, 0.04])
        grad = distance_gradient(tx, rx, n)
        dist = distance_distribution(
            tx, rx, n, tx_power_variance=1.0, rx_power_variance=4.0,
            path_loss_exponent_variance=0.04,
        )
        assert dist.variance == pytest.approx(np.sum(grad**2 * variances))
        assert dist.mean[0] == pytest.approx(distance_from_power(tx, rx, n))
