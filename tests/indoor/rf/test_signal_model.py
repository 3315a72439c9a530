"""Unit tests for indoor.rf.signal_model (log-distance path-loss model)."""

import numpy as np
import pytest

from indoor.errors import InvalidArgumentError
from indoor.rf.signal_model import (
    DEFAULT_FREQUENCY,
    SPEED_OF_LIGHT,
    dbm_to_power,
    distance_from_power,
    power_to_dbm,
    received_power,
    received_power_dbm,
    wavelength_gain_db,
)


class TestPowerConversions:
    """Test dBm <-> linear power conversions."""

    def test_known_values(self):
        assert dbm_to_power(0.0) == pytest.approx(1.0)
        assert dbm_to_power(-30.0) == pytest.approx(1e-3)
        assert power_to_dbm(100.0) == pytest.approx(20.0)

    @pytest.mark.parametrize("dbm", [-120.0, -73.5, 0.0, 12.3, 40.0])
    def test_round_trip(self, dbm):
        """dBm -> power -> dBm recovers the input."""
        assert power_to_dbm(dbm_to_power(dbm)) == pytest.approx(dbm, rel=1e-6)

    def test_round_trip_from_power(self):
        for power in [1e-12, 3.7e-4, 1.0, 250.0]:
            assert dbm_to_power(power_to_dbm(power)) == pytest.approx(power, rel=1e-6)

    @pytest.mark.parametrize("power", [0.0, -1.0])
    def test_non_positive_power_rejected(self, power):
        with pytest.raises(InvalidArgumentError, match="Power must be positive"):
            power_to_dbm(power)


class TestReceivedPower:
    """Test the forward path-loss model."""

    def test_matches_closed_form(self):
        tx = 2.0e-3
        d = 7.5
        n = 2.3
        f = 5.0e9
        k = SPEED_OF_LIGHT / (4.0 * np.pi * f)
        expected = tx * k**n / d**n
        assert received_power(tx, d, n, f) == pytest.approx(expected, rel=1e-12)

    def test_free_space_inverse_square(self):
        """Doubling the distance divides power by 4 when n = 2."""
        p1 = received_power(1.0, 3.0)
        p2 = received_power(1.0, 6.0)
        assert p1 / p2 == pytest.approx(4.0)

    def test_dbm_form_consistent_with_linear(self):
        tx_dbm = -12.0
        rx_dbm = received_power_dbm(tx_dbm, 4.2, 2.7, DEFAULT_FREQUENCY)
        rx = received_power(dbm_to_power(tx_dbm), 4.2, 2.7, DEFAULT_FREQUENCY)
        assert rx_dbm == pytest.approx(power_to_dbm(rx), abs=1e-9)

    @pytest.mark.parametrize("distance", [0.0, -2.0])
    def test_non_positive_distance_rejected(self, distance):
        with pytest.raises(InvalidArgumentError, match="Distance must be positive"):
            received_power(1.0, distance)
        with pytest.raises(InvalidArgumentError, match="Distance must be positive"):
            received_power_dbm(0.0, distance)

    @pytest.mark.parametrize("frequency", [0.0, -2.4e9])
    def test_non_positive_frequency_rejected(self, frequency):
        with pytest.raises(InvalidArgumentError, match="Frequency must be positive"):
            received_power(1.0, 1.0, frequency=frequency)
        with pytest.raises(InvalidArgumentError, match="Frequency must be positive"):
            wavelength_gain_db(frequency)


class TestDistanceFromPower:
    """Test inversion of the model."""

    @pytest.mark.parametrize("d", [0.3, 1.0, 12.5, 80.0])
    @pytest.mark.parametrize("n", [1.6, 2.0, 3.5])
    def test_inverts_received_power_dbm(self, d, n):
        rx = received_power_dbm(-30.0, d, n)
        assert distance_from_power(-30.0, rx, n) == pytest.approx(d, rel=1e-9)

    def test_equal_powers_give_wavelength_distance(self):
        """Pr = Pte happens at d = c / (4 pi f)."""
        expected = SPEED_OF_LIGHT / (4.0 * np.pi * DEFAULT_FREQUENCY)
        assert distance_from_power(-10.0, -10.0) == pytest.approx(expected)

    def test_non_positive_exponent_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Path-loss exponent"):
            distance_from_power(-30.0, -60.0, path_loss_exponent=0.0)
