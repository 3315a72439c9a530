"""
Log-distance path-loss signal model.

This module implements the conversions between linear power and dBm and the
free-space style path-loss model used throughout the positioning core:

    Pr = Pte * (c / (4*pi*f))^n / d^n

where:
    Pr: received power (linear units, e.g. mW)
    Pte: equivalent transmitted power (transmitted power times antenna gains)
    c: speed of light (m/s)
    f: radio frequency (Hz)
    n: path-loss exponent (2.0 in free space)
    d: distance between transmitter and receiver (m)

Expressed in dBm the model becomes linear in log10(d):

    Pr(dBm) = Pte(dBm) + n*K(dB) - 10*n*log10(d),   K(dB) = 10*log10(c / (4*pi*f))

which is the form differentiated by the uncertainty propagation engine.
"""

import numpy as np

from indoor.errors import InvalidArgumentError

# Physical constants
SPEED_OF_LIGHT = 299792458.0  # m/s

# Default model parameters
DEFAULT_FREQUENCY = 2.4e9  # Hz (WiFi / Bluetooth 2.4 GHz band)
DEFAULT_PATH_LOSS_EXPONENT = 2.0  # free space


def dbm_to_power(dbm: float) -> float:
    """
    Convert a power expressed in dBm into linear units (mW).

    Args:
        dbm: Power in dBm.

    Returns:
        Power in mW (always > 0).

    Example:
        >>> dbm_to_power(0.0)
        1.0
        >>> dbm_to_power(-30.0)
        0.001
    """
    return float(10.0 ** (dbm / 10.0))


def power_to_dbm(power: float) -> float:
    """
    Convert a linear power (mW) into dBm.

    Args:
        power: Power in mW. Must be positive.

    Returns:
        Power in dBm.

    Raises:
        InvalidArgumentError: If power is zero or negative.
    """
    if power <= 0.0:
        raise InvalidArgumentError(f"Power must be positive, got {power}")
    return float(10.0 * np.log10(power))


def wavelength_gain_db(frequency: float = DEFAULT_FREQUENCY) -> float:
    """
    Compute K(dB) = 10*log10(c / (4*pi*f)), the frequency-dependent term of the model.

    Args:
        frequency: Radio frequency in Hz. Must be positive.

    Returns:
        K in dB (negative for any practical radio frequency).

    Raises:
        InvalidArgumentError: If frequency is zero or negative.
    """
    if frequency <= 0.0:
        raise InvalidArgumentError(f"Frequency must be positive, got {frequency}")
    return float(10.0 * np.log10(SPEED_OF_LIGHT / (4.0 * np.pi * frequency)))


def received_power(
    tx_power: float,
    distance: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
) -> float:
    """
    Compute received power in linear units using the log-distance model.

    Implements:
        Pr = Pte * (c / (4*pi*f))^n / d^n

    Args:
        tx_power: Equivalent transmitted power in linear units (mW).
        distance: Distance between transmitter and receiver in meters.
        path_loss_exponent: Path-loss exponent n. Defaults to 2.0 (free space).
        frequency: Radio frequency in Hz. Defaults to 2.4 GHz.

    Returns:
        Received power in the same linear units as tx_power.

    Raises:
        InvalidArgumentError: If distance or frequency is zero or negative.

    Example:
        >>> tx = dbm_to_power(-40.0)
        >>> rx = received_power(tx, distance=5.0, path_loss_exponent=2.0)
        >>> print(f"{power_to_dbm(rx):.2f} dBm")
        -94.03 dBm
    """
    if distance <= 0.0:
        raise InvalidArgumentError(f"Distance must be positive, got {distance}")
    if frequency <= 0.0:
        raise InvalidArgumentError(f"Frequency must be positive, got {frequency}")

    k = SPEED_OF_LIGHT / (4.0 * np.pi * frequency)
    return float(tx_power * k**path_loss_exponent / distance**path_loss_exponent)


def received_power_dbm(
    tx_power_dbm: float,
    distance: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
) -> float:
    """
    Compute received power in dBm using the log-distance model.

    Implements:
        Pr(dBm) = Pte(dBm) + n*K(dB) - 10*n*log10(d)

    Args:
        tx_power_dbm: Equivalent transmitted power in dBm.
        distance: Distance in meters. Must be positive.
        path_loss_exponent: Path-loss exponent n.
        frequency: Radio frequency in Hz. Must be positive.

    Returns:
        Received power in dBm.

    Raises:
        InvalidArgumentError: If distance or frequency is zero or negative.
    """
    if distance <= 0.0:
        raise InvalidArgumentError(f"Distance must be positive, got {distance}")

    k_db = wavelength_gain_db(frequency)
    return float(
        tx_power_dbm + path_loss_exponent * k_db - 10.0 * path_loss_exponent * np.log10(distance)
    )


def distance_from_power(
    tx_power_dbm: float,
    rx_power_dbm: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
) -> float:
    """
    Estimate distance by inverting the log-distance model.

    Implements:
        d = 10^((n*K(dB) + Pte(dBm) - Pr(dBm)) / (10*n))

    Args:
        tx_power_dbm: Equivalent transmitted power in dBm.
        rx_power_dbm: Received power in dBm.
        path_loss_exponent: Path-loss exponent n. Must be positive.
        frequency: Radio frequency in Hz. Must be positive.

    Returns:
        Estimated distance in meters.

    Raises:
        InvalidArgumentError: If path_loss_exponent or frequency is not positive.

    Example:
        >>> d = distance_from_power(-40.0, received_power_dbm(-40.0, 12.5))
        >>> print(f"{d:.3f} m")
        12.500 m
    """
    if path_loss_exponent <= 0.0:
        raise InvalidArgumentError(
            f"Path-loss exponent must be positive, got {path_loss_exponent}"
        )

    k_db = wavelength_gain_db(frequency)
    exponent = (path_loss_exponent * k_db + tx_power_dbm - rx_power_dbm) / (
        10.0 * path_loss_exponent
    )
    return float(10.0**exponent)
