"""
First-order (delta method) uncertainty propagation.

Given a differentiable function y = f(x) and a Gaussian input x ~ N(x0, Σx),
the output is approximated as

    y ~ N(f(x0), J Σx J^T),   J = ∂f/∂x evaluated at x0

This module holds the generic propagation step and its application to the
distance obtained by inverting the log-distance path-loss model:

    d = 10^((n*K(dB) + Pte(dBm) - Pr(dBm)) / (10*n))

with closed-form partials with respect to Pte, Pr and n.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from indoor.errors import InvalidArgumentError
from indoor.rf.signal_model import (
    DEFAULT_FREQUENCY,
    DEFAULT_PATH_LOSS_EXPONENT,
    distance_from_power,
)

LN10 = float(np.log(10.0))


@dataclass(frozen=True)
class NormalDistribution:
    """
    Gaussian approximation of a propagated quantity.

    Attributes:
        mean: Mean value, shape (m,).
        covariance: Covariance matrix, shape (m, m). The diagonal is never
                    negative.
    """

    mean: np.ndarray
    covariance: np.ndarray

    def __post_init__(self) -> None:
        mean = np.atleast_1d(np.array(self.mean, dtype=float))
        cov = np.atleast_2d(np.array(self.covariance, dtype=float))
        if mean.ndim != 1:
            raise InvalidArgumentError(f"mean must be 1D, got shape {mean.shape}")
        m = mean.shape[0]
        if cov.shape != (m, m):
            raise InvalidArgumentError(
                f"covariance must have shape ({m}, {m}), got {cov.shape}"
            )
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "covariance", cov)

    @property
    def variance(self) -> float:
        """Variance of the first (usually only) component."""
        return float(self.covariance[0, 0])

    @property
    def standard_deviation(self) -> float:
        return float(np.sqrt(self.variance))


def check_variance(value: Optional[float], name: str) -> float:
    """Return a variance as float, treating None as 0."""
    if value is None:
        return 0.0
    if not value >= 0.0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")
    return float(value)


def propagate_normal(value, jacobian, covariance) -> NormalDistribution:
    """
    Propagate a Gaussian input through a linearized function.

    Implements:
        Σy = J Σx J^T

    Args:
        value: Function value at the linearization point, scalar or shape (m,).
        jacobian: Jacobian ∂f/∂x, shape (m, p), or (p,) for a scalar output.
        covariance: Input covariance Σx, shape (p, p).

    Returns:
        NormalDistribution with mean `value` and covariance J Σx J^T.
        Round-off below zero on the diagonal is clipped to zero.

    Raises:
        InvalidArgumentError: If shapes are inconsistent.

    Example:
        >>> dist = propagate_normal(1.0, np.array([2.0, 0.0]), np.diag([0.5, 9.0]))
        >>> dist.variance
        2.0
    """
    mean = np.atleast_1d(np.asarray(value, dtype=float))
    J = np.atleast_2d(np.asarray(jacobian, dtype=float))
    P = np.atleast_2d(np.asarray(covariance, dtype=float))

    if J.shape[0] != mean.shape[0]:
        raise InvalidArgumentError(
            f"Jacobian has {J.shape[0]} rows but value has {mean.shape[0]} entries"
        )
    if P.shape != (J.shape[1], J.shape[1]):
        raise InvalidArgumentError(
            f"Covariance must have shape ({J.shape[1]}, {J.shape[1]}), got {P.shape}"
        )

    cov = J @ P @ J.T
    cov = 0.5 * (cov + cov.T)
    diag = np.diag_indices_from(cov)
    cov[diag] = np.maximum(cov[diag], 0.0)
    return NormalDistribution(mean=mean, covariance=cov)


def distance_gradient(
    tx_power_dbm: float,
    rx_power_dbm: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
) -> np.ndarray:
    """
    Partial derivatives of the model distance with respect to its inputs.

    With g = (n*K + Pte - Pr) / (10*n) and d = 10^g:
        ∂d/∂Pte =  ln(10) / (10*n) * d
        ∂d/∂Pr  = -ln(10) / (10*n) * d
        ∂d/∂n   = -ln(10) * (Pte - Pr) / (10*n^2) * d

    Args:
        tx_power_dbm: Equivalent transmitted power in dBm.
        rx_power_dbm: Received power in dBm.
        path_loss_exponent: Path-loss exponent n (> 0).
        frequency: Radio frequency in Hz (> 0).

    Returns:
        Gradient [∂d/∂Pte, ∂d/∂Pr, ∂d/∂n], shape (3,).
    """
    d = distance_from_power(tx_power_dbm, rx_power_dbm, path_loss_exponent, frequency)
    n = path_loss_exponent
    d_tx = LN10 / (10.0 * n) * d
    d_n = -LN10 * (tx_power_dbm - rx_power_dbm) / (10.0 * n * n) * d
    return np.array([d_tx, -d_tx, d_n])


def distance_variance_from_power(
    tx_power_dbm: float,
    rx_power_dbm: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
    rx_power_variance: Optional[float] = None,
) -> float:
    """
    Variance of the model distance caused by received power noise only.

    Implements:
        σd² = (∂d/∂Pr)² σPr²

    Returns:
        Distance variance in m². Exactly 0.0 when rx_power_variance is None
        or zero.

    Raises:
        InvalidArgumentError: If rx_power_variance is negative or model
                              parameters are out of range.
    """
    variance = check_variance(rx_power_variance, "rx_power_variance")
    d_rx = distance_gradient(tx_power_dbm, rx_power_dbm, path_loss_exponent, frequency)[1]
    if variance == 0.0:
        return 0.0
    return float(d_rx * d_rx * variance)


def distance_distribution(
    tx_power_dbm: float,
    rx_power_dbm: float,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
    frequency: float = DEFAULT_FREQUENCY,
    tx_power_variance: Optional[float] = None,
    rx_power_variance: Optional[float] = None,
    path_loss_exponent_variance: Optional[float] = None,
) -> Optional[NormalDistribution]:
    """
    Distribution of the distance to a radio source given uncertain inputs.

    The mean is the deterministic model distance; the variance propagates
    independent uncertainties of Pte, Pr and n through the distance gradient.

    Args:
        tx_power_dbm: Equivalent transmitted power in dBm.
        rx_power_dbm: Received power in dBm.
        path_loss_exponent: Path-loss exponent n.
        frequency: Radio frequency in Hz.
        tx_power_variance: Variance of Pte (dB²), or None.
        rx_power_variance: Variance of Pr (dB²), or None.
        path_loss_exponent_variance: Variance of n, or None.

    Returns:
        NormalDistribution of the distance, or None when all three variances
        are None. Individually missing variances count as zero.

    Example:
        >>> dist = distance_distribution(-40.0, -60.0, rx_power_variance=0.0)
        >>> dist.variance
        0.0
    """
    if (
        tx_power_variance is None
        and rx_power_variance is None
        and path_loss_exponent_variance is None
    ):
        return None

    variances = np.array(
        [
            check_variance(tx_power_variance, "tx_power_variance"),
            check_variance(rx_power_variance, "rx_power_variance"),
            check_variance(path_loss_exponent_variance, "path_loss_exponent_variance"),
        ]
    )
    d = distance_from_power(tx_power_dbm, rx_power_dbm, path_loss_exponent, frequency)
    J = distance_gradient(tx_power_dbm, rx_power_dbm, path_loss_exponent, frequency)
    return propagate_normal(d, J, np.diag(variances))
