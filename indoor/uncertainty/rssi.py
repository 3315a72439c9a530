"""
RSSI uncertainty at an estimated position.

A fingerprint measured at p1 predicts the RSSI at a nearby position pi
through a Taylor expansion of the log-distance model around p1 (see
indoor.uncertainty.taylor). The functions in this module return that
prediction together with its variance, propagated from the uncertainties of:

    - the fingerprint RSSI P(p1)
    - the path-loss exponent n
    - the fingerprint position p1
    - the radio source position a
    - the estimated position pi

Inputs are treated as mutually independent, so the input covariance is block
diagonal. Missing variances or covariances count as zero; a missing position
makes the result undefined and None is returned instead.
"""

from typing import Optional

import numpy as np
from scipy.linalg import block_diag

from indoor.errors import InvalidArgumentError
from indoor.uncertainty.propagation import (
    NormalDistribution,
    check_variance,
    propagate_normal,
)
from indoor.uncertainty.taylor import (
    LN10,
    check_path_loss_exponent,
    expected_rssi,
    expected_rssi_gradient,
)
from indoor.utils.geometry import as_covariance, as_position, check_separation


def _positions(dimensions, **named):
    """Validate positions, returning None if any is missing."""
    if any(value is None for value in named.values()):
        return None
    positions = {name: as_position(value, name) for name, value in named.items()}
    dims = {p.shape[0] for p in positions.values()}
    if len(dims) != 1:
        raise InvalidArgumentError(
            "Positions must share one dimension, got "
            + ", ".join(f"{k}={v.shape}" for k, v in positions.items())
        )
    (d,) = dims
    if dimensions is not None and d != dimensions:
        raise InvalidArgumentError(
            f"Expected {dimensions}D positions, got {d}D"
        )
    return positions


def _covariance_block(covariance, dims: int, name: str) -> np.ndarray:
    block = as_covariance(covariance, dims, name)
    return np.zeros((dims, dims)) if block is None else block


def rssi_variance_non_linear(
    order: int,
    fingerprint_rssi: float,
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
    path_loss_exponent_variance: Optional[float] = None,
    rssi_variance: Optional[float] = None,
    fingerprint_position_covariance=None,
    radio_source_position_covariance=None,
    estimated_position_covariance=None,
    dimensions: Optional[int] = None,
) -> Optional[NormalDistribution]:
    """
    RSSI expected at an estimated position and its propagated variance.

    Args:
        order: Taylor expansion order (1, 2 or 3).
        fingerprint_rssi: RSSI measured at the fingerprint (dBm).
        path_loss_exponent: Path-loss exponent n.
        fingerprint_position: Fingerprint position p1, shape (d,).
        radio_source_position: Radio source position a, shape (d,).
        estimated_position: Estimated receiver position pi, shape (d,).
        path_loss_exponent_variance: Variance of n, or None.
        rssi_variance: Variance of the fingerprint RSSI (dB²), or None.
        fingerprint_position_covariance: (d, d) covariance of p1, or None.
        radio_source_position_covariance: (d, d) covariance of a, or None.
        estimated_position_covariance: (d, d) covariance of pi, or None.
        dimensions: Required position dimension, or None to accept 2D and 3D.

    Returns:
        NormalDistribution with the Taylor polynomial as mean, or None if any
        of the three positions is None.

    Raises:
        InvalidArgumentError: On unsupported order, mismatched dimensions,
                              negative variances, invalid covariances
                              or a non-positive path-loss exponent.
        InvalidGeometryError: If the fingerprint lies on the radio source.

    Example:
        >>> result = rssi_variance_non_linear(
        ...     1, -60.0, 2.0, [1.0, 0.0], [0.0, 0.0], [1.0, 0.0], rssi_variance=4.0)
        >>> result.variance
        4.0
    """
    check_path_loss_exponent(path_loss_exponent)
    positions = _positions(
        dimensions,
        fingerprint_position=fingerprint_position,
        radio_source_position=radio_source_position,
        estimated_position=estimated_position,
    )
    if positions is None:
        return None
    p1 = positions["fingerprint_position"]
    a = positions["radio_source_position"]
    pi = positions["estimated_position"]
    d = p1.shape[0]

    args = (order, fingerprint_rssi, path_loss_exponent, p1, a, pi)
    mean = expected_rssi(*args)
    gradient = expected_rssi_gradient(*args)

    covariance = block_diag(
        [[check_variance(rssi_variance, "rssi_variance")]],
        [[check_variance(path_loss_exponent_variance, "path_loss_exponent_variance")]],
        _covariance_block(fingerprint_position_covariance, d, "fingerprint_position_covariance"),
        _covariance_block(radio_source_position_covariance, d, "radio_source_position_covariance"),
        _covariance_block(estimated_position_covariance, d, "estimated_position_covariance"),
    )
    return propagate_normal(mean, gradient, covariance)


def _named_variant(order: int, dimensions: int):
    def variant(
        fingerprint_rssi: float,
        path_loss_exponent: float,
        fingerprint_position,
        radio_source_position,
        estimated_position,
        path_loss_exponent_variance: Optional[float] = None,
        rssi_variance: Optional[float] = None,
        fingerprint_position_covariance=None,
        radio_source_position_covariance=None,
        estimated_position_covariance=None,
    ) -> Optional[NormalDistribution]:
        return rssi_variance_non_linear(
            order,
            fingerprint_rssi,
            path_loss_exponent,
            fingerprint_position,
            radio_source_position,
            estimated_position,
            path_loss_exponent_variance=path_loss_exponent_variance,
            rssi_variance=rssi_variance,
            fingerprint_position_covariance=fingerprint_position_covariance,
            radio_source_position_covariance=radio_source_position_covariance,
            estimated_position_covariance=estimated_position_covariance,
            dimensions=dimensions,
        )

    ordinal = {1: "first", 2: "second", 3: "third"}[order]
    variant.__name__ = f"rssi_variance_{ordinal}_order_non_linear_{dimensions}d"
    variant.__qualname__ = variant.__name__
    variant.__doc__ = (
        f"{ordinal.capitalize()}-order RSSI expansion for {dimensions}D positions.\n\n"
        f"    Same contract as rssi_variance_non_linear with order={order} and\n"
        f"    {dimensions}D positions required."
    )
    return variant


rssi_variance_first_order_non_linear_2d = _named_variant(1, 2)
rssi_variance_second_order_non_linear_2d = _named_variant(2, 2)
rssi_variance_third_order_non_linear_2d = _named_variant(3, 2)
rssi_variance_first_order_non_linear_3d = _named_variant(1, 3)
rssi_variance_second_order_non_linear_3d = _named_variant(2, 3)
rssi_variance_third_order_non_linear_3d = _named_variant(3, 3)


def rssi_difference(
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
) -> float:
    """
    Exact RSSI change between the fingerprint and the estimated position.

    Implements:
        P(pi) - P(p1) = 5*n*(log10|p1 - a|^2 - log10|pi - a|^2)
    """
    n = check_path_loss_exponent(path_loss_exponent)
    p1 = np.asarray(fingerprint_position, dtype=float)
    a = np.asarray(radio_source_position, dtype=float)
    pi = np.asarray(estimated_position, dtype=float)
    s1 = check_separation(p1, a, "radio source and fingerprint")
    si = check_separation(pi, a, "radio source and estimated position")
    return float(5.0 * n * (np.log10(s1) - np.log10(si)))


def rssi_difference_gradient(
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
) -> np.ndarray:
    """
    Gradient of `rssi_difference` ordered as [n, p1, a, pi].

    Implements:
        ∂/∂n  = 5*(log10 s1 - log10 si)
        ∂/∂p1 =  10*n*(p1 - a) / (ln(10)*s1)
        ∂/∂pi = -10*n*(pi - a) / (ln(10)*si)
        ∂/∂a  = -(∂/∂p1 + ∂/∂pi)
    """
    n = check_path_loss_exponent(path_loss_exponent)
    p1 = np.asarray(fingerprint_position, dtype=float)
    a = np.asarray(radio_source_position, dtype=float)
    pi = np.asarray(estimated_position, dtype=float)
    s1 = check_separation(p1, a, "radio source and fingerprint")
    si = check_separation(pi, a, "radio source and estimated position")

    d_p1 = 10.0 * n * (p1 - a) / (LN10 * s1)
    d_pi = -10.0 * n * (pi - a) / (LN10 * si)
    return np.concatenate(
        [[5.0 * (np.log10(s1) - np.log10(si))], d_p1, -(d_p1 + d_pi), d_pi]
    )


def rssi_difference_variance(
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
    path_loss_exponent_variance: Optional[float] = None,
    fingerprint_position_covariance=None,
    radio_source_position_covariance=None,
    estimated_position_covariance=None,
    dimensions: Optional[int] = None,
) -> Optional[NormalDistribution]:
    """
    Distribution of the RSSI change between the fingerprint and pi.

    Returns:
        NormalDistribution of P(pi) - P(p1), or None if any position is None.

    Raises:
        InvalidArgumentError: On mismatched dimensions, invalid covariances or a
                              non-positive path-loss exponent.
        InvalidGeometryError: If p1 or pi lies on the radio source.
    """
    check_path_loss_exponent(path_loss_exponent)
    positions = _positions(
        dimensions,
        fingerprint_position=fingerprint_position,
        radio_source_position=radio_source_position,
        estimated_position=estimated_position,
    )
    if positions is None:
        return None
    p1 = positions["fingerprint_position"]
    a = positions["radio_source_position"]
    pi = positions["estimated_position"]
    d = p1.shape[0]

    mean = rssi_difference(path_loss_exponent, p1, a, pi)
    gradient = rssi_difference_gradient(path_loss_exponent, p1, a, pi)
    covariance = block_diag(
        [[check_variance(path_loss_exponent_variance, "path_loss_exponent_variance")]],
        _covariance_block(fingerprint_position_covariance, d, "fingerprint_position_covariance"),
        _covariance_block(radio_source_position_covariance, d, "radio_source_position_covariance"),
        _covariance_block(estimated_position_covariance, d, "estimated_position_covariance"),
    )
    return propagate_normal(mean, gradient, covariance)


def rssi_difference_variance_2d(
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
    path_loss_exponent_variance: Optional[float] = None,
    fingerprint_position_covariance=None,
    radio_source_position_covariance=None,
    estimated_position_covariance=None,
) -> Optional[NormalDistribution]:
    """RSSI difference distribution for 2D positions."""
    return rssi_difference_variance(
        path_loss_exponent,
        fingerprint_position,
        radio_source_position,
        estimated_position,
        path_loss_exponent_variance,
        fingerprint_position_covariance,
        radio_source_position_covariance,
        estimated_position_covariance,
        dimensions=2,
    )


def rssi_difference_variance_3d(
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
    path_loss_exponent_variance: Optional[float] = None,
    fingerprint_position_covariance=None,
    radio_source_position_covariance=None,
    estimated_position_covariance=None,
) -> Optional[NormalDistribution]:
    """RSSI difference distribution for 3D positions."""
    return rssi_difference_variance(
        path_loss_exponent,
        fingerprint_position,
        radio_source_position,
        estimated_position,
        path_loss_exponent_variance,
        fingerprint_position_covariance,
        radio_source_position_covariance,
        estimated_position_covariance,
        dimensions=3,
    )
