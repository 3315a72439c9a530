"""
Closed-form derivatives of the log-distance model with respect to position.

The received power at position p from a source at a, relative to a
fingerprint measured at p1, is

    P(p) = P(p1) - 5*n*log10(|p - a|^2 / |p1 - a|^2) = P(p1) + g(p) - g(p1)

with g(p) = -5*n/ln(10) * ln(s),  s = |r|^2,  r = p - a.

All position derivatives of g are scaled derivatives of ln(s). Writing δ for
the Kronecker delta:

    D1_j    = 2 r_j / s
    D2_jk   = 2 δ_jk / s - 4 r_j r_k / s^2
    D3_jkl  = -4 (δ_jk r_l + δ_jl r_k + δ_kl r_j) / s^2 + 16 r_j r_k r_l / s^3
    D4_jklm = -4 (δ_jk δ_lm + δ_jl δ_km + δ_kl δ_jm) / s^2
              + 16 (δ_jk r_l r_m + δ_jl r_k r_m + δ_kl r_j r_m
                    + δ_jm r_k r_l + δ_km r_j r_l + δ_lm r_j r_k) / s^3
              - 96 r_j r_k r_l r_m / s^4

The same tensors serve 2D and 3D positions. The Taylor polynomial of order
k around p1, evaluated at the estimated position pi with Δ = pi - p1, is

    T_k = P(p1) + Σ_{m=1..k} (1/m!) D^m g(p1)[Δ, ..., Δ]

Its gradient with respect to the fingerprint position, the radio source
position and the estimated position needs one derivative order more than the
polynomial, which is why D4 is required for third-order expansions.
"""

from math import factorial
from typing import List

import numpy as np

from indoor.errors import InvalidArgumentError
from indoor.utils.geometry import check_separation

LN10 = float(np.log(10.0))
MAX_TAYLOR_ORDER = 3


def log_sqr_distance_derivatives(r: np.ndarray, max_order: int) -> List[np.ndarray]:
    """
    Derivative tensors of ln(|r|^2) with respect to r.

    Args:
        r: Displacement from the radio source, shape (d,). Must be non-zero.
        max_order: Highest derivative order to return (1 to 4).

    Returns:
        List [D1, ..., D_max_order] where Dm has m axes of length d.

    Raises:
        InvalidArgumentError: If max_order is outside 1..4.
        InvalidGeometryError: If r is (numerically) the zero vector.
    """
    if not 1 <= max_order <= 4:
        raise InvalidArgumentError(f"max_order must be in 1..4, got {max_order}")

    r = np.asarray(r, dtype=float)
    s = check_separation(r, np.zeros_like(r), "radio source and expansion point")
    eye = np.eye(r.shape[0])

    rr = np.einsum("j,k->jk", r, r)
    tensors = [2.0 * r / s]
    if max_order >= 2:
        tensors.append(2.0 * eye / s - 4.0 * rr / s**2)
    if max_order >= 3:
        sym = (
            np.einsum("jk,l->jkl", eye, r)
            + np.einsum("jl,k->jkl", eye, r)
            + np.einsum("kl,j->jkl", eye, r)
        )
        rrr = np.einsum("jk,l->jkl", rr, r)
        tensors.append(-4.0 * sym / s**2 + 16.0 * rrr / s**3)
    if max_order >= 4:
        ee_sym = (
            np.einsum("jk,lm->jklm", eye, eye)
            + np.einsum("jl,km->jklm", eye, eye)
            + np.einsum("jm,kl->jklm", eye, eye)
        )
        err_sym = (
            np.einsum("jk,lm->jklm", eye, rr)
            + np.einsum("jl,km->jklm", eye, rr)
            + np.einsum("kl,jm->jklm", eye, rr)
            + np.einsum("jm,kl->jklm", eye, rr)
            + np.einsum("km,jl->jklm", eye, rr)
            + np.einsum("lm,jk->jklm", eye, rr)
        )
        rrrr = np.einsum("jk,lm->jklm", rr, rr)
        tensors.append(
            -4.0 * ee_sym / s**2 + 16.0 * err_sym / s**3 - 96.0 * rrrr / s**4
        )
    return tensors


def contract(tensor: np.ndarray, vector: np.ndarray, times: int) -> np.ndarray:
    """Contract the last `times` axes of a symmetric tensor with `vector`."""
    result = tensor
    for _ in range(times):
        result = result @ vector
    return result


def _check_order(order: int) -> None:
    if order not in range(1, MAX_TAYLOR_ORDER + 1):
        raise InvalidArgumentError(
            f"Taylor order must be 1, 2 or 3, got {order}"
        )


def check_path_loss_exponent(path_loss_exponent: float) -> float:
    if not path_loss_exponent > 0.0:
        raise InvalidArgumentError(
            f"Path-loss exponent must be positive, got {path_loss_exponent}"
        )
    return float(path_loss_exponent)


def _prepare(fingerprint_position, radio_source_position, estimated_position):
    p1 = np.asarray(fingerprint_position, dtype=float)
    a = np.asarray(radio_source_position, dtype=float)
    pi = np.asarray(estimated_position, dtype=float)
    if not (p1.shape == a.shape == pi.shape) or p1.ndim != 1:
        raise InvalidArgumentError(
            f"Position dimensions do not match: fingerprint {p1.shape}, "
            f"radio source {a.shape}, estimated {pi.shape}"
        )
    return p1 - a, pi - p1


def expected_rssi(
    order: int,
    fingerprint_rssi: float,
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
) -> float:
    """
    Taylor approximation of the RSSI expected at the estimated position.

    Args:
        order: Expansion order (1, 2 or 3).
        fingerprint_rssi: RSSI P(p1) measured at the fingerprint (dBm).
        path_loss_exponent: Path-loss exponent n.
        fingerprint_position: Expansion point p1, shape (d,).
        radio_source_position: Radio source position a, shape (d,).
        estimated_position: Evaluation point pi, shape (d,).

    Returns:
        T_order in dBm.

    Raises:
        InvalidArgumentError: On unsupported order, mismatched dimensions or a
                              non-positive path-loss exponent.
        InvalidGeometryError: If the fingerprint lies on the radio source.

    Example:
        >>> expected_rssi(1, -60.0, 2.0, [1.0, 0.0], [0.0, 0.0], [1.0, 0.0])
        -60.0
    """
    _check_order(order)
    n = check_path_loss_exponent(path_loss_exponent)
    r, delta = _prepare(fingerprint_position, radio_source_position, estimated_position)
    scale = -5.0 * n / LN10
    tensors = log_sqr_distance_derivatives(r, order)

    value = float(fingerprint_rssi)
    for m, D in enumerate(tensors, start=1):
        value += scale * float(contract(D, delta, m)) / factorial(m)
    return value


def expected_rssi_gradient(
    order: int,
    fingerprint_rssi: float,
    path_loss_exponent: float,
    fingerprint_position,
    radio_source_position,
    estimated_position,
) -> np.ndarray:
    """
    Gradient of `expected_rssi` with respect to all of its inputs.

    The variable ordering is
        [P(p1), n, p1 (d entries), a (d entries), pi (d entries)]

    Implements:
        ∂T/∂P(p1) = 1
        ∂T/∂n     = (T - P(p1)) / n
        ∂T/∂pi    = Σ_m 1/(m-1)! D^m g[., Δ^(m-1)]
        ∂T/∂r     = Σ_m 1/m! D^(m+1) g[., Δ^m]
        ∂T/∂a     = -∂T/∂r
        ∂T/∂p1    = ∂T/∂r - ∂T/∂pi

    Returns:
        Gradient, shape (2 + 3*d,).
    """
    _check_order(order)
    n = check_path_loss_exponent(path_loss_exponent)
    r, delta = _prepare(fingerprint_position, radio_source_position, estimated_position)
    scale = -5.0 * n / LN10
    tensors = log_sqr_distance_derivatives(r, order + 1)

    increment = 0.0
    grad_delta = np.zeros_like(r)
    grad_r = np.zeros_like(r)
    for m in range(1, order + 1):
        D = tensors[m - 1]
        increment += scale * float(contract(D, delta, m)) / factorial(m)
        grad_delta += scale * contract(D, delta, m - 1) / factorial(m - 1)
        grad_r += scale * contract(tensors[m], delta, m) / factorial(m)

    return np.concatenate(
        [
            [1.0, increment / n],
            grad_r - grad_delta,
            -grad_r,
            grad_delta,
        ]
    )
