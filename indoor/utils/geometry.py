"""
Geometric utilities for fingerprint positioning.

Provides functions for:
- Position and covariance validation (2D/3D)
- Degenerate geometry detection for the path-loss model
"""

from typing import Optional

import numpy as np

from indoor.errors import InvalidArgumentError, InvalidGeometryError

# Singularity threshold constants
EPSILON_RANGE = 1e-10  # Minimum separation between two points (10 picometers)
SUPPORTED_DIMENSIONS = (2, 3)


def as_position(position, name: str = "position") -> np.ndarray:
    """
    Validate a position and return it as a float array.

    Args:
        position: Array-like of 2 or 3 finite coordinates.
        name: Argument name used in error messages.

    Returns:
        Copy of the position as a float array of shape (d,), d in {2, 3}.

    Raises:
        InvalidArgumentError: If the position is None, has an unsupported
                              dimension or contains non-finite values.

    Example:
        >>> as_position([1, 2])
        array([1., 2.])
    """
    if position is None:
        raise InvalidArgumentError(f"{name} must not be None")
    p = np.array(position, dtype=float)
    if p.ndim != 1 or p.shape[0] not in SUPPORTED_DIMENSIONS:
        raise InvalidArgumentError(
            f"{name} must have shape (2,) or (3,), got {p.shape}"
        )
    if not np.all(np.isfinite(p)):
        raise InvalidArgumentError(f"{name} contains non-finite values: {p}")
    return p


def as_covariance(
    covariance, dims: int, name: str = "covariance"
) -> Optional[np.ndarray]:
    """
    Validate an optional covariance matrix against a position dimension.

    Args:
        covariance: Array-like (dims, dims) symmetric positive semi-definite
                    matrix, or None.
        dims: Expected dimension (2 or 3).
        name: Argument name used in error messages.

    Returns:
        Copy of the covariance as a float array, or None if covariance is None.

    Raises:
        InvalidArgumentError: If the shape does not match, or the matrix is not
                              symmetric positive semi-definite.
    """
    if covariance is None:
        return None
    c = np.array(covariance, dtype=float)
    if c.shape != (dims, dims):
        raise InvalidArgumentError(
            f"{name} must have shape ({dims}, {dims}), got {c.shape}"
        )
    if not np.all(np.isfinite(c)):
        raise InvalidArgumentError(f"{name} contains non-finite values")
    if not np.allclose(c, c.T):
        raise InvalidArgumentError(f"{name} must be symmetric")
    eigvals = np.linalg.eigvalsh(c)
    if np.any(eigvals < -1e-10):  # small negative tolerance for numerical errors
        raise InvalidArgumentError(
            f"{name} must be positive semi-definite, got eigenvalues {eigvals}"
        )
    return c


def squared_distance(p: np.ndarray, q: np.ndarray) -> float:
    """Squared Euclidean distance between two points."""
    diff = np.asarray(p, dtype=float) - np.asarray(q, dtype=float)
    return float(diff @ diff)


def check_separation(
    p: np.ndarray,
    q: np.ndarray,
    what: str = "points",
    epsilon: float = EPSILON_RANGE,
) -> float:
    """
    Return the squared distance between two points, rejecting coincident ones.

    The log-distance model divides by this squared distance, so points closer
    than epsilon have no defined RSSI derivative.

    Args:
        p: First point, shape (d,).
        q: Second point, shape (d,).
        what: Description of the pair used in the error message.
        epsilon: Minimum allowed separation in meters.

    Returns:
        Squared distance |p - q|^2.

    Raises:
        InvalidGeometryError: If |p - q| < epsilon.
    """
    d2 = squared_distance(p, q)
    if not d2 >= epsilon * epsilon:
        raise InvalidGeometryError(
            f"Degenerate geometry: {what} coincide (squared distance {d2})"
        )
    return d2
