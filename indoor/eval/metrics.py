"""
Evaluation metrics for fingerprint positioning.

This module provides position error metrics and the held-out selection of
the number of neighbours K used by the WKNN solver.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np

from indoor.errors import InvalidArgumentError
from indoor.fingerprinting.distance import sqr_distance
from indoor.fingerprinting.knn import DistanceMetric
from indoor.fingerprinting.types import Fingerprint, LocatedFingerprint
from indoor.fingerprinting.wknn import DEFAULT_EPSILON, locate


def compute_position_errors(
    truth: np.ndarray, estimated: np.ndarray
) -> np.ndarray:
    """
    Compute position errors between true and estimated positions.

    Args:
        truth: True positions, shape (N, 2) or (N, 3)
        estimated: Estimated positions, shape (N, 2) or (N, 3)

    Returns:
        errors: Position error vectors, shape (N, 2) or (N, 3)

    Raises:
        InvalidArgumentError: If inputs have incompatible shapes
    """
    truth = np.asarray(truth, dtype=float)
    estimated = np.asarray(estimated, dtype=float)

    if truth.shape != estimated.shape:
        raise InvalidArgumentError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )

    return estimated - truth


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error vectors, shape (N, d) or (N,)
        axis: Axis along which to compute RMSE
              None: scalar RMSE of the error norms
              0: per-dimension RMSE
              1: per-sample error norm

    Returns:
        rmse: RMSE value(s)

    Example:
        >>> compute_rmse(np.array([[3.0, 4.0], [0.0, 0.0]]))
        3.5355339059327378
    """
    errors = np.asarray(errors, dtype=float)
    if errors.size == 0:
        raise InvalidArgumentError("errors must not be empty")

    if axis is None:
        # sum over coordinates, mean over samples
        sq = errors**2 if errors.ndim == 1 else np.sum(errors**2, axis=-1)
        return float(np.sqrt(np.mean(sq)))
    if axis == 1:
        return np.sqrt(np.sum(errors**2, axis=1))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Compute error statistics.

    Args:
        errors: Error vectors, shape (N, d) or (N,)

    Returns:
        stats: Dictionary with keys:
               - 'mean': Mean error
               - 'median': Median error
               - 'std': Standard deviation
               - 'rmse': Root mean square error
               - 'p75': 75th percentile
               - 'p90': 90th percentile
               - 'p95': 95th percentile
               - 'max': Maximum error
    """
    errors = np.asarray(errors, dtype=float)
    if errors.size == 0:
        raise InvalidArgumentError("errors must not be empty")

    if errors.ndim > 1:
        error_magnitudes = np.linalg.norm(errors, axis=1)
    else:
        error_magnitudes = np.abs(errors)

    return {
        "mean": float(np.mean(error_magnitudes)),
        "median": float(np.median(error_magnitudes)),
        "std": float(np.std(error_magnitudes)),
        "rmse": float(np.sqrt(np.mean(error_magnitudes**2))),
        "p75": float(np.percentile(error_magnitudes, 75)),
        "p90": float(np.percentile(error_magnitudes, 90)),
        "p95": float(np.percentile(error_magnitudes, 95)),
        "max": float(np.max(error_magnitudes)),
    }


@dataclass
class KSweepResult:
    """Held-out accuracy of the WKNN solver for several K.

    Attributes:
        k_values: Evaluated K, in the order given.
        rmse: Position RMSE for each K (meters).
        best_k: K with the smallest RMSE (the smallest K on ties).
        best_rmse: RMSE of best_k.
    """

    k_values: np.ndarray
    rmse: np.ndarray
    best_k: int
    best_rmse: float


def sweep_k(
    database: Sequence[LocatedFingerprint],
    queries: Sequence[Fingerprint],
    truths: np.ndarray,
    k_values: Sequence[int],
    epsilon: float = DEFAULT_EPSILON,
    metric: DistanceMetric = sqr_distance,
) -> KSweepResult:
    """
    Select K by evaluating WKNN on held-out queries with known positions.

    Args:
        database: Radio map of located fingerprints.
        queries: Held-out fingerprints, not part of the database.
        truths: True positions of the queries, shape (N, d).
        k_values: Candidate K values, each in [1, len(database)].
        epsilon: Weight regularizer.
        metric: Squared signal-space distance.

    Returns:
        KSweepResult with the RMSE for each K and the best K.

    Raises:
        InvalidArgumentError: On empty inputs, mismatched lengths or K out
                              of range.

    Example:
        >>> result = sweep_k(radio_map, validation_queries, validation_truths,
        ...                  k_values=[1, 2, 3, 4, 5])
        >>> result.best_k
    """
    truths = np.asarray(truths, dtype=float)
    if queries is None or len(queries) == 0:
        raise InvalidArgumentError("At least one query is required")
    if truths.ndim != 2 or truths.shape[0] != len(queries):
        raise InvalidArgumentError(
            f"truths must have shape ({len(queries)}, d), got {truths.shape}"
        )
    if k_values is None or len(k_values) == 0:
        raise InvalidArgumentError("At least one K value is required")

    rmse = np.zeros(len(k_values))
    for j, k in enumerate(k_values):
        estimated = np.array(
            [locate(database, q, k, epsilon=epsilon, metric=metric) for q in queries]
        )
        rmse[j] = compute_rmse(compute_position_errors(truths, estimated))

    best = min(range(len(k_values)), key=lambda j: (rmse[j], k_values[j]))
    return KSweepResult(
        k_values=np.asarray(k_values, dtype=int),
        rmse=rmse,
        best_k=int(k_values[best]),
        best_rmse=float(rmse[best]),
    )
