"""
RSSI fingerprint positioning.

This module provides:
- Fingerprint types (RssiReading, Fingerprint, LocatedFingerprint)
- Signal-space distances, plain and mean-removed
- K-nearest fingerprint search
- Weighted K-nearest-neighbours (WKNN) position solver
- Taylor-model nonlinear position estimator
"""

from .distance import (
    distance,
    mean_rssi,
    no_mean_distance,
    no_mean_sqr_distance,
    sqr_distance,
)
from .knn import KNearestFinder, NoMeanKNearestFinder, find_k_nearest, find_nearest
from .nonlinear import (
    NonLinearFingerprintPositionEstimator,
    NonLinearFingerprintPositionEstimatorListener,
)
from .types import Fingerprint, LocatedFingerprint, RssiReading
from .wknn import (
    DEFAULT_EPSILON,
    SolverState,
    WeightedKNearestNeighboursPositionSolver,
    WeightedKNearestNeighboursPositionSolverListener,
    locate,
)

__all__ = [
    # Types
    "RssiReading",
    "Fingerprint",
    "LocatedFingerprint",
    # Distances
    "sqr_distance",
    "distance",
    "no_mean_sqr_distance",
    "no_mean_distance",
    "mean_rssi",
    # K-nearest search
    "find_k_nearest",
    "find_nearest",
    "KNearestFinder",
    "NoMeanKNearestFinder",
    # WKNN
    "DEFAULT_EPSILON",
    "SolverState",
    "WeightedKNearestNeighboursPositionSolver",
    "WeightedKNearestNeighboursPositionSolverListener",
    "locate",
    # Nonlinear estimator
    "NonLinearFingerprintPositionEstimator",
    "NonLinearFingerprintPositionEstimatorListener",
]
