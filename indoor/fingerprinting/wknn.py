"""Weighted K-nearest-neighbours (WKNN) position solver.

Implements the weighted average of the positions of the K located
fingerprints nearest to a query in signal space:

    x̂ = Σ_i w_i x_i / Σ_i w_i,   w_i = 1 / (d_i² + ε)

where d_i is the signal-space distance of neighbour i and ε a small positive
regularizer that keeps the weight of an exact match finite.

The solver is a small state machine. It is UNREADY until fingerprints and
distances are provided, READY afterwards, and LOCKED while `solve()` runs.
Listener callbacks run while LOCKED, so a listener cannot change the inputs
of the solve it is observing.
"""

import logging
import math
import warnings
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from indoor.errors import InvalidArgumentError, LockedError, NotReadyError

from .distance import sqr_distance
from .knn import DistanceMetric, find_k_nearest
from .types import Fingerprint, LocatedFingerprint

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-7


class SolverState(Enum):
    """Lifecycle of a position solver or estimator."""

    UNREADY = "unready"
    READY = "ready"
    LOCKED = "locked"


class WeightedKNearestNeighboursPositionSolverListener:
    """Receives solver lifecycle events. Override the hooks you need."""

    def on_solve_start(self, solver: "WeightedKNearestNeighboursPositionSolver") -> None:
        pass

    def on_solve_end(self, solver: "WeightedKNearestNeighboursPositionSolver") -> None:
        pass


class WeightedKNearestNeighboursPositionSolver:
    """
    Estimate a position as the inverse-distance weighted mean of K fingerprints.

    Args:
        fingerprints: Located fingerprints nearest to the query, or None.
        distances: Signal-space distance of each fingerprint to the query
                   (same length), or None.
        listener: Optional WeightedKNearestNeighboursPositionSolverListener.
        epsilon: Regularizer added to squared distances (must be > 0).

    Raises:
        InvalidArgumentError: If only one of fingerprints/distances is given,
                              or if they are inconsistent.

    Example:
        >>> solver = WeightedKNearestNeighboursPositionSolver(nearest, distances)
        >>> solver.solve()
        >>> solver.estimated_position
        array([0.5, 0.5])
    """

    def __init__(
        self,
        fingerprints: Optional[Sequence[LocatedFingerprint]] = None,
        distances: Optional[Sequence[float]] = None,
        listener: Optional[WeightedKNearestNeighboursPositionSolverListener] = None,
        epsilon: float = DEFAULT_EPSILON,
    ):
        self._fingerprints: Optional[List[LocatedFingerprint]] = None
        self._distances: Optional[np.ndarray] = None
        self._listener = listener
        self._epsilon = DEFAULT_EPSILON
        self._locked = False
        self._estimated_position: Optional[np.ndarray] = None

        self.epsilon = epsilon
        if fingerprints is not None or distances is not None:
            self.set_fingerprints_and_distances(fingerprints, distances)

    @property
    def state(self) -> SolverState:
        if self._locked:
            return SolverState.LOCKED
        if self._fingerprints is None:
            return SolverState.UNREADY
        return SolverState.READY

    @property
    def is_ready(self) -> bool:
        return self._fingerprints is not None

    @property
    def is_locked(self) -> bool:
        return self._locked

    def _check_not_locked(self) -> None:
        if self._locked:
            raise LockedError("Solver is locked while solving")

    @property
    def fingerprints(self) -> Optional[List[LocatedFingerprint]]:
        return None if self._fingerprints is None else list(self._fingerprints)

    @property
    def distances(self) -> Optional[np.ndarray]:
        return None if self._distances is None else self._distances.copy()

    def set_fingerprints_and_distances(
        self,
        fingerprints: Sequence[LocatedFingerprint],
        distances: Sequence[float],
    ) -> None:
        """
        Set the neighbours to combine and their signal-space distances.

        Both are validated before either is stored, so on failure the solver
        keeps its previous inputs.

        Raises:
            LockedError: If called while solving.
            InvalidArgumentError: If either argument is None, lengths differ
                                  or are zero, positions mix dimensions, or a
                                  distance is negative or NaN.
        """
        self._check_not_locked()
        if fingerprints is None or distances is None:
            raise InvalidArgumentError("fingerprints and distances must not be None")

        fingerprints = list(fingerprints)
        d = np.array(distances, dtype=float).ravel()
        if len(fingerprints) == 0:
            raise InvalidArgumentError("At least one fingerprint is required")
        if len(fingerprints) != d.shape[0]:
            raise InvalidArgumentError(
                f"Got {len(fingerprints)} fingerprints but {d.shape[0]} distances"
            )
        for fp in fingerprints:
            if not isinstance(fp, LocatedFingerprint):
                raise InvalidArgumentError(
                    f"Expected LocatedFingerprint, got {type(fp).__name__}"
                )
        dims = {fp.dimensions for fp in fingerprints}
        if len(dims) != 1:
            raise InvalidArgumentError(
                f"Fingerprint positions mix dimensions {sorted(dims)}"
            )
        if np.any(np.isnan(d)) or np.any(d < 0.0):
            raise InvalidArgumentError(f"Distances must be non-negative, got {d}")

        self._fingerprints = fingerprints
        self._distances = d

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @epsilon.setter
    def epsilon(self, value: float) -> None:
        self._check_not_locked()
        if not value > 0.0:
            raise InvalidArgumentError(f"epsilon must be positive, got {value}")
        self._epsilon = float(value)

    @property
    def listener(self) -> Optional[WeightedKNearestNeighboursPositionSolverListener]:
        return self._listener

    @listener.setter
    def listener(
        self, value: Optional[WeightedKNearestNeighboursPositionSolverListener]
    ) -> None:
        self._check_not_locked()
        self._listener = value

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        """Position of the last successful solve, or None."""
        return None if self._estimated_position is None else self._estimated_position.copy()

    @property
    def number_of_dimensions(self) -> Optional[int]:
        if self._fingerprints is None:
            return None
        return self._fingerprints[0].dimensions

    def solve(self) -> np.ndarray:
        """
        Compute the weighted position estimate.

        Returns:
            Estimated position, shape (d,). Also stored in `estimated_position`.

        Raises:
            LockedError: If already solving.
            NotReadyError: If fingerprints and distances were not provided.
        """
        self._check_not_locked()
        if not self.is_ready:
            raise NotReadyError("Fingerprints and distances must be set before solving")

        self._locked = True
        try:
            if self._listener is not None:
                self._listener.on_solve_start(self)

            positions = np.array([fp.position for fp in self._fingerprints])
            if len(self._fingerprints) == 1:
                estimate = positions[0].copy()
            else:
                estimate = self._weighted_mean(positions, self._distances)
            self._estimated_position = estimate
            logger.debug(
                "WKNN solved with K=%d: %s", len(self._fingerprints), estimate
            )

            if self._listener is not None:
                self._listener.on_solve_end(self)
        finally:
            self._locked = False

        return self.estimated_position

    def _weighted_mean(self, positions: np.ndarray, distances: np.ndarray) -> np.ndarray:
        # inf distances (no shared source) give zero weight
        weights = 1.0 / (distances**2 + self._epsilon)
        weights_sum = np.sum(weights)
        if weights_sum == 0.0:
            warnings.warn(
                "All fingerprint weights are zero (no fingerprint shares a radio "
                "source with the query). Falling back to the unweighted centroid.",
                UserWarning,
                stacklevel=3,
            )
            return np.mean(positions, axis=0)
        return np.sum(weights[:, np.newaxis] * positions, axis=0) / weights_sum


def locate(
    database: Sequence[LocatedFingerprint],
    query: Fingerprint,
    k: int = 3,
    epsilon: float = DEFAULT_EPSILON,
    metric: DistanceMetric = sqr_distance,
) -> np.ndarray:
    """
    WKNN position of a query fingerprint against a radio map.

    Finds the k nearest located fingerprints with `metric` (a squared
    distance), converts squared distances to distances and combines the
    neighbour positions with `WeightedKNearestNeighboursPositionSolver`.

    Args:
        database: Located fingerprints (the radio map).
        query: Fingerprint measured at the unknown position.
        k: Number of neighbours.
        epsilon: Weight regularizer.
        metric: Squared distance between fingerprints.

    Returns:
        Estimated position, shape (d,).

    Raises:
        InvalidArgumentError: On invalid database, query, k or epsilon.

    Example:
        >>> x_hat = locate(radio_map, query, k=3)
    """
    nearest, sqr_distances = find_k_nearest(database, query, k, metric=metric)
    distances = [math.sqrt(d) for d in sqr_distances]
    solver = WeightedKNearestNeighboursPositionSolver(
        nearest, distances, epsilon=epsilon
    )
    return solver.solve()
