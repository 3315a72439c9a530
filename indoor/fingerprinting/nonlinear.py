"""Taylor-model fingerprint position estimator.

Refines a fingerprint position estimate by fitting the log-distance model.
Each located fingerprint f near the query predicts the RSSI of every located
radio source s it observed at an arbitrary position x, through the Taylor
expansion of the model around the fingerprint position p_f:

    RSSI_s(x) ≈ T_order(P_f(s), n_s, p_f, a_s, x)

The estimator finds the K nearest located fingerprints, forms one residual

    r = RSSI_query(s) - T_order(P_f(s), n_s, p_f, a_s, x)

per (nearest fingerprint, radio source) pair observed by both the fingerprint
and the query, and solves for x with Levenberg-Marquardt. Residuals are
weighted by the inverse of the RSSI variance obtained by propagating the
uncertainty of the fingerprint RSSI, the path-loss exponent and the positions
through the same expansion, plus the variance of the query reading.

Starting with K = min_nearest_fingerprints, K grows until a well-posed fit is
found or max_nearest_fingerprints is reached.
"""

import logging
import math
import warnings
from typing import List, Optional, Sequence

import numpy as np

from indoor.errors import (
    FingerprintEstimationError,
    InvalidArgumentError,
    LockedError,
    NotReadyError,
)
from indoor.estimators.nonlinear_least_squares import levenberg_marquardt
from indoor.rf.sources import RadioSource
from indoor.uncertainty.rssi import rssi_variance_non_linear
from indoor.uncertainty.taylor import MAX_TAYLOR_ORDER, expected_rssi, expected_rssi_gradient
from indoor.utils.geometry import EPSILON_RANGE, as_position, squared_distance

from .knn import KNearestFinder, NoMeanKNearestFinder
from .types import Fingerprint, LocatedFingerprint
from .wknn import DEFAULT_EPSILON, SolverState, WeightedKNearestNeighboursPositionSolver

logger = logging.getLogger(__name__)

FALLBACK_RSSI_STD = 1.0
TINY_RSSI_STD = 1e-12
DEFAULT_ORDER = 3


class NonLinearFingerprintPositionEstimatorListener:
    """Receives estimator lifecycle events. Override the hooks you need."""

    def on_estimate_start(self, estimator: "NonLinearFingerprintPositionEstimator") -> None:
        pass

    def on_estimate_end(self, estimator: "NonLinearFingerprintPositionEstimator") -> None:
        pass


class _Setting:
    """Estimator attribute that cannot change while an estimate is running."""

    def __init__(self, validate=None):
        self.validate = validate

    def __set_name__(self, owner, name):
        self.public_name = name
        self.private_name = "_" + name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return getattr(obj, self.private_name)

    def __set__(self, obj, value):
        if getattr(obj, "_locked", False):
            raise LockedError(f"Cannot set {self.public_name} while estimating")
        if self.validate is not None:
            value = self.validate(value, self.public_name)
        setattr(obj, self.private_name, value)


def _validate_order(value, name):
    if value not in range(1, MAX_TAYLOR_ORDER + 1):
        raise InvalidArgumentError(f"{name} must be 1, 2 or 3, got {value}")
    return int(value)


def _validate_fallback_std(value, name):
    if not value >= TINY_RSSI_STD:
        raise InvalidArgumentError(f"{name} must be >= {TINY_RSSI_STD}, got {value}")
    return float(value)


def _validate_min_nearest(value, name):
    if value < 1:
        raise InvalidArgumentError(f"{name} must be >= 1, got {value}")
    return int(value)


def _validate_max_nearest(value, name):
    if value is not None and value < 1:
        raise InvalidArgumentError(f"{name} must be >= 1 or None, got {value}")
    return value


def _validate_optional_position(value, name):
    return None if value is None else as_position(value, name)


def _validate_positive(value, name):
    if not value > 0:
        raise InvalidArgumentError(f"{name} must be positive, got {value}")
    return value


def _as_list(value, name):
    return None if value is None else list(value)


class NonLinearFingerprintPositionEstimator:
    """
    Position estimator fitting a Taylor expansion of the path-loss model.

    Args:
        located_fingerprints: Radio map of located fingerprints.
        fingerprint: Fingerprint measured at the unknown position.
        sources: Located radio sources. Readings of other sources are ignored.
        initial_position: Starting point of the fit. If None, the WKNN
                          estimate of the K nearest fingerprints is used.
        order: Taylor expansion order (1, 2 or 3).
        listener: Optional NonLinearFingerprintPositionEstimatorListener.
        min_nearest_fingerprints: First K tried (>= 1).
        max_nearest_fingerprints: Last K tried, or None for the whole map.
        use_no_mean_nearest_fingerprint_finder: Select neighbours with the
            mean-removed distance.
        remove_means_from_fingerprint_readings: Subtract each fingerprint's
            mean RSSI from its readings before fitting, cancelling a constant
            device offset.
        fallback_rssi_std: Standard deviation (dB) used when no uncertainty is
            known for a residual (>= 1e-12).
        epsilon: Weight regularizer of the WKNN initial position.
        max_iterations: Iteration cap of the Levenberg-Marquardt fit.
        tolerance: Step-norm tolerance of the Levenberg-Marquardt fit.

    The four ``propagate_*`` attributes (all True by default) select which
    input uncertainties are propagated into the residual weights.

    Example:
        >>> estimator = NonLinearFingerprintPositionEstimator(
        ...     radio_map, query, sources, order=2)
        >>> estimator.estimate()
        >>> estimator.estimated_position, estimator.chi_sq
    """

    located_fingerprints = _Setting(_as_list)
    fingerprint = _Setting()
    sources = _Setting(_as_list)
    initial_position = _Setting(_validate_optional_position)
    order = _Setting(_validate_order)
    listener = _Setting()
    min_nearest_fingerprints = _Setting(_validate_min_nearest)
    max_nearest_fingerprints = _Setting(_validate_max_nearest)
    use_no_mean_nearest_fingerprint_finder = _Setting()
    remove_means_from_fingerprint_readings = _Setting()
    fallback_rssi_std = _Setting(_validate_fallback_std)
    propagate_fingerprint_rssi_std = _Setting()
    propagate_path_loss_exponent_std = _Setting()
    propagate_fingerprint_position_covariance = _Setting()
    propagate_radio_source_position_covariance = _Setting()
    epsilon = _Setting(_validate_positive)
    max_iterations = _Setting(_validate_positive)
    tolerance = _Setting(_validate_positive)

    def __init__(
        self,
        located_fingerprints: Optional[Sequence[LocatedFingerprint]] = None,
        fingerprint: Optional[Fingerprint] = None,
        sources: Optional[Sequence[RadioSource]] = None,
        initial_position=None,
        order: int = DEFAULT_ORDER,
        listener: Optional[NonLinearFingerprintPositionEstimatorListener] = None,
        min_nearest_fingerprints: int = 1,
        max_nearest_fingerprints: Optional[int] = None,
        use_no_mean_nearest_fingerprint_finder: bool = False,
        remove_means_from_fingerprint_readings: bool = False,
        fallback_rssi_std: float = FALLBACK_RSSI_STD,
        epsilon: float = DEFAULT_EPSILON,
        max_iterations: int = 50,
        tolerance: float = 1e-8,
    ):
        self._locked = False
        self.located_fingerprints = located_fingerprints
        self.fingerprint = fingerprint
        self.sources = sources
        self.initial_position = initial_position
        self.order = order
        self.listener = listener
        self.min_nearest_fingerprints = min_nearest_fingerprints
        self.max_nearest_fingerprints = max_nearest_fingerprints
        self.use_no_mean_nearest_fingerprint_finder = use_no_mean_nearest_fingerprint_finder
        self.remove_means_from_fingerprint_readings = remove_means_from_fingerprint_readings
        self.fallback_rssi_std = fallback_rssi_std
        self.propagate_fingerprint_rssi_std = True
        self.propagate_path_loss_exponent_std = True
        self.propagate_fingerprint_position_covariance = True
        self.propagate_radio_source_position_covariance = True
        self.epsilon = epsilon
        self.max_iterations = max_iterations
        self.tolerance = tolerance

        self._estimated_position: Optional[np.ndarray] = None
        self._covariance: Optional[np.ndarray] = None
        self._chi_sq: Optional[float] = None
        self._nearest_fingerprints: Optional[List[LocatedFingerprint]] = None

    @classmethod
    def from_config(
        cls,
        config,
        located_fingerprints: Optional[Sequence[LocatedFingerprint]] = None,
        fingerprint: Optional[Fingerprint] = None,
        sources: Optional[Sequence[RadioSource]] = None,
        **kwargs,
    ) -> "NonLinearFingerprintPositionEstimator":
        """Create an estimator from an indoor.config.PositioningConfig."""
        params = dict(
            order=config.taylor_order,
            min_nearest_fingerprints=config.k,
            use_no_mean_nearest_fingerprint_finder=config.use_no_mean_distance,
            remove_means_from_fingerprint_readings=config.use_no_mean_distance,
            fallback_rssi_std=config.fallback_rssi_std,
            epsilon=config.epsilon,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
        )
        params.update(kwargs)
        return cls(located_fingerprints, fingerprint, sources, **params)

    @property
    def state(self) -> SolverState:
        if self._locked:
            return SolverState.LOCKED
        return SolverState.READY if self.is_ready else SolverState.UNREADY

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def is_ready(self) -> bool:
        """True when the radio map, the query and located sources are set."""
        if not self._located_fingerprints or not self._sources:
            return False
        if self._fingerprint is None or len(self._fingerprint) == 0:
            return False
        located = [s for s in self._sources if s.is_located]
        if not located:
            return False
        dims = {fp.dimensions for fp in self._located_fingerprints}
        dims.update(s.dimensions for s in located)
        return len(dims) == 1

    @property
    def number_of_dimensions(self) -> Optional[int]:
        if not self._located_fingerprints:
            return None
        return self._located_fingerprints[0].dimensions

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        return None if self._estimated_position is None else self._estimated_position.copy()

    @property
    def covariance(self) -> Optional[np.ndarray]:
        """Covariance of the estimated position from the fit."""
        return None if self._covariance is None else self._covariance.copy()

    @property
    def chi_sq(self) -> Optional[float]:
        return self._chi_sq

    @property
    def nearest_fingerprints(self) -> Optional[List[LocatedFingerprint]]:
        """Located fingerprints used by the last successful estimate."""
        return None if self._nearest_fingerprints is None else list(self._nearest_fingerprints)

    def estimate(self) -> np.ndarray:
        """
        Estimate the position of the query fingerprint.

        Returns:
            Estimated position, shape (d,).

        Raises:
            LockedError: If already estimating.
            NotReadyError: If inputs are missing or mix dimensions.
            FingerprintEstimationError: If no K yields a well-posed fit.
        """
        if self._locked:
            raise LockedError("Estimator is locked while estimating")
        if not self.is_ready:
            raise NotReadyError(
                "Located fingerprints, a non-empty fingerprint and located "
                "sources of one dimension are required"
            )

        self._locked = True
        try:
            if self._listener is not None:
                self._listener.on_estimate_start(self)

            self._estimated_position = None
            self._covariance = None
            self._chi_sq = None
            self._nearest_fingerprints = None

            finder_class = (
                NoMeanKNearestFinder
                if self._use_no_mean_nearest_fingerprint_finder
                else KNearestFinder
            )
            finder = finder_class(self._located_fingerprints)
            total = len(self._located_fingerprints)
            max_k = total if self._max_nearest_fingerprints is None else min(
                self._max_nearest_fingerprints, total
            )

            for k in range(self._min_nearest_fingerprints, max_k + 1):
                nearest, sqr_distances = finder.find_k_nearest_to(self._fingerprint, k)
                if self._fit(nearest, sqr_distances):
                    self._nearest_fingerprints = nearest
                    logger.debug(
                        "Taylor order %d fit succeeded with K=%d: %s",
                        self._order, k, self._estimated_position,
                    )
                    break
                logger.debug("No well-posed fit with K=%d, trying more neighbours", k)

            if self._estimated_position is None:
                raise FingerprintEstimationError(
                    f"No position could be estimated with K in "
                    f"[{self._min_nearest_fingerprints}, {max_k}]"
                )

            if self._listener is not None:
                self._listener.on_estimate_end(self)
        finally:
            self._locked = False

        return self.estimated_position

    def _initial_position_for(self, nearest, sqr_distances) -> np.ndarray:
        if self._initial_position is not None:
            return self._initial_position.copy()
        solver = WeightedKNearestNeighboursPositionSolver(
            nearest, [math.sqrt(d) for d in sqr_distances], epsilon=self._epsilon
        )
        return solver.solve()

    def _residual_std(self, fp, source, located_reading, reading, x0) -> float:
        std = None
        if (
            self._propagate_fingerprint_rssi_std
            or self._propagate_path_loss_exponent_std
            or self._propagate_fingerprint_position_covariance
            or self._propagate_radio_source_position_covariance
        ):
            propagated = rssi_variance_non_linear(
                self._order,
                located_reading.rssi,
                source.path_loss_exponent,
                fp.position,
                source.position,
                x0,
                path_loss_exponent_variance=(
                    source.path_loss_exponent_variance
                    if self._propagate_path_loss_exponent_std
                    else None
                ),
                rssi_variance=(
                    located_reading.rssi_variance
                    if self._propagate_fingerprint_rssi_std
                    else None
                ),
                fingerprint_position_covariance=(
                    fp.position_covariance
                    if self._propagate_fingerprint_position_covariance
                    else None
                ),
                radio_source_position_covariance=(
                    source.position_covariance
                    if self._propagate_radio_source_position_covariance
                    else None
                ),
            )
            std = propagated.standard_deviation

        # propagated and query uncertainties are independent
        if reading.rssi_std is not None:
            std = reading.rssi_std if std is None else math.hypot(std, reading.rssi_std)

        if std is None or std < TINY_RSSI_STD:
            std = self._fallback_rssi_std
        return std

    def _build_rows(self, nearest, x0):
        """One row (P_f, n, p_f, a, measured RSSI, std) per shared located source."""
        located = {s: s for s in self._sources if s.is_located}
        query = self._fingerprint
        query_mean = query.mean_rssi if self._remove_means_from_fingerprint_readings else 0.0

        rows = []
        for fp in nearest:
            fp_mean = fp.mean_rssi if self._remove_means_from_fingerprint_readings else 0.0
            for located_reading in fp:
                source = located.get(located_reading.source)
                reading = query.reading_for(located_reading.source)
                if source is None or reading is None:
                    continue
                if squared_distance(fp.position, source.position) < EPSILON_RANGE**2:
                    logger.debug(
                        "Skipping source %s located on a fingerprint", source.identifier
                    )
                    continue
                std = self._residual_std(fp, source, located_reading, reading, x0)
                rows.append(
                    (
                        located_reading.rssi - fp_mean,
                        source.path_loss_exponent,
                        fp.position,
                        source.position,
                        reading.rssi - query_mean,
                        std,
                    )
                )
        return rows

    def _fit(self, nearest, sqr_distances) -> bool:
        dims = self.number_of_dimensions
        x0 = self._initial_position_for(nearest, sqr_distances)
        rows = self._build_rows(nearest, x0)
        if len(rows) < dims:
            return False

        order = self._order
        y = np.array([row[4] for row in rows])
        weights = np.array([1.0 / row[5] ** 2 for row in rows])

        def h(x):
            return np.array(
                [expected_rssi(order, p, n, pf, a, x) for p, n, pf, a, _, _ in rows]
            )

        def jacobian(x):
            return np.array(
                [
                    expected_rssi_gradient(order, p, n, pf, a, x)[-dims:]
                    for p, n, pf, a, _, _ in rows
                ]
            )

        try:
            result = levenberg_marquardt(
                h,
                jacobian,
                y,
                x0,
                weights=weights,
                max_iter=int(self._max_iterations),
                tol=self._tolerance,
            )
        except np.linalg.LinAlgError as e:
            logger.debug("Levenberg-Marquardt fit failed: %s", e)
            return False

        if not result.converged:
            warnings.warn(
                f"Levenberg-Marquardt did not converge within {int(self._max_iterations)} "
                f"iterations with K={len(nearest)}; the estimate may be inaccurate.",
                UserWarning,
                stacklevel=4,
            )
        self._estimated_position = result.x
        self._covariance = result.covariance
        self._chi_sq = result.chi_sq
        return True
