"""
Nonlinear weighted least squares using Levenberg-Marquardt.

Mathematical Formulation:
    Given observations y with standard deviations σ and a model h(x), we seek:
        x̂ = argmin ½‖r(x)‖²_W,   r(x) = y - h(x),   W = diag(1/σ²)

    Levenberg-Marquardt update:
        (J'WJ + μI) Δx = J'W r
    with x ← x + Δx, where μ is an adaptive damping parameter driven by the
    gain ratio between the actual and the predicted cost decrease.

With W built from the measurement variances, (J'WJ)^-1 at the solution is
the covariance of the estimate and χ² = r'Wr its goodness of fit.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from indoor.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


@dataclass
class NonlinearLSResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Covariance matrix (J'WJ)^-1 at the solution, or None.
        iterations: Number of iterations performed.
        residuals: Final residuals r = y - h(x̂).
        chi_sq: Final weighted sum of squared residuals r'Wr.
        converged: Whether the step norm fell below the tolerance.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    chi_sq: float
    converged: bool

    @property
    def cost(self) -> float:
        """Cost ½ r'Wr."""
        return 0.5 * self.chi_sq


def levenberg_marquardt(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 50,
    tol: float = 1e-8,
    mu0: float = 1e-3,
    return_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Levenberg-Marquardt solver for nonlinear least squares.

    LM blends Gauss-Newton (fast near the solution) with gradient descent
    (robust far from it) by adapting the damping μ after every step:
        - accepted step: μ shrinks, behaviour becomes Gauss-Newton like
        - rejected step: μ grows, steps become short gradient steps

    Args:
        h: Model function h: R^n → R^m.
        jacobian: Function returning J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial parameter estimate (n,).
        weights: Optional measurement weights (m,), typically 1/σ².
        max_iter: Maximum number of iterations.
        tol: Convergence tolerance on ‖Δx‖.
        mu0: Initial damping parameter.
        return_covariance: If True, compute (J'WJ)^-1 at the estimate.

    Returns:
        NonlinearLSResult containing estimate, covariance, and diagnostics.

    Raises:
        InvalidArgumentError: On inconsistent shapes or negative weights.
        numpy.linalg.LinAlgError: If the problem is singular at the solution
                                  or the iteration diverges to non-finite values.

    Example:
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]])
        >>> def h(x):
        ...     return np.linalg.norm(anchors - x, axis=1)
        >>> def jac(x):
        ...     diff = x - anchors
        ...     return diff / np.linalg.norm(diff, axis=1, keepdims=True)
        >>> y = h(np.array([3.0, 4.0]))
        >>> result = levenberg_marquardt(h, jac, y, x0=np.array([6.0, 6.0]))
        >>> np.round(result.x, 6)
        array([3., 4.])
    """
    y = np.asarray(y, dtype=float)
    x = np.array(x0, dtype=float)

    if y.ndim != 1:
        raise InvalidArgumentError(f"y must be 1D array, got shape {y.shape}")
    if x.ndim != 1:
        raise InvalidArgumentError(f"x0 must be 1D array, got shape {x.shape}")

    m = len(y)
    n = len(x)

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=float)
        if w.ndim != 1 or len(w) != m:
            raise InvalidArgumentError(f"weights must be 1D array of length {m}")
        if np.any(w < 0):
            raise InvalidArgumentError("weights must be non-negative")

    def evaluate(x_):
        hx = np.asarray(h(x_), dtype=float)
        if hx.shape != (m,):
            raise InvalidArgumentError(f"h(x) returned shape {hx.shape}, expected ({m},)")
        return y - hx

    def normal_equations(x_, r_):
        J = np.asarray(jacobian(x_), dtype=float)
        if J.shape != (m, n):
            raise InvalidArgumentError(f"Jacobian shape {J.shape}, expected ({m}, {n})")
        JtW = J.T * w
        return JtW @ J, JtW @ r_

    mu = mu0
    nu = 2.0
    converged = False
    iteration = 0

    r = evaluate(x)
    chi_sq = float(r @ (w * r))

    for iteration in range(max_iter):
        JtWJ, JtWr = normal_equations(x, r)

        while True:
            damped = JtWJ + mu * np.eye(n)
            try:
                delta_x = np.linalg.solve(damped, JtWr)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(damped, JtWr, rcond=None)[0]

            x_new = x + delta_x
            r_new = evaluate(x_new)
            chi_sq_new = float(r_new @ (w * r_new))

            # Predicted decrease of ½χ²: ½ Δx'(μΔx + J'Wr)
            predicted_decrease = 0.5 * delta_x @ (mu * delta_x + JtWr)
            actual_decrease = 0.5 * (chi_sq - chi_sq_new)
            gain_ratio = (
                actual_decrease / predicted_decrease
                if predicted_decrease > 1e-15
                else 0.0
            )

            if gain_ratio > 0:
                x, r, chi_sq = x_new, r_new, chi_sq_new
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                break

            mu = mu * nu
            nu = 2.0 * nu
            if mu > 1e10:
                # No descent direction left: already at a minimum
                delta_x = np.zeros(n)
                break

        if not np.all(np.isfinite(x)):
            raise np.linalg.LinAlgError("Nonlinear least squares diverged")

        step_norm = float(np.linalg.norm(delta_x))
        logger.debug(
            "LM iteration %d: chi_sq=%.6g mu=%.3g step=%.3g", iteration + 1, chi_sq, mu, step_norm
        )
        if step_norm < tol:
            converged = True
            break

    P = None
    if return_covariance:
        JtWJ, _ = normal_equations(x, r)
        if np.linalg.matrix_rank(JtWJ) < n:
            raise np.linalg.LinAlgError(
                "Normal matrix is singular at the solution; parameters are not observable"
            )
        P = np.linalg.inv(JtWJ)

    return NonlinearLSResult(
        x=x,
        covariance=P,
        iterations=iteration + 1,
        residuals=r,
        chi_sq=chi_sq,
        converged=converged,
    )
