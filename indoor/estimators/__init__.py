"""
Nonlinear weighted least squares estimators.

This module provides:
- Levenberg-Marquardt solver with adaptive damping
"""

from .nonlinear_least_squares import (
    NonlinearLSResult,
    levenberg_marquardt,
)

__all__ = [
    "NonlinearLSResult",
    "levenberg_marquardt",
]
