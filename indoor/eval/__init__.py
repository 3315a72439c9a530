"""
Evaluation utilities for positioning accuracy.

This module provides:
- Position error vectors, RMSE and error statistics
- Held-out selection of the WKNN neighbour count K
"""

from .metrics import (
    KSweepResult,
    compute_error_stats,
    compute_position_errors,
    compute_rmse,
    sweep_k,
)

__all__ = [
    "compute_position_errors",
    "compute_rmse",
    "compute_error_stats",
    "KSweepResult",
    "sweep_k",
]
