"""
Utility functions shared by the positioning modules.

This module provides position/covariance validation and the geometric
degeneracy checks used by the uncertainty propagation engine.
"""

from .geometry import (
    EPSILON_RANGE,
    as_covariance,
    as_position,
    check_separation,
    squared_distance,
)

__all__ = [
    'EPSILON_RANGE',
    'as_position',
    'as_covariance',
    'squared_distance',
    'check_separation',
]
