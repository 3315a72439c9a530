"""
Analytic uncertainty propagation through the log-distance path-loss model.

This module provides:
- Delta-method propagation and the NormalDistribution result type
- Distance mean and variance from transmitted/received power
- Taylor expansions (orders 1 to 3) of the RSSI around a fingerprint, with
  closed-form gradients
- RSSI and RSSI-difference variances at an estimated position
"""

from .propagation import (
    NormalDistribution,
    distance_distribution,
    distance_gradient,
    distance_variance_from_power,
    propagate_normal,
)
from .rssi import (
    rssi_difference,
    rssi_difference_gradient,
    rssi_difference_variance,
    rssi_difference_variance_2d,
    rssi_difference_variance_3d,
    rssi_variance_first_order_non_linear_2d,
    rssi_variance_first_order_non_linear_3d,
    rssi_variance_non_linear,
    rssi_variance_second_order_non_linear_2d,
    rssi_variance_second_order_non_linear_3d,
    rssi_variance_third_order_non_linear_2d,
    rssi_variance_third_order_non_linear_3d,
)
from .taylor import expected_rssi, expected_rssi_gradient, log_sqr_distance_derivatives

__all__ = [
    # Propagation
    "NormalDistribution",
    "propagate_normal",
    "distance_gradient",
    "distance_variance_from_power",
    "distance_distribution",
    # Taylor model
    "log_sqr_distance_derivatives",
    "expected_rssi",
    "expected_rssi_gradient",
    # RSSI variance
    "rssi_variance_non_linear",
    "rssi_variance_first_order_non_linear_2d",
    "rssi_variance_second_order_non_linear_2d",
    "rssi_variance_third_order_non_linear_2d",
    "rssi_variance_first_order_non_linear_3d",
    "rssi_variance_second_order_non_linear_3d",
    "rssi_variance_third_order_non_linear_3d",
    # RSSI difference
    "rssi_difference",
    "rssi_difference_gradient",
    "rssi_difference_variance",
    "rssi_difference_variance_2d",
    "rssi_difference_variance_3d",
]
