"""Indoor positioning from RSSI fingerprints.

This package contains the reusable components of the positioning core:
- rf: Log-distance path-loss signal model and radio source descriptions
- uncertainty: Analytic variance propagation through the path-loss model
- fingerprinting: Fingerprint distances, K-nearest search and WKNN solving
- estimators: Nonlinear least squares (Levenberg-Marquardt)
- eval: Error metrics and K selection
"""

from indoor.config import PositioningConfig, get_preset, load_config, save_config
from indoor.errors import (
    FingerprintEstimationError,
    IndoorError,
    InvalidArgumentError,
    InvalidGeometryError,
    LockedError,
    NotReadyError,
)

__all__ = [
    # Configuration
    "PositioningConfig",
    "get_preset",
    "load_config",
    "save_config",
    # Errors
    "IndoorError",
    "InvalidArgumentError",
    "InvalidGeometryError",
    "NotReadyError",
    "LockedError",
    "FingerprintEstimationError",
]

__version__ = "0.1.0"
