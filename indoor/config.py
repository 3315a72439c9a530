"""Configuration of the positioning pipeline.

Groups the tunable parameters of the WKNN solver and of the Taylor-model
estimator into a single validated, immutable object. Named presets cover the
typical deployments, and configurations can be stored as JSON next to a
fingerprint database.

Example:
    >>> config = get_preset("cross_device")
    >>> config.use_no_mean_distance
    True
    >>> save_config(config, "positioning.json")
    >>> load_config("positioning.json") == config
    True
"""

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

from indoor.errors import InvalidArgumentError
from indoor.fingerprinting.wknn import DEFAULT_EPSILON
from indoor.rf.signal_model import DEFAULT_FREQUENCY, DEFAULT_PATH_LOSS_EXPONENT

SUPPORTED_TAYLOR_ORDERS = (1, 2, 3)


@dataclass(frozen=True)
class PositioningConfig:
    """Parameters of the fingerprint positioning pipeline.

    Attributes:
        k: Number of nearest fingerprints combined by the WKNN solver.
        epsilon: Regularizer added to squared signal distances before
                 inverting them into weights (must be > 0).
        use_no_mean_distance: If True, fingerprints are matched with the
                              mean-removed distance, which cancels a constant
                              calibration offset between devices.
        taylor_order: Order (1, 2 or 3) of the path-loss Taylor expansion
                      used by the nonlinear estimator.
        frequency: Default radio frequency in Hz for sources lacking one.
        path_loss_exponent: Default path-loss exponent.
        fallback_rssi_std: RSSI standard deviation (dB) assumed for readings
                           without one.
        max_iterations: Iteration cap of the nonlinear fit.
        tolerance: Convergence tolerance on the nonlinear fit step norm.
    """

    k: int = 3
    epsilon: float = DEFAULT_EPSILON
    use_no_mean_distance: bool = False
    taylor_order: int = 3
    frequency: float = DEFAULT_FREQUENCY
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT
    fallback_rssi_std: float = 1.0
    max_iterations: int = 50
    tolerance: float = 1e-8

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if isinstance(self.k, bool) or not isinstance(self.k, int) or self.k < 1:
            raise InvalidArgumentError(f"k must be a positive integer, got {self.k!r}")
        if self.epsilon <= 0.0:
            raise InvalidArgumentError(f"epsilon must be positive, got {self.epsilon}")
        if self.taylor_order not in SUPPORTED_TAYLOR_ORDERS:
            raise InvalidArgumentError(
                f"taylor_order must be one of {SUPPORTED_TAYLOR_ORDERS}, "
                f"got {self.taylor_order}"
            )
        if self.frequency <= 0.0:
            raise InvalidArgumentError(f"frequency must be positive, got {self.frequency}")
        if self.path_loss_exponent <= 0.0:
            raise InvalidArgumentError(
                f"path_loss_exponent must be positive, got {self.path_loss_exponent}"
            )
        if self.fallback_rssi_std <= 0.0:
            raise InvalidArgumentError(
                f"fallback_rssi_std must be positive, got {self.fallback_rssi_std}"
            )
        if self.max_iterations < 1:
            raise InvalidArgumentError(
                f"max_iterations must be >= 1, got {self.max_iterations}"
            )
        if self.tolerance <= 0.0:
            raise InvalidArgumentError(f"tolerance must be positive, got {self.tolerance}")

    def with_overrides(self, **overrides: Any) -> "PositioningConfig":
        """Return a copy with some parameters replaced (validated again)."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


PRESETS: Dict[str, Dict[str, Any]] = {
    "baseline": {
        "description": "Single device, dense survey grid",
    },
    "cross_device": {
        "description": "Query device differs from the survey device (RSSI offset)",
        "k": 4,
        "use_no_mean_distance": True,
    },
    "sparse_grid": {
        "description": "Survey points several meters apart, strong smoothing",
        "k": 5,
        "taylor_order": 3,
        "fallback_rssi_std": 2.0,
    },
    "fast": {
        "description": "Linearized model, few iterations",
        "k": 3,
        "taylor_order": 1,
        "max_iterations": 20,
        "tolerance": 1e-6,
    },
}


def config_from_dict(values: Dict[str, Any]) -> PositioningConfig:
    """Build a configuration from a plain dictionary.

    Unknown keys other than ``description`` are rejected so that typos in a
    configuration file do not silently fall back to defaults.

    Raises:
        InvalidArgumentError: On unknown keys or invalid values.
    """
    known = {f.name for f in fields(PositioningConfig)}
    params = {key: value for key, value in values.items() if key != "description"}
    unknown = sorted(set(params) - known)
    if unknown:
        raise InvalidArgumentError(f"Unknown configuration keys: {unknown}")
    return PositioningConfig(**params)


def get_preset(name: str) -> PositioningConfig:
    """Return the configuration of a named preset.

    Raises:
        InvalidArgumentError: If the preset does not exist.
    """
    if name not in PRESETS:
        raise InvalidArgumentError(
            f"Unknown preset '{name}'. Available presets: {sorted(PRESETS)}"
        )
    return config_from_dict(PRESETS[name])


def load_config(path: Union[str, Path]) -> PositioningConfig:
    """Load a configuration stored as JSON."""
    with open(Path(path), "r") as f:
        values = json.load(f)
    if not isinstance(values, dict):
        raise InvalidArgumentError(
            f"Configuration file {path} must contain a JSON object"
        )
    return config_from_dict(values)


def save_config(config: PositioningConfig, path: Union[str, Path]) -> None:
    """Store a configuration as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
