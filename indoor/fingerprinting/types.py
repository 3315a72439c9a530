"""Type definitions for RSSI fingerprints.

A fingerprint is the set of RSSI readings observed at one place, keyed by the
radio source that produced each reading. Located fingerprints additionally
carry the surveyed position (and optionally its covariance) and form the
radio map searched by the K-nearest finder.

Example:
    >>> ap1 = RadioSource.wifi("ap-1")
    >>> ap2 = RadioSource.wifi("ap-2")
    >>> fp = LocatedFingerprint(
    ...     [RssiReading(ap1, -50.0), RssiReading(ap2, -70.0)],
    ...     position=[0.0, 0.0],
    ... )
    >>> len(fp), fp.dimensions
    (2, 2)
    >>> fp.mean_rssi
    -60.0
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple

import numpy as np

from indoor.errors import InvalidArgumentError
from indoor.rf.sources import RadioSource
from indoor.utils.geometry import as_covariance, as_position


@dataclass(frozen=True)
class RssiReading:
    """
    Single RSSI measurement of a radio source.

    Attributes:
        source: Radio source that was measured.
        rssi: Received signal strength in dBm.
        rssi_std: Standard deviation of the RSSI in dB, or None if unknown.
                  Must be positive when given.
    """

    source: RadioSource
    rssi: float
    rssi_std: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.source, RadioSource):
            raise InvalidArgumentError(
                f"source must be a RadioSource, got {type(self.source).__name__}"
            )
        if not np.isfinite(self.rssi):
            raise InvalidArgumentError(f"rssi must be finite, got {self.rssi}")
        if self.rssi_std is not None and not self.rssi_std > 0.0:
            raise InvalidArgumentError(
                f"rssi_std must be positive, got {self.rssi_std}"
            )

    @property
    def rssi_variance(self) -> Optional[float]:
        return None if self.rssi_std is None else self.rssi_std**2


class Fingerprint:
    """
    RSSI readings observed at one place, keyed by radio source identity.

    Readings keep their insertion order for iteration, but two fingerprints
    are equal whenever they hold the same readings regardless of order.

    Args:
        readings: Iterable of RssiReading. Each radio source may appear once.

    Raises:
        InvalidArgumentError: If readings is None, contains something other
                              than RssiReading, or repeats a radio source.
    """

    def __init__(self, readings: Iterable[RssiReading]):
        if readings is None:
            raise InvalidArgumentError("readings must not be None")
        by_source: Dict[RadioSource, RssiReading] = {}
        for reading in readings:
            if not isinstance(reading, RssiReading):
                raise InvalidArgumentError(
                    f"Expected RssiReading, got {type(reading).__name__}"
                )
            if reading.source in by_source:
                raise InvalidArgumentError(
                    f"Duplicate reading for radio source {reading.source.identifier!r}"
                )
            by_source[reading.source] = reading
        self._readings = by_source

    @property
    def readings(self) -> Tuple[RssiReading, ...]:
        return tuple(self._readings.values())

    @property
    def sources(self) -> Tuple[RadioSource, ...]:
        return tuple(self._readings)

    def reading_for(self, source: RadioSource) -> Optional[RssiReading]:
        """Reading of the given radio source, or None if it was not observed."""
        return self._readings.get(source)

    @property
    def mean_rssi(self) -> float:
        """Mean RSSI over all readings (NaN for an empty fingerprint)."""
        if not self._readings:
            return float("nan")
        return float(np.mean([r.rssi for r in self._readings.values()]))

    def __len__(self) -> int:
        return len(self._readings)

    def __iter__(self) -> Iterator[RssiReading]:
        return iter(self._readings.values())

    def __contains__(self, source) -> bool:
        return source in self._readings

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._readings == other._readings

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_readings={len(self)})"


class LocatedFingerprint(Fingerprint):
    """
    Fingerprint surveyed at a known position.

    Args:
        readings: Iterable of RssiReading.
        position: Surveyed position, shape (2,) or (3,).
        position_covariance: Optional (d, d) symmetric positive semi-definite
                             covariance of the position.

    Raises:
        InvalidArgumentError: On invalid readings, position or covariance.
    """

    def __init__(
        self,
        readings: Iterable[RssiReading],
        position,
        position_covariance=None,
    ):
        super().__init__(readings)
        self._position = as_position(position, "position")
        self._position.flags.writeable = False
        self._position_covariance = as_covariance(
            position_covariance, self._position.shape[0], "position_covariance"
        )
        if self._position_covariance is not None:
            self._position_covariance.flags.writeable = False

    @property
    def position(self) -> np.ndarray:
        return self._position

    @property
    def position_covariance(self) -> Optional[np.ndarray]:
        return self._position_covariance

    @property
    def dimensions(self) -> int:
        return int(self._position.shape[0])

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        if not np.array_equal(self._position, other._position):
            return False
        if (self._position_covariance is None) != (other._position_covariance is None):
            return False
        if self._position_covariance is not None and not np.array_equal(
            self._position_covariance, other._position_covariance
        ):
            return False
        return self._readings == other._readings

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"LocatedFingerprint(n_readings={len(self)}, "
            f"position={self._position.tolist()})"
        )
