"""Radio source descriptions (WiFi access points and Bluetooth beacons).

A single immutable value type covers every combination of optional knowledge
about a source: its transmitted power and path-loss exponent (with their
standard deviations) and its position (with covariance). Identity, and hence
equality and hashing, depends only on the source type and identifier, so a
source can be used as a fingerprint key regardless of how much is known about
it.

Example:
    >>> ap = RadioSource.wifi("00:11:22:33:44:55", ssid="office")
    >>> located = ap.located_at([1.0, 2.0], covariance=0.25 * np.eye(2))
    >>> ap == located
    True
    >>> located.is_located, located.dimensions
    (True, 2)
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from indoor.errors import InvalidArgumentError
from indoor.rf.signal_model import DEFAULT_FREQUENCY, DEFAULT_PATH_LOSS_EXPONENT
from indoor.utils.geometry import as_covariance, as_position


class RadioSourceType(Enum):
    """Kind of radio source."""

    WIFI_ACCESS_POINT = "wifi_access_point"
    BEACON = "beacon"


def _check_std(value: Optional[float], name: str) -> None:
    if value is not None and not value >= 0.0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class RadioSource:
    """
    Radio source with optional power, path-loss and location knowledge.

    Attributes:
        identifier: BSSID for access points, joined identifiers for beacons.
        source_type: Kind of source. Part of the identity.
        frequency: Carrier frequency in Hz (must be > 0).
        name: SSID or bluetooth name.
        bluetooth_address: Beacon bluetooth MAC address.
        manufacturer: Beacon manufacturer code.
        service_uuid: Beacon service UUID code.
        transmitted_power: Equivalent transmitted power in dBm, if known.
        transmitted_power_std: Standard deviation of transmitted_power (dB).
        path_loss_exponent: Path-loss exponent (must be > 0).
        path_loss_exponent_std: Standard deviation of path_loss_exponent.
        position: Source position, shape (2,) or (3,), if known.
        position_covariance: Position covariance (d, d), only with a position.

    Notes:
        Standard deviations must be non-negative; a covariance without a
        position, or of mismatching dimension, is rejected. Every rule applies
        whichever optional fields are populated.
    """

    identifier: str
    source_type: RadioSourceType = RadioSourceType.WIFI_ACCESS_POINT
    frequency: float = field(default=DEFAULT_FREQUENCY, compare=False)
    name: Optional[str] = field(default=None, compare=False)
    bluetooth_address: Optional[str] = field(default=None, compare=False)
    manufacturer: Optional[int] = field(default=None, compare=False)
    service_uuid: Optional[int] = field(default=None, compare=False)
    transmitted_power: Optional[float] = field(default=None, compare=False)
    transmitted_power_std: Optional[float] = field(default=None, compare=False)
    path_loss_exponent: float = field(default=DEFAULT_PATH_LOSS_EXPONENT, compare=False)
    path_loss_exponent_std: Optional[float] = field(default=None, compare=False)
    position: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    position_covariance: Optional[np.ndarray] = field(
        default=None, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        """Validate fields and freeze array attributes."""
        if not isinstance(self.identifier, str) or not self.identifier:
            raise InvalidArgumentError(
                f"identifier must be a non-empty string, got {self.identifier!r}"
            )
        if not isinstance(self.source_type, RadioSourceType):
            raise InvalidArgumentError(
                f"source_type must be a RadioSourceType, got {self.source_type!r}"
            )
        if not self.frequency > 0.0:
            raise InvalidArgumentError(f"frequency must be positive, got {self.frequency}")
        if not self.path_loss_exponent > 0.0:
            raise InvalidArgumentError(
                f"path_loss_exponent must be positive, got {self.path_loss_exponent}"
            )
        _check_std(self.transmitted_power_std, "transmitted_power_std")
        _check_std(self.path_loss_exponent_std, "path_loss_exponent_std")

        if self.position is None:
            if self.position_covariance is not None:
                raise InvalidArgumentError(
                    "position_covariance requires a position"
                )
            return

        position = as_position(self.position, "position")
        covariance = as_covariance(
            self.position_covariance, position.shape[0], "position_covariance"
        )
        position.flags.writeable = False
        if covariance is not None:
            covariance.flags.writeable = False
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "position_covariance", covariance)

    @classmethod
    def wifi(
        cls,
        bssid: str,
        frequency: float = DEFAULT_FREQUENCY,
        ssid: Optional[str] = None,
        **kwargs,
    ) -> "RadioSource":
        """Create a WiFi access point identified by its BSSID."""
        return cls(
            identifier=bssid,
            source_type=RadioSourceType.WIFI_ACCESS_POINT,
            frequency=frequency,
            name=ssid,
            **kwargs,
        )

    @classmethod
    def beacon(
        cls,
        identifiers: Sequence[str],
        frequency: float = DEFAULT_FREQUENCY,
        bluetooth_name: Optional[str] = None,
        **kwargs,
    ) -> "RadioSource":
        """
        Create a Bluetooth beacon identified by its identifier list.

        Args:
            identifiers: Beacon identifiers (e.g. proximity UUID, major, minor).
                         Order matters: the same values in another order are a
                         different beacon.
            frequency: Carrier frequency in Hz.
            bluetooth_name: Advertised bluetooth name.
            **kwargs: Any other RadioSource field.

        Raises:
            InvalidArgumentError: If identifiers is None or empty.
        """
        if identifiers is None or len(identifiers) == 0:
            raise InvalidArgumentError("A beacon needs at least one identifier")
        return cls(
            identifier="/".join(str(i) for i in identifiers),
            source_type=RadioSourceType.BEACON,
            frequency=frequency,
            name=bluetooth_name,
            **kwargs,
        )

    def located_at(self, position, covariance=None) -> "RadioSource":
        """Return a copy of this source placed at a known position."""
        return replace(self, position=position, position_covariance=covariance)

    def with_power(
        self,
        transmitted_power: float,
        transmitted_power_std: Optional[float] = None,
        path_loss_exponent: Optional[float] = None,
        path_loss_exponent_std: Optional[float] = None,
    ) -> "RadioSource":
        """Return a copy of this source with known transmitted power."""
        return replace(
            self,
            transmitted_power=transmitted_power,
            transmitted_power_std=transmitted_power_std,
            path_loss_exponent=(
                self.path_loss_exponent
                if path_loss_exponent is None
                else path_loss_exponent
            ),
            path_loss_exponent_std=path_loss_exponent_std,
        )

    @property
    def is_located(self) -> bool:
        return self.position is not None

    @property
    def has_power(self) -> bool:
        return self.transmitted_power is not None

    @property
    def dimensions(self) -> Optional[int]:
        """Dimension of the source position, or None if not located."""
        return None if self.position is None else int(self.position.shape[0])

    @property
    def transmitted_power_variance(self) -> Optional[float]:
        if self.transmitted_power_std is None:
            return None
        return self.transmitted_power_std**2

    @property
    def path_loss_exponent_variance(self) -> Optional[float]:
        if self.path_loss_exponent_std is None:
            return None
        return self.path_loss_exponent_std**2
