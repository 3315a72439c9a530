"""Signal-space distances between RSSI fingerprints.

Distances are computed only over the radio sources observed by both
fingerprints. When the fingerprints share no source, or either fingerprint is
missing, they are incomparable and the distance is +inf, so such fingerprints
sort last in a nearest-neighbour search and receive zero weight.

The mean-removed variant subtracts from each fingerprint its own mean RSSI
over the shared sources before differencing. This cancels a constant offset
between the receivers used for the survey and for the query, which is common
when devices of different models are mixed.
"""

import math
from typing import List, Optional, Tuple

from .types import Fingerprint


def _shared_rssi(
    a: Fingerprint, b: Fingerprint
) -> Tuple[List[float], List[float]]:
    rssi_a = []
    rssi_b = []
    for reading in a:
        other = b.reading_for(reading.source)
        if other is not None:
            rssi_a.append(reading.rssi)
            rssi_b.append(other.rssi)
    return rssi_a, rssi_b


def sqr_distance(a: Optional[Fingerprint], b: Optional[Fingerprint]) -> float:
    """
    Squared signal-space distance between two fingerprints.

    Implements:
        D²(a, b) = Σ_{s ∈ S(a) ∩ S(b)} (RSSI_a(s) - RSSI_b(s))²

    Args:
        a: First fingerprint, or None.
        b: Second fingerprint, or None.

    Returns:
        Squared distance in dB². +inf when either fingerprint is None or they
        share no radio source.

    Examples:
        >>> ap1, ap2 = RadioSource.wifi("ap-1"), RadioSource.wifi("ap-2")
        >>> a = Fingerprint([RssiReading(ap1, -50.0), RssiReading(ap2, -60.0)])
        >>> b = Fingerprint([RssiReading(ap1, -53.0), RssiReading(ap2, -56.0)])
        >>> sqr_distance(a, b)
        25.0
    """
    if a is None or b is None:
        return math.inf
    rssi_a, rssi_b = _shared_rssi(a, b)
    if not rssi_a:
        return math.inf
    return float(sum((x - y) ** 2 for x, y in zip(rssi_a, rssi_b)))


def distance(a: Optional[Fingerprint], b: Optional[Fingerprint]) -> float:
    """Signal-space distance, sqrt of `sqr_distance`."""
    return math.sqrt(sqr_distance(a, b))


def no_mean_sqr_distance(a: Optional[Fingerprint], b: Optional[Fingerprint]) -> float:
    """
    Squared signal-space distance after removing each side's mean RSSI.

    Implements:
        D²(a, b) = Σ_s ((RSSI_a(s) - μ_a) - (RSSI_b(s) - μ_b))²

    where both the sum and the means μ_a, μ_b run over the shared sources.

    Returns:
        Squared distance in dB². +inf when either fingerprint is None or they
        share no radio source.

    Example:
        >>> # Same shape, 10 dB offset: identical once means are removed
        >>> ap1, ap2 = RadioSource.wifi("ap-1"), RadioSource.wifi("ap-2")
        >>> a = Fingerprint([RssiReading(ap1, -50.0), RssiReading(ap2, -60.0)])
        >>> b = Fingerprint([RssiReading(ap1, -60.0), RssiReading(ap2, -70.0)])
        >>> no_mean_sqr_distance(a, b)
        0.0
    """
    if a is None or b is None:
        return math.inf
    rssi_a, rssi_b = _shared_rssi(a, b)
    if not rssi_a:
        return math.inf
    mean_a = sum(rssi_a) / len(rssi_a)
    mean_b = sum(rssi_b) / len(rssi_b)
    return float(
        sum(((x - mean_a) - (y - mean_b)) ** 2 for x, y in zip(rssi_a, rssi_b))
    )


def no_mean_distance(a: Optional[Fingerprint], b: Optional[Fingerprint]) -> float:
    """Mean-removed signal-space distance, sqrt of `no_mean_sqr_distance`."""
    return math.sqrt(no_mean_sqr_distance(a, b))


def mean_rssi(fingerprint: Fingerprint) -> float:
    """Mean RSSI over all readings of a fingerprint."""
    return fingerprint.mean_rssi
