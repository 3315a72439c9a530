"""K-nearest fingerprint search in signal space.

Implements the nearest-neighbour decision rule over a radio map of located
fingerprints:

    K(z) = the k fingerprints f_i minimizing D²(z, f_i)

Results are sorted by ascending squared distance. Ties keep the database
order, so the first k results for a larger k always start with the results
for a smaller k.
"""

import heapq
from typing import Callable, List, Optional, Sequence, Tuple

from indoor.errors import InvalidArgumentError

from .distance import no_mean_sqr_distance, sqr_distance
from .types import Fingerprint, LocatedFingerprint

DistanceMetric = Callable[[Optional[Fingerprint], Optional[Fingerprint]], float]


def find_k_nearest(
    database: Sequence[LocatedFingerprint],
    query: Fingerprint,
    k: int,
    metric: DistanceMetric = sqr_distance,
) -> Tuple[List[LocatedFingerprint], List[float]]:
    """
    Find the k located fingerprints closest to a query in signal space.

    Args:
        database: Located fingerprints to search (the radio map).
        query: Fingerprint measured at the unknown position.
        k: Number of neighbours to return, 1 <= k <= len(database).
        metric: Squared distance function. Defaults to `sqr_distance`; pass
                `no_mean_sqr_distance` to cancel device offsets.

    Returns:
        Tuple (fingerprints, sqr_distances), both of length k and sorted by
        ascending distance. Fingerprints sharing no source with the query
        have infinite distance and are returned last.

    Raises:
        InvalidArgumentError: If database or query is None, or k is out of
                              range.

    Example:
        >>> nearest, d2 = find_k_nearest(radio_map, query, k=3)
        >>> [fp.position for fp in nearest]
    """
    if database is None:
        raise InvalidArgumentError("database must not be None")
    if query is None:
        raise InvalidArgumentError("query fingerprint must not be None")
    if k < 1:
        raise InvalidArgumentError(f"k must be >= 1, got k={k}")
    if k > len(database):
        raise InvalidArgumentError(
            f"k={k} exceeds number of located fingerprints M={len(database)}. "
            f"Use k <= {len(database)}."
        )

    # (distance, database index) keys keep ties in database order
    scored = ((metric(query, fp), i) for i, fp in enumerate(database))
    nearest = heapq.nsmallest(k, scored)

    fingerprints = [database[i] for _, i in nearest]
    sqr_distances = [d for d, _ in nearest]
    return fingerprints, sqr_distances


def find_nearest(
    database: Sequence[LocatedFingerprint],
    query: Fingerprint,
    metric: DistanceMetric = sqr_distance,
) -> Optional[LocatedFingerprint]:
    """
    Closest located fingerprint to a query, or None for an empty database.

    Raises:
        InvalidArgumentError: If database or query is None.
    """
    if database is not None and len(database) == 0:
        return None
    fingerprints, _ = find_k_nearest(database, query, 1, metric=metric)
    return fingerprints[0]


class KNearestFinder:
    """
    K-nearest search bound to one radio map.

    Args:
        database: Located fingerprints to search.

    Raises:
        InvalidArgumentError: If database is None.
    """

    metric: DistanceMetric = staticmethod(sqr_distance)

    def __init__(self, database: Sequence[LocatedFingerprint]):
        if database is None:
            raise InvalidArgumentError("database must not be None")
        self._database = list(database)

    @property
    def database(self) -> List[LocatedFingerprint]:
        return list(self._database)

    def find_nearest_to(self, query: Fingerprint) -> Optional[LocatedFingerprint]:
        return find_nearest(self._database, query, metric=self.metric)

    def find_k_nearest_to(
        self, query: Fingerprint, k: int
    ) -> Tuple[List[LocatedFingerprint], List[float]]:
        """Return (fingerprints, sqr_distances) of the k nearest to query."""
        return find_k_nearest(self._database, query, k, metric=self.metric)


class NoMeanKNearestFinder(KNearestFinder):
    """K-nearest search using the mean-removed distance."""

    metric: DistanceMetric = staticmethod(no_mean_sqr_distance)
