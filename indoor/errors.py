"""Exception types raised by the positioning core.

Argument and geometry problems derive from ``ValueError`` so callers that
already guard numerical code with ``except ValueError`` keep working.
State-machine violations derive from ``RuntimeError``: they are recoverable by
retrying once the solver or estimator reaches the right state.
"""


class IndoorError(Exception):
    """Base class for every error raised by this package."""


class InvalidArgumentError(IndoorError, ValueError):
    """Malformed input: None, empty or mismatched arrays, out-of-range values."""


class InvalidGeometryError(IndoorError, ValueError):
    """Degenerate geometry, e.g. a fingerprint located exactly on its radio source.

    Propagating uncertainty through the log-distance model divides by the
    squared distance between the radio source and the expansion point, so
    coincident points have no defined result.
    """


class NotReadyError(IndoorError, RuntimeError):
    """A solve or estimate was requested before all inputs were provided."""


class LockedError(IndoorError, RuntimeError):
    """The instance is busy solving and cannot be modified or re-entered."""


class FingerprintEstimationError(IndoorError, RuntimeError):
    """A fingerprint-based position estimate could not be computed."""
