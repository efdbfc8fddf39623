from __future__ import annotations


class PangeneError(Exception):
    """Base class for pangene exceptions."""

    exit_code: int = 1


class PangeneUsageError(PangeneError):
    """Raised when command arguments or inputs are invalid."""

    exit_code = 2


class MalformedRecordError(PangeneError):
    """Raised for a single homology line that cannot be decoded."""


class ClusterInvariantError(PangeneError):
    """Raised when a gene would end up in more than one cluster.

    This signals a bug in cluster construction, never bad input data.
    """
