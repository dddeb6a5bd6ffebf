r"""
Exception hierarchy for bootstrap interval estimation.

Structural problems with the inputs of an interval method derive from both
:class:`BootstrapError` and :class:`ValueError`; failures raised by
caller-supplied estimator code are wrapped in :class:`EstimatorFailure`.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "BootstrapError",
    "InsufficientReplicates",
    "MissingApparentReplicate",
    "MissingStandardError",
    "DegenerateJackknife",
    "ExtremeQuantile",
    "EstimatorFailure",
]


class BootstrapError(Exception):
    """Base class for all errors raised by :mod:`bootci`."""


class InsufficientReplicates(BootstrapError, ValueError):
    """Too few usable replicate estimates to form an interval."""

    def __init__(self, message: str, *, term: Optional[str] = None, method: Optional[str] = None):
        super().__init__(message)
        self.term = term
        self.method = method


class MissingApparentReplicate(BootstrapError, ValueError):
    """An interval method needs the original-data (apparent) estimate."""

    def __init__(self, message: str, *, method: Optional[str] = None):
        super().__init__(message)
        self.method = method


class MissingStandardError(BootstrapError, ValueError):
    """A studentized interval needs a standard error on every replicate."""

    def __init__(self, message: str, *, term: Optional[str] = None, replicate_id: Optional[str] = None):
        super().__init__(message)
        self.term = term
        self.replicate_id = replicate_id


class DegenerateJackknife(BootstrapError, ValueError):
    """The jackknife estimates carry no spread, so the BCa acceleration is undefined."""

    def __init__(self, message: str, *, term: Optional[str] = None):
        super().__init__(message)
        self.term = term


class ExtremeQuantile(BootstrapError, ValueError):
    """BCa-adjusted percentile positions fell outside the open unit interval."""

    def __init__(self, message: str, *, term: Optional[str] = None):
        super().__init__(message)
        self.term = term


class EstimatorFailure(BootstrapError, RuntimeError):
    r"""
    Wraps an error raised by caller-supplied estimator code.

    Attributes
    ----------
    replicate_id : str
        Identifier of the replicate or jackknife fold being evaluated.
    reason : str
        ``repr`` of the underlying exception. Survives pickling across process
        boundaries even when the original exception type does not.
    """

    def __init__(self, replicate_id: str, reason: str):
        super().__init__(f"estimator failed on replicate '{replicate_id}': {reason}")
        self.replicate_id = replicate_id
        self.reason = reason

    def __reduce__(self):
        return (type(self), (self.replicate_id, self.reason))
