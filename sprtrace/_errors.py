"""
_errors.py
==========
Exception hierarchy for sprtrace.

Every exception derives from ``ReplayError`` and from the built-in exception
that describes the failure best, so callers can catch either the package
base class or the familiar built-in (``ValueError``, ``KeyError`` …).

None of these are recoverable for the current replay: the command-line entry
point logs them and exits with a non-zero status.  Errors raised while a
trace is being processed carry the offending ``line`` and its
``line_number`` when they are known.
"""

from typing import Optional


class ReplayError(Exception):
    """
    Base class of all sprtrace errors.

    Parameters
    ----------
    message : str
        Human-readable description.
    line_number : int or None
        1-based trace line the error refers to, if any.
    line : str or None
        Text of that trace line, if any.
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        line: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.line = line

    def __str__(self) -> str:
        if self.line_number is None:
            return self.message
        return f"{self.message} (trace line {self.line_number}: {self.line!r})"


class MalformedTreeError(ReplayError, ValueError):
    """Tree text or structure is unusable (duplicate tip names, bad degree)."""


class EmptyTreeError(ReplayError, ValueError):
    """Tree has fewer than two tips, so it has no edges to index."""


class UnknownTipError(ReplayError, KeyError):
    """A tip name from the trace does not occur in the current tree."""

    # KeyError.__str__ would repr() the message; keep ReplayError's.
    __str__ = ReplayError.__str__


class SplitNotFoundError(ReplayError, LookupError):
    """No edge of the current tree induces the requested split."""


class StateMismatchError(ReplayError, RuntimeError):
    """A TraceReader accessor was called for a record kind it is not on."""


class MalformedRecordError(ReplayError, ValueError):
    """A trace record is missing a required part (score, name list)."""


class EndOfStreamError(ReplayError, EOFError):
    """The trace ended where more input was required."""


class ConsistencyError(ReplayError, RuntimeError):
    """An editing precondition or transaction ordering rule was violated."""
