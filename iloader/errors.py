"""Common exceptions for iloader."""
from __future__ import annotations


class IloaderError(Exception):
    pass


class UnknownOperationError(IloaderError, KeyError):
    pass


class MalformedEventError(IloaderError, ValueError):
    """A bus payload could not be turned into a typed event."""
