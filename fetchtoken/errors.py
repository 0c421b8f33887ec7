"""Exception types raised by fetchtoken."""

from __future__ import annotations


class FetchTokenError(Exception):
    """Base class for fetchtoken errors."""


class StorageError(FetchTokenError):
    """The token store is unreachable or rejected a write."""
