"""
Error taxonomy for the learning core.

Only two error types ever reach callers:

- InvalidArgument: caller-supplied value outside the contract (4xx-equivalent)
- StorageError: the learning record store failed (5xx-equivalent)

Cache failures are absorbed inside ``wordwise.cache`` and never surface.
"""

from __future__ import annotations


class WordwiseError(Exception):
    """Base class for all wordwise errors."""


class InvalidArgument(WordwiseError, ValueError):
    """A caller supplied a value outside the operation's contract."""


class StorageError(WordwiseError):
    """The learning record store is unreachable or rejected a write."""
