"""Exceptions raised by knowbase."""

from __future__ import annotations


class KnowbaseError(Exception):
    """Base class for knowbase errors."""


class EmbeddingError(KnowbaseError):
    """The embedding provider failed or returned an unusable response."""


class RetrievalError(KnowbaseError):
    """The index could not be read while answering a query.

    Distinct from a query that simply matched nothing, which returns an empty list.
    """
