"""Exceptions raised by the search engine."""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base class for engine errors."""


class MalformedInputError(KnowledgeBaseError, ValueError):
    """A record failed required-field validation.

    Ingestion skips the record and reports it in the batch summary.
    """

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"{kind}: {reason}")
        self.kind = kind
        self.reason = reason


class StorageError(KnowledgeBaseError):
    """The store could not be read or written; the in-flight batch was rolled back."""
