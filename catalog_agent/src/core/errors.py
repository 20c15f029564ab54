"""
Catalog Agent - Error Taxonomy
===============================
Every failure the core can surface derives from ``CatalogAgentError``.

``RecordValidationError``
    Malformed catalog record.  Never crosses the validator boundary —
    ``parse_records`` converts it into an empty ``ParseResult``.
``IndexStateError``
    Index creation failed or a vector does not match the index dimension.
    Fatal to ingestion.
``UpstreamServiceError``
    The embedding or generative model call failed or timed out.
``StorageError``
    The corpus or conversation store is unreachable or a write failed.
``ChatFailedError``
    The only error the responder raises.  Carries a generic, user-safe
    message; the underlying cause is chained for logging only.

An unknown thread id is *not* an error: it is a new conversation.
"""

from __future__ import annotations


class CatalogAgentError(Exception):
    """Base class for all catalog agent errors."""


class RecordValidationError(CatalogAgentError):
    """A catalog record is missing a field or has a wrong type."""


class IndexStateError(CatalogAgentError):
    """The search index is missing, half-built, or has the wrong shape."""


class UpstreamServiceError(CatalogAgentError):
    """An embedding or generation call failed."""


class StorageError(CatalogAgentError):
    """A backing store could not be reached or written."""


class ChatFailedError(CatalogAgentError):
    """A chat turn could not be completed; conversation state is unchanged."""
