"""
Error kinds raised by the chat service.

Every error carries an HTTP status so the blueprint error handler can turn it
into a JSON response without per-route try/except blocks.
"""


class RagChatError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(RagChatError):
    """Missing or invalid configuration, e.g. no API key."""


class BadRequest(RagChatError):
    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message, {"field": field} if field else None)


class NotFound(RagChatError):
    status_code = 404


class UpstreamUnavailable(RagChatError):
    """The embedding or generation API failed (after retries, for embeddings)."""

    status_code = 502

    def __init__(self, message, status=None):
        super().__init__(message, {"upstream_status": status} if status is not None else None)
        self.status = status


class EmptyCompletion(RagChatError):
    """The model answered but the response had no text part."""


class LengthMismatch(RagChatError):
    """Two vectors disagree on dimension."""

    def __init__(self, left, right):
        super().__init__(f"Vector length mismatch: {left} != {right}", {"left": left, "right": right})


class PersistenceError(RagChatError):
    pass


class EmptyDocument(RagChatError):
    status_code = 400


class DuplicateId(RagChatError):
    status_code = 409

    def __init__(self, chunk_id):
        super().__init__(f"Chunk id already exists: {chunk_id}", {"id": chunk_id})
        self.chunk_id = chunk_id
