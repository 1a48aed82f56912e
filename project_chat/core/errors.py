"""Typed errors for the project chat pipeline.

Each error carries the HTTP status the API layer should surface. Validation and
lookup errors are raised before any remote call; upstream errors abort the turn
before anything is persisted. PersistenceWarning is never raised out of the
pipeline, the turn committer returns it so callers can log or inspect it.
"""


class ProjectChatError(Exception):
    """Base error for a failed chat turn."""
    status = 500

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ValidationError(ProjectChatError):
    """Malformed chat turn request."""
    status = 400


class NotFoundError(ProjectChatError):
    """Project or chat is missing, soft-deleted, or not owned by the caller."""
    status = 404


class UpstreamError(ProjectChatError):
    """Completion or image API failed."""
    status = 502


class PersistenceWarning(Exception):
    """Recording a turn failed after the model already answered."""

    def __init__(self, chat_id: str, cause: Exception):
        super().__init__(f"Failed to persist turn for chat {chat_id}: {cause}")
        self.chat_id = chat_id
        self.cause = cause
