"""Chat turn request validation.

Gate in front of every remote call: turns a raw payload into a ChatTurnRequest
or raises ValidationError carrying the first violated constraint.
"""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from project_chat.api.schemas import ChatTurnRequest
from project_chat.core.errors import ValidationError

logger = structlog.get_logger(__name__)


def validate_chat_turn(payload: Any) -> ChatTurnRequest:
    """Validate and normalize a raw chat turn payload.

    Args:
        payload: Mapping with project/chat/caller ids, message history and
                 the web-search flag. camelCase and snake_case keys are accepted.

    Returns:
        Normalized ChatTurnRequest.

    Raises:
        ValidationError: On the first violated constraint. Nothing else happens.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    try:
        return ChatTurnRequest.model_validate(payload)
    except PydanticValidationError as e:
        message = _first_error_message(e)
        logger.warning("validation.failed", error=message)
        raise ValidationError(message) from e


def _first_error_message(error: PydanticValidationError) -> str:
    """Render the first pydantic error as '<field path>: <reason>'."""
    issues = error.errors()
    if not issues:
        return "Invalid payload"

    issue = issues[0]
    msg = issue.get("msg", "Invalid payload")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]

    loc = ".".join(str(part) for part in issue.get("loc", ()))
    return f"{loc}: {msg}" if loc else msg
