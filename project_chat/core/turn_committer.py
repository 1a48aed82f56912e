"""Best-effort persistence of a completed chat turn.

The caller already has an answer by the time this runs, so a storage failure
is logged and returned as a PersistenceWarning instead of raised.
"""

from typing import Any

import structlog

from project_chat.core.database import ProjectStore
from project_chat.core.errors import PersistenceWarning
from project_chat.core.image_resolver import ResolvedImage

logger = structlog.get_logger(__name__)

EMPTY_ASSISTANT_TEXT = "No response."


def build_rich_payload(
    image: ResolvedImage | None,
    citations: list[dict[str, Any]] | None = None,
) -> dict[str, Any] | None:
    """Rich metadata stored alongside the assistant message, or None."""
    rich: dict[str, Any] = {}
    if image is not None:
        rich["image"] = {"dataUrl": image.data_url, "prompt": image.source_prompt}
    if citations:
        rich["citations"] = citations
    return rich or None


def commit_turn(
    store: ProjectStore,
    chat_id: str,
    caller_id: str,
    user_text: str,
    assistant_text: str,
    image: ResolvedImage | None = None,
    citations: list[dict[str, Any]] | None = None,
) -> PersistenceWarning | None:
    """Append the user and assistant messages and bump the chat timestamp.

    Args:
        store: Project store.
        chat_id: Chat receiving the messages.
        caller_id: Author of the user message.
        user_text: Current user message text.
        assistant_text: Final assistant text.
        image: Resolved image, if one was generated.
        citations: Source annotations from the model output.

    Returns:
        None on success, a PersistenceWarning if any write failed.
    """
    try:
        store.record_turn(
            chat_id=chat_id,
            caller_id=caller_id,
            user_text=user_text,
            assistant_text=assistant_text or EMPTY_ASSISTANT_TEXT,
            rich=build_rich_payload(image, citations),
        )
    except Exception as e:
        warning = PersistenceWarning(chat_id, e)
        logger.error("turn.persist_failed", chat_id=chat_id, error=str(e))
        return warning

    logger.debug("turn.persisted", chat_id=chat_id, has_image=image is not None)
    return None
