"""Project context assembly for a chat turn.

Confirms the caller may talk to this project and chat, then loads the project
name, custom instructions and document index id, and renders the system
instruction. Nothing is cached; every turn reads the latest rows.
"""

from dataclasses import dataclass

import structlog

from project_chat.chat.prompts import build_system_instruction
from project_chat.core.database import ProjectStore
from project_chat.core.errors import NotFoundError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProjectContext:
    """Read-only project context for one turn.

    Attributes:
        project_id: Project UUID.
        project_name: Display name used in the identity line.
        custom_instructions: Project instructions, or None.
        document_index_id: Document index id for file search, or None.
        system_instruction: Rendered system instruction text.
    """
    project_id: str
    project_name: str
    custom_instructions: str | None
    document_index_id: str | None
    system_instruction: str


def load_project_context(
    store: ProjectStore,
    project_id: str,
    caller_id: str,
    chat_id: str,
) -> ProjectContext:
    """Load and check everything the turn needs from the store.

    Args:
        store: Project store.
        project_id: Target project.
        caller_id: Authenticated caller; must own the project.
        chat_id: Target chat; must live under the project.

    Returns:
        ProjectContext with the system instruction already built.

    Raises:
        NotFoundError: Project or chat missing, soft-deleted, or not the caller's.
    """
    project = store.get_project(project_id, caller_id)
    if project is None:
        logger.info("context.project_not_found", project_id=project_id)
        raise NotFoundError("Project not found")

    chat = store.get_chat(chat_id, project_id)
    if chat is None:
        logger.info("context.chat_not_found", project_id=project_id, chat_id=chat_id)
        raise NotFoundError("Chat not found")

    instructions = store.get_instructions(project_id)

    context = ProjectContext(
        project_id=project_id,
        project_name=project.name,
        custom_instructions=instructions,
        document_index_id=project.document_index_id,
        system_instruction=build_system_instruction(project.name, instructions),
    )
    logger.debug(
        "context.loaded",
        project_id=project_id,
        has_instructions=bool(instructions and instructions.strip()),
        has_document_index=bool(project.document_index_id),
    )
    return context
