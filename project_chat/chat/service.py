"""Project chat turn orchestration.

validate -> load context -> pick capabilities -> complete -> (resolve image)
-> commit. Only the completion and image steps can fail the turn once
validation and context checks have passed; commit failures are logged and the
answer is still returned.
"""

import os
import time
from dataclasses import dataclass
from typing import Any

import structlog

from project_chat.chat.capabilities import DEFAULT_MAX_RESULTS, active_capabilities
from project_chat.core.context_builder import load_project_context
from project_chat.core.database import ProjectStore
from project_chat.core.image_resolver import ImageResolver, find_image_invocation
from project_chat.core.llm_adapter import LLMAdapter
from project_chat.core.turn_committer import EMPTY_ASSISTANT_TEXT, commit_turn
from project_chat.core.validator import validate_chat_turn

logger = structlog.get_logger(__name__)

IMAGE_ONLY_TEXT = "Image generated."


@dataclass
class ChatServices:
    """Collaborators threaded through every turn.

    Built once at startup; tests swap in fakes.
    """
    store: ProjectStore
    llm: LLMAdapter
    images: ImageResolver
    max_results: int = DEFAULT_MAX_RESULTS

    @classmethod
    def from_env(cls, store: ProjectStore, llm: LLMAdapter, images: ImageResolver) -> "ChatServices":
        max_results = int(os.environ.get("FILE_SEARCH_MAX_RESULTS", str(DEFAULT_MAX_RESULTS)))
        return cls(store=store, llm=llm, images=images, max_results=max_results)


@dataclass(frozen=True)
class ProjectChatResult:
    assistant_text: str
    image_data_url: str | None = None


def send_project_chat_message(
    services: ChatServices,
    project_id: Any,
    caller_id: Any,
    chat_id: Any,
    messages: Any,
    web_search: Any = False,
) -> ProjectChatResult:
    """Run one project chat turn.

    Args:
        services: Store, completion and image collaborators.
        project_id: Target project id.
        caller_id: Authenticated caller id.
        chat_id: Target chat id.
        messages: Client-side history, oldest first; dicts with role/content.
        web_search: Whether to offer web search this turn.

    Returns:
        ProjectChatResult with the assistant text and optional image data URL.

    Raises:
        ValidationError: Malformed request. No remote calls were made.
        NotFoundError: Project or chat not accessible. No remote calls were made.
        UpstreamError: Completion or image API failed. Nothing was persisted.
    """
    start = time.monotonic()

    request = validate_chat_turn({
        "projectId": project_id,
        "callerId": caller_id,
        "chatId": chat_id,
        "messages": messages,
        "webSearch": web_search,
    })
    project_id, caller_id, chat_id = str(request.project_id), str(request.caller_id), str(request.chat_id)
    logger.info("turn.validated", project_id=project_id, chat_id=chat_id,
                messages=len(request.messages), web_search=request.web_search)

    context = load_project_context(services.store, project_id, caller_id, chat_id)

    capabilities = active_capabilities(request.web_search, context.document_index_id, services.max_results)
    logger.info("turn.invoking", chat_id=chat_id, capabilities=[c.kind for c in capabilities])

    output = services.llm.complete(context.system_instruction, request.messages, capabilities)

    user_text = request.current_user_message.text
    assistant_text = output.assistant_text
    image = None

    invocation = find_image_invocation(output, fallback_prompt=user_text)
    if invocation is not None:
        logger.info("turn.resolving_image", chat_id=chat_id, size=invocation.size.value)
        image = services.images.resolve(invocation)
        if image is not None and not assistant_text.strip():
            assistant_text = IMAGE_ONLY_TEXT

    # Returned and stored text must match
    if not assistant_text.strip():
        assistant_text = EMPTY_ASSISTANT_TEXT

    warning = commit_turn(
        services.store,
        chat_id=chat_id,
        caller_id=caller_id,
        user_text=user_text,
        assistant_text=assistant_text,
        image=image,
        citations=output.citations,
    )

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("turn.done", chat_id=chat_id, latency_ms=latency_ms,
                has_image=image is not None, persisted=warning is None)

    return ProjectChatResult(
        assistant_text=assistant_text,
        image_data_url=image.data_url if image else None,
    )
