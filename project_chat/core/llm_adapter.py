"""LLM adapter for project chat completions.

Wraps ChatOpenAI on the Responses API so hosted tools (web search, file search)
and our own function tools can be declared together. One blocking round trip
per turn; any failure surfaces as UpstreamError.
"""

import os
from dataclasses import dataclass, field
from typing import Any

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import APIStatusError, APITimeoutError

from project_chat.api.schemas import ChatMessage
from project_chat.chat.capabilities import CapabilityDeclaration, to_tool_spec
from project_chat.core.errors import UpstreamError

logger = structlog.get_logger(__name__)

CITATION_TYPES = frozenset({"url_citation", "file_citation"})


@dataclass(frozen=True)
class CapabilityInvocation:
    """Function call requested by the model."""
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelTurnResult:
    """Raw model output for one turn.

    Attributes:
        assistant_text: Concatenated text output (may be empty).
        invocations: Function calls in the order the model returned them.
        citations: Annotations attached to the text (web or file sources).
    """
    assistant_text: str = ""
    invocations: list[CapabilityInvocation] = field(default_factory=list)
    citations: list[dict[str, Any]] = field(default_factory=list)


class LLMAdapter:
    """Completion invoker around ChatOpenAI."""

    def __init__(self, model: BaseChatModel | None = None):
        self.api_key = os.environ.get("OPENAI_API_KEY", "")
        self.model_name = os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
        self.timeout = int(os.environ.get("LLM_TIMEOUT", "60"))
        self.max_retries = int(os.environ.get("LLM_MAX_RETRIES", "2"))

        self.chat_model = model or ChatOpenAI(
            api_key=self.api_key or None,
            model=self.model_name,
            timeout=self.timeout,
            max_retries=self.max_retries,
            use_responses_api=True,
        )

    def is_healthy(self) -> bool:
        """Check that an API key is configured."""
        return bool(self.api_key)

    def complete(
        self,
        system_instruction: str,
        messages: list[ChatMessage],
        capabilities: list[CapabilityDeclaration],
    ) -> ModelTurnResult:
        """Send the conversation and tool declarations to the model.

        Args:
            system_instruction: Rendered project system instruction.
            messages: Full client-side history, oldest first.
            capabilities: Active declarations for this turn.

        Returns:
            ModelTurnResult with text, function calls and citations.

        Raises:
            UpstreamError: Transport failure, timeout, or non-success status.
        """
        prompt = build_messages(system_instruction, messages)
        tools = [to_tool_spec(c) for c in capabilities]

        logger.debug("llm.invoke", model=self.model_name, messages=len(prompt),
                     tools=[t["type"] for t in tools])

        try:
            response = self.chat_model.bind_tools(tools).invoke(prompt)

        except APIStatusError as e:
            logger.error("llm.http_error", status=e.status_code)
            raise UpstreamError(f"Completion API returned {e.status_code}") from e

        except APITimeoutError as e:
            logger.error("llm.timeout", threshold=self.timeout)
            raise UpstreamError("Completion API timed out") from e

        except Exception as e:
            logger.error("llm.failed", error=str(e))
            raise UpstreamError(f"Completion API request failed: {e}") from e

        result = parse_model_output(response)
        logger.info("llm.ok", text_len=len(result.assistant_text),
                    invocations=[i.name for i in result.invocations])
        return result


def build_messages(system_instruction: str, messages: list[ChatMessage]) -> list[BaseMessage]:
    """Translate history into LangChain messages.

    User and system entries become input messages, assistant entries become
    AIMessage so the API treats them as output it already produced.
    """
    prompt: list[BaseMessage] = [SystemMessage(content=system_instruction)]

    for msg in messages:
        if msg.role == "assistant":
            prompt.append(AIMessage(content=msg.text))
        elif msg.role == "system":
            prompt.append(SystemMessage(content=msg.text))
        else:
            prompt.append(HumanMessage(content=msg.text))

    return prompt


def parse_model_output(message: BaseMessage) -> ModelTurnResult:
    """Extract text, function calls and citations from an AI message."""
    invocations = [
        CapabilityInvocation(name=call.get("name", ""), arguments=dict(call.get("args") or {}))
        for call in getattr(message, "tool_calls", None) or []
    ]

    return ModelTurnResult(
        assistant_text=_message_text(message.content),
        invocations=invocations,
        citations=_citations(message.content),
    )


def _message_text(content: Any) -> str:
    """Join text from string content or a list of content blocks."""
    if isinstance(content, str):
        return content

    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") in ("text", "output_text"):
            parts.append(block.get("text") or "")
    return "".join(parts)


def _citations(content: Any) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return []

    citations = []
    for block in content or []:
        if not isinstance(block, dict):
            continue
        for annotation in block.get("annotations") or []:
            if isinstance(annotation, dict) and annotation.get("type") in CITATION_TYPES:
                citations.append(annotation)
    return citations
