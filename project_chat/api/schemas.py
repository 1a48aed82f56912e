"""Pydantic models for the API layer.

Defines the chat turn request, request/response schemas for all endpoints,
and the read models returned by the project store.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class ChatMessage(BaseModel):
    """Single entry of the client-side conversation history."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    text: str = Field(..., min_length=1, validation_alias=AliasChoices("content", "text"))

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message text must not be empty")
        return value


class ChatTurnRequest(BaseModel):
    """Normalized chat turn: who is asking, where, and with what history."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    project_id: UUID = Field(..., alias="projectId")
    chat_id: UUID = Field(..., alias="chatId")
    caller_id: UUID = Field(..., validation_alias=AliasChoices("callerId", "userId", "caller_id"))
    messages: list[ChatMessage] = Field(..., min_length=1)
    web_search: bool = Field(False, alias="webSearch")

    @field_validator("messages", mode="before")
    @classmethod
    def _non_empty_history(cls, value: Any) -> Any:
        if isinstance(value, list) and not value:
            raise ValueError("At least one message is required")
        return value

    @field_validator("web_search", mode="before")
    @classmethod
    def _missing_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def _has_user_message(self) -> "ChatTurnRequest":
        if not any(m.role == "user" for m in self.messages):
            raise ValueError("At least one user message is required")
        return self

    @property
    def current_user_message(self) -> ChatMessage:
        """Newest user entry, persisted as the user turn."""
        return next(m for m in reversed(self.messages) if m.role == "user")


class AssistantReply(BaseModel):
    content: str
    image: str | None = None


class ChatTurnResponse(BaseModel):
    """Outgoing response for one orchestrated turn."""
    assistant: AssistantReply


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    document_index_id: str | None = Field(None, alias="documentIndexId")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class InstructionsUpdate(BaseModel):
    instructions: str = ""


class ChatCreate(BaseModel):
    title: str = "New chat"

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        if value is None:
            return "New chat"
        if isinstance(value, str):
            return value.strip()[:255] or "New chat"
        return value


class ChatRename(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ProjectRecord(BaseModel):
    """Project row as seen by the API."""
    id: str
    owner_id: str
    name: str
    description: str | None = None
    document_index_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ChatRecord(BaseModel):
    id: str
    project_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class MessageRecord(BaseModel):
    """Single persisted message in a project chat."""
    id: int
    chat_id: str
    role: Literal["user", "assistant", "system"]
    content: str
    rich: dict | None = None
    created_at: datetime


class ChatWithMessages(ChatRecord):
    messages: list[MessageRecord] = Field(default_factory=list)


class ProjectDetail(BaseModel):
    project: ProjectRecord
    instructions: str | None = None
    chat_count: int = 0
