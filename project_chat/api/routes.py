"""FastAPI endpoints for the project chat API.

POST /projects/{project_id}/chat/messages - run one orchestrated chat turn
/projects, /projects/{project_id}, /projects/{project_id}/instructions,
/projects/{project_id}/chats - project and chat management
GET /health - component health check
"""

import time
import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Body, Header, HTTPException, Request

from project_chat.api.schemas import (
    AssistantReply,
    ChatCreate,
    ChatRecord,
    ChatRename,
    ChatTurnResponse,
    ChatWithMessages,
    InstructionsUpdate,
    ProjectCreate,
    ProjectDetail,
    ProjectRecord,
    ProjectUpdate,
)
from project_chat.chat.service import send_project_chat_message
from project_chat.core.database import ProjectStore
from project_chat.core.errors import ProjectChatError

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_caller_id(x_user_id: str | None) -> str:
    """Caller identity from the X-User-Id header set by the auth proxy.

    Returned in canonical UUID form so stored owner ids match chat turn lookups.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return str(uuid.UUID(x_user_id.strip()))
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-Id must be a UUID")


def _store(req: Request) -> ProjectStore:
    return req.app.state.store


def _require_project(store: ProjectStore, project_id: str, caller_id: str) -> ProjectRecord:
    project = store.get_project(project_id, caller_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("/projects/{project_id}/chat/messages", response_model=ChatTurnResponse)
def send_chat_message(project_id: str, req: Request, payload: dict[str, Any] | None = Body(default=None),
                      x_user_id: str | None = Header(default=None)):
    """Process a chat turn: validate -> context -> model -> image -> persist -> respond."""
    caller_id = get_caller_id(x_user_id)
    payload = payload or {}
    start = time.monotonic()

    services = req.app.state.chat_services
    if services is None:
        raise HTTPException(status_code=503, detail="Chat not available. Configure OPENAI_API_KEY in .env and restart.")

    try:
        result = send_project_chat_message(
            services,
            project_id=project_id,
            caller_id=caller_id,
            chat_id=payload.get("chatId", payload.get("chat_id")),
            messages=payload.get("messages", []),
            web_search=payload.get("webSearch", payload.get("web_search", False)),
        )
    except ProjectChatError as e:
        logger.warning("chat.request_failed", project_id=project_id, status=e.status, error=e.message)
        raise HTTPException(status_code=e.status, detail=e.message)

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("chat.response", project_id=project_id, latency_ms=latency_ms,
                has_image=result.image_data_url is not None)

    return ChatTurnResponse(
        assistant=AssistantReply(content=result.assistant_text, image=result.image_data_url),
    )


@router.get("/projects", response_model=list[ProjectRecord])
def list_projects(req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    return _store(req).list_projects(caller_id)


@router.post("/projects", response_model=ProjectRecord, status_code=201)
def create_project(body: ProjectCreate, req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    project = _store(req).create_project(caller_id, body.name, body.description)
    logger.info("projects.created", project_id=project.id)
    return project


@router.get("/projects/{project_id}", response_model=ProjectDetail)
def get_project(project_id: str, req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    project = _require_project(store, project_id, caller_id)
    return ProjectDetail(
        project=project,
        instructions=store.get_instructions(project_id),
        chat_count=store.count_chats(project_id),
    )


@router.patch("/projects/{project_id}", response_model=ProjectRecord)
def update_project(project_id: str, body: ProjectUpdate, req: Request,
                   x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    project = _store(req).update_project(
        project_id,
        caller_id,
        name=body.name,
        description=body.description,
        document_index_id=body.document_index_id,
    )
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/projects/{project_id}")
def delete_project(project_id: str, req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    if not _store(req).delete_project(project_id, caller_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"success": True}


@router.put("/projects/{project_id}/instructions")
def update_instructions(project_id: str, body: InstructionsUpdate, req: Request,
                        x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    _require_project(store, project_id, caller_id)
    store.upsert_instructions(project_id, body.instructions, updated_by=caller_id)
    return {"success": True}


@router.get("/projects/{project_id}/chats", response_model=list[ChatWithMessages])
def list_chats(project_id: str, req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    _require_project(store, project_id, caller_id)
    return store.list_chats(project_id)


@router.post("/projects/{project_id}/chats", response_model=ChatRecord, status_code=201)
def create_chat(project_id: str, req: Request, body: ChatCreate | None = None,
                x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    _require_project(store, project_id, caller_id)
    title = body.title if body else "New chat"
    return store.create_chat(project_id, title, created_by=caller_id)


@router.patch("/projects/{project_id}/chats/{chat_id}", response_model=ChatRecord)
def rename_chat(project_id: str, chat_id: str, body: ChatRename, req: Request,
                x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    _require_project(store, project_id, caller_id)
    chat = store.rename_chat(chat_id, project_id, body.title)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.delete("/projects/{project_id}/chats/{chat_id}")
def delete_chat(project_id: str, chat_id: str, req: Request, x_user_id: str | None = Header(default=None)):
    caller_id = get_caller_id(x_user_id)
    store = _store(req)
    _require_project(store, project_id, caller_id)
    if not store.delete_chat(chat_id, project_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"success": True}


@router.get("/health")
def health(req: Request):
    """Report health of the model API and the database."""
    components = {}

    services = req.app.state.chat_services
    components["openai"] = "ok" if services is not None and services.llm.is_healthy() else "error"
    components["database"] = "ok" if _store(req).is_healthy() else "error"

    errors = [k for k, v in components.items() if v == "error"]
    if not errors:
        status = "healthy"
    elif len(errors) == len(components):
        status = "unhealthy"
    else:
        status = "degraded"

    return {"status": status, "components": components}


@router.get("/")
@router.head("/")
def root_health():
    """Basic root health check for deployment platforms."""
    return {"status": "ok", "service": "project-chat-api"}
