"""Shared fixtures for all tests."""

import uuid
from unittest.mock import MagicMock

import httpx
import pytest
from langchain_core.messages import AIMessage

from project_chat.chat.service import ChatServices
from project_chat.core.database import ProjectStore
from project_chat.core.image_resolver import ImageGenerator, ImageResolver
from project_chat.core.llm_adapter import LLMAdapter
from tests.fakes import PNG_BYTES, REMOTE_IMAGE_URL, image_response


@pytest.fixture
def store() -> ProjectStore:
    """Fresh in-memory database for each test."""
    store = ProjectStore("sqlite:///:memory:")
    store.init()
    return store


@pytest.fixture
def owner_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def project(store, owner_id):
    return store.create_project(owner_id, "Apollo")


@pytest.fixture
def chat(store, project, owner_id):
    return store.create_chat(project.id, "First chat", created_by=owner_id)


@pytest.fixture
def chat_model() -> MagicMock:
    """Stand-in for ChatOpenAI; answers with plain text by default."""
    model = MagicMock()
    model.bind_tools.return_value.invoke.return_value = AIMessage(content="Here is your answer.")
    return model


@pytest.fixture
def llm(chat_model, monkeypatch) -> LLMAdapter:
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    return LLMAdapter(model=chat_model)


@pytest.fixture
def image_client() -> MagicMock:
    """Stand-in for openai.OpenAI; returns inline base64 by default."""
    client = MagicMock()
    client.images.generate.return_value = image_response(b64_json="aW1hZ2U=")
    return client


@pytest.fixture
def fetch_log() -> list[str]:
    return []


@pytest.fixture
def http_client(fetch_log) -> httpx.Client:
    """httpx client serving PNG bytes for REMOTE_IMAGE_URL, 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        fetch_log.append(str(request.url))
        if str(request.url) == REMOTE_IMAGE_URL:
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
        return httpx.Response(404)

    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def images(image_client, http_client) -> ImageResolver:
    return ImageResolver(ImageGenerator(client=image_client), http_client)


@pytest.fixture
def services(store, llm, images) -> ChatServices:
    return ChatServices(store=store, llm=llm, images=images)
