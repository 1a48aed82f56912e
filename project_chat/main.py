"""FastAPI application entry point.

Startup sequence: init DB → init LLM adapter → init image generator → wire chat services.
"""

import os
from contextlib import asynccontextmanager

import httpx
import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from project_chat.api.routes import router
from project_chat.chat.service import ChatServices
from project_chat.core.database import ProjectStore
from project_chat.core.image_resolver import ImageGenerator, ImageResolver
from project_chat.core.llm_adapter import LLMAdapter

load_dotenv()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("startup.begin")

    store = ProjectStore()
    store.init()
    app.state.store = store
    logger.info("startup.db_initialized")

    fetch_timeout = float(os.environ.get("IMAGE_FETCH_TIMEOUT", "30"))
    http_client = httpx.Client(timeout=fetch_timeout)

    # Chat needs OpenAI credentials; project management works without them
    try:
        llm_adapter = LLMAdapter()
        images = ImageResolver(ImageGenerator(), http_client)
        app.state.chat_services = ChatServices.from_env(store, llm_adapter, images)
        logger.info("startup.llm_initialized", healthy=llm_adapter.is_healthy(), model=llm_adapter.model_name)
    except Exception as e:
        app.state.chat_services = None
        logger.error("startup.llm_failed", error=str(e), hint="Set OPENAI_API_KEY in .env")

    logger.info("startup.complete")
    yield
    http_client.close()
    logger.info("shutdown.complete")


app = FastAPI(
    title="Project Chat API",
    description="Project-scoped chat with document search, web search and image generation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
