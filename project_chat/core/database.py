"""SQLAlchemy persistence for projects, chats, instructions and messages.

ProjectStore owns its engine and session factory so the chat pipeline can be
handed a store (or a fake) explicitly. Reads always exclude soft-deleted rows;
messages are append-only.
"""

import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

import structlog
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, create_engine, func
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from project_chat.api.schemas import ChatRecord, ChatWithMessages, MessageRecord, ProjectRecord

logger = structlog.get_logger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///data/project_chat.sqlite"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Project(Base):
    """Named workspace owned by a single user."""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String(255), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    vector_store_id = Column(String(255), nullable=True)  # document index id
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now)


class ProjectInstructions(Base):
    """One custom-instructions record per project."""
    __tablename__ = "project_instructions"

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    instructions = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=True, default=_now)
    updated_by = Column(String(255), nullable=True)


class ProjectChat(Base):
    __tablename__ = "project_chats"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now)
    deleted_at = Column(DateTime, nullable=True)


class ProjectMessage(Base):
    """Persisted chat message row."""
    __tablename__ = "project_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(36), ForeignKey("project_chats.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(32), nullable=False)  # "user" or "assistant"
    content = Column(Text, nullable=False)
    rich = Column(JSON, nullable=True)  # image / citation metadata
    created_at = Column(DateTime, nullable=False, default=_now)
    created_by = Column(String(255), nullable=True)


class ProjectStore:
    """Data access for the project chat feature."""

    def __init__(self, database_url: str | None = None):
        """Create the engine. Call init() once before use.

        Args:
            database_url: SQLAlchemy connection string. Defaults to DATABASE_URL env var.
        """
        self.url = database_url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)

        if self.url.startswith("sqlite") and ":memory:" in self.url:
            # Share one connection so every thread sees the same in-memory database
            self._engine = create_engine(
                self.url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            if self.url.startswith("sqlite:///"):
                Path(self.url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(self.url, echo=False)

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    def init(self) -> None:
        """Create tables if they do not exist."""
        Base.metadata.create_all(self._engine)
        logger.info("db.initialized", url=self.url.split("///")[0] + "///***")

    def reset(self) -> None:
        """Drop and recreate all tables."""
        Base.metadata.drop_all(self._engine)
        Base.metadata.create_all(self._engine)
        logger.warning("db.reset")

    def session(self) -> Session:
        """Get a new database session."""
        return self._session_factory()

    def is_healthy(self) -> bool:
        try:
            with self._engine.connect():
                return True
        except Exception as e:
            logger.error("db.unhealthy", error=str(e))
            return False

    # Projects

    def create_project(self, owner_id: str, name: str, description: str | None = None) -> ProjectRecord:
        now = _now()
        with self.session() as session:
            project = Project(
                id=_new_id(),
                owner_id=owner_id,
                name=name,
                description=description,
                created_at=now,
                updated_at=now,
            )
            session.add(project)
            session.commit()
            logger.info("db.project_created", project_id=project.id)
            return _project_record(project)

    def list_projects(self, owner_id: str) -> list[ProjectRecord]:
        with self.session() as session:
            rows = (
                session.query(Project)
                .filter(Project.owner_id == owner_id, Project.deleted_at.is_(None))
                .order_by(Project.updated_at.desc())
                .all()
            )
            return [_project_record(r) for r in rows]

    def get_project(self, project_id: str, owner_id: str) -> ProjectRecord | None:
        """Fetch a live project owned by owner_id, or None."""
        with self.session() as session:
            row = _live_project(session, project_id, owner_id)
            return _project_record(row) if row else None

    def update_project(
        self,
        project_id: str,
        owner_id: str,
        name: str | None = None,
        description: str | None = None,
        document_index_id: str | None = None,
    ) -> ProjectRecord | None:
        with self.session() as session:
            row = _live_project(session, project_id, owner_id)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if description is not None:
                row.description = description
            if document_index_id is not None:
                row.vector_store_id = document_index_id or None
            row.updated_at = _now()
            session.commit()
            return _project_record(row)

    def delete_project(self, project_id: str, owner_id: str) -> bool:
        """Soft-delete a project. Returns False if it was not found."""
        with self.session() as session:
            row = _live_project(session, project_id, owner_id)
            if row is None:
                return False
            now = _now()
            row.deleted_at = now
            row.updated_at = now
            session.commit()
            logger.info("db.project_deleted", project_id=project_id)
            return True

    # Instructions

    def get_instructions(self, project_id: str) -> str | None:
        with self.session() as session:
            row = session.get(ProjectInstructions, project_id)
            return row.instructions if row else None

    def upsert_instructions(self, project_id: str, instructions: str, updated_by: str) -> None:
        with self.session() as session:
            row = session.get(ProjectInstructions, project_id)
            if row is None:
                row = ProjectInstructions(project_id=project_id)
                session.add(row)
            row.instructions = instructions
            row.updated_at = _now()
            row.updated_by = updated_by
            session.commit()

    # Chats

    def create_chat(self, project_id: str, title: str, created_by: str) -> ChatRecord:
        now = _now()
        with self.session() as session:
            chat = ProjectChat(
                id=_new_id(),
                project_id=project_id,
                title=title,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            session.add(chat)
            session.commit()
            return _chat_record(chat)

    def get_chat(self, chat_id: str, project_id: str) -> ChatRecord | None:
        """Fetch a live chat under project_id, or None."""
        with self.session() as session:
            row = _live_chat(session, chat_id, project_id)
            return _chat_record(row) if row else None

    def count_chats(self, project_id: str) -> int:
        with self.session() as session:
            return (
                session.query(func.count(ProjectChat.id))
                .filter(ProjectChat.project_id == project_id, ProjectChat.deleted_at.is_(None))
                .scalar()
            ) or 0

    def list_chats(self, project_id: str) -> list[ChatWithMessages]:
        """Live chats, most recently active first, each with messages oldest first."""
        with self.session() as session:
            chats = (
                session.query(ProjectChat)
                .filter(ProjectChat.project_id == project_id, ProjectChat.deleted_at.is_(None))
                .order_by(ProjectChat.updated_at.desc())
                .all()
            )
            if not chats:
                return []

            rows = (
                session.query(ProjectMessage)
                .filter(ProjectMessage.chat_id.in_([c.id for c in chats]))
                .order_by(ProjectMessage.created_at.asc(), ProjectMessage.id.asc())
                .all()
            )
            by_chat: dict[str, list[MessageRecord]] = {}
            for row in rows:
                by_chat.setdefault(row.chat_id, []).append(_message_record(row))

            return [
                ChatWithMessages(**_chat_record(c).model_dump(), messages=by_chat.get(c.id, []))
                for c in chats
            ]

    def rename_chat(self, chat_id: str, project_id: str, title: str) -> ChatRecord | None:
        with self.session() as session:
            row = _live_chat(session, chat_id, project_id)
            if row is None:
                return None
            row.title = title
            row.updated_at = _now()
            session.commit()
            return _chat_record(row)

    def delete_chat(self, chat_id: str, project_id: str) -> bool:
        """Soft-delete a chat. Messages are kept behind the tombstone."""
        with self.session() as session:
            row = _live_chat(session, chat_id, project_id)
            if row is None:
                return False
            now = _now()
            row.deleted_at = now
            row.updated_at = now
            session.commit()
            return True

    # Messages

    def get_messages(self, chat_id: str) -> list[MessageRecord]:
        with self.session() as session:
            rows = (
                session.query(ProjectMessage)
                .filter(ProjectMessage.chat_id == chat_id)
                .order_by(ProjectMessage.created_at.asc(), ProjectMessage.id.asc())
                .all()
            )
            return [_message_record(r) for r in rows]

    def record_turn(
        self,
        chat_id: str,
        caller_id: str,
        user_text: str,
        assistant_text: str,
        rich: dict | None = None,
    ) -> None:
        """Append the user and assistant messages and bump the chat's updated_at.

        All three writes share one transaction.
        """
        now = _now()
        with self.session() as session:
            session.add(ProjectMessage(
                chat_id=chat_id,
                role="user",
                content=user_text,
                created_at=now,
                created_by=caller_id,
            ))
            session.add(ProjectMessage(
                chat_id=chat_id,
                role="assistant",
                content=assistant_text,
                rich=rich,
                created_at=now,
            ))
            session.query(ProjectChat).filter(ProjectChat.id == chat_id).update({"updated_at": now})
            session.commit()
            logger.debug("db.turn_saved", chat_id=chat_id)


def _live_project(session: Session, project_id: str, owner_id: str) -> Project | None:
    return (
        session.query(Project)
        .filter(
            Project.id == project_id,
            Project.owner_id == owner_id,
            Project.deleted_at.is_(None),
        )
        .first()
    )


def _live_chat(session: Session, chat_id: str, project_id: str) -> ProjectChat | None:
    return (
        session.query(ProjectChat)
        .filter(
            ProjectChat.id == chat_id,
            ProjectChat.project_id == project_id,
            ProjectChat.deleted_at.is_(None),
        )
        .first()
    )


def _project_record(row: Project) -> ProjectRecord:
    """Convert a SQLAlchemy row to a Pydantic ProjectRecord."""
    return ProjectRecord(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        document_index_id=row.vector_store_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _chat_record(row: ProjectChat) -> ChatRecord:
    return ChatRecord(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _message_record(row: ProjectMessage) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        chat_id=row.chat_id,
        role=row.role,
        content=row.content,
        rich=row.rich,
        created_at=row.created_at,
    )
