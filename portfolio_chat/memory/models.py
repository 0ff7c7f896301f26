import time
import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Text

from .db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> int:
    return int(time.time())


class User(Base):
    """A visitor who left contact details through the site."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)


class ChatSession(Base):
    """A local chat session of the completion route.

    ``last_active_at`` is bumped on every message or history read so idle
    sessions can be cleaned up.
    """

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)
    last_active_at = Column(Integer, nullable=False, default=_now)


class ChatMessage(Base):
    """ORM model representing a single chat turn.

    Attributes
    ----------
    id
        UUID string primary key.
    user_id
        Pseudo user id sent by the client; null for assistant turns.
    content
        The natural-language message.
    role
        "user", "assistant" or "system" – mirrors OpenAI ChatCompletion roles
        so that stored turns can be reused verbatim in prompts.
    created_at
        Epoch seconds when the message was stored.
    session_id
        Id of the owning session row.
    """

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=True)
    content = Column(Text, nullable=False)
    role = Column(String(16), nullable=False)
    created_at = Column(Integer, nullable=False, default=_now)
    session_id = Column(String(64), index=True, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)
    updated_at = Column(Integer, nullable=False, default=_now)


class ChatProjectLink(Base):
    """Connects a chat message to a project it talks about."""

    __tablename__ = "chat_project_links"

    id = Column(String(36), primary_key=True, default=_new_id)
    chat_message_id = Column(String(36), ForeignKey("chat_messages.id"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    created_at = Column(Integer, nullable=False, default=_now)


class TelemetryEvent(Base):
    __tablename__ = "telemetry_events"

    id = Column(String(36), primary_key=True, default=_new_id)
    event_type = Column(String(64), index=True, nullable=False)
    event_data = Column(Text, nullable=True)  # JSON-encoded payload
    user_id = Column(String(64), nullable=True)
    session_id = Column(String(64), nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)
