import json
import time
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import literal_column
from sqlalchemy.orm import Session

from .db import SessionLocal, init_db
from .models import (
    ChatMessage,
    ChatProjectLink,
    ChatSession,
    Project,
    TelemetryEvent,
    User,
)

# Ensure tables exist on first import.
init_db()

# SQLite keeps insertion order in ``rowid``; used to break ties between rows
# stored within the same second.
_MESSAGE_ROWID = literal_column("chat_messages.rowid")


def _now() -> int:
    return int(time.time())


def _row_to_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def create_session(user_id: Optional[str] = None, session_id: Optional[str] = None) -> Dict[str, Any]:
    """Create a new session row, optionally under a caller-chosen id."""
    db: Session = SessionLocal()
    try:
        now = _now()
        row = ChatSession(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id or None,
            created_at=now,
            last_active_at=now,
        )
        db.add(row)
        db.commit()
        return _row_to_dict(row)
    finally:
        db.close()


def find_session(session_id: str) -> Optional[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        row = db.get(ChatSession, session_id)
        return _row_to_dict(row) if row else None
    finally:
        db.close()


def update_session_activity(session_id: str) -> bool:
    """Bump ``last_active_at``. Returns False when the session does not exist."""
    db: Session = SessionLocal()
    try:
        updated = (
            db.query(ChatSession)
            .filter(ChatSession.id == session_id)
            .update({ChatSession.last_active_at: _now()})
        )
        db.commit()
        return updated > 0
    finally:
        db.close()


def set_session_user(session_id: str, user_id: str) -> bool:
    db: Session = SessionLocal()
    try:
        updated = (
            db.query(ChatSession)
            .filter(ChatSession.id == session_id)
            .update({ChatSession.user_id: user_id})
        )
        db.commit()
        return updated > 0
    finally:
        db.close()


def find_sessions_by_user(user_id: str) -> List[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        rows = (
            db.query(ChatSession)
            .filter(ChatSession.user_id == user_id)
            .order_by(ChatSession.last_active_at.desc())
            .all()
        )
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


def delete_session(session_id: str) -> bool:
    db: Session = SessionLocal()
    try:
        deleted = db.query(ChatSession).filter(ChatSession.id == session_id).delete()
        db.commit()
        return deleted > 0
    finally:
        db.close()


def cleanup_old_sessions(max_age_days: int = 30) -> int:
    """Delete sessions idle for longer than ``max_age_days``. Returns the count removed."""
    cutoff = _now() - max_age_days * 24 * 60 * 60
    db: Session = SessionLocal()
    try:
        deleted = db.query(ChatSession).filter(ChatSession.last_active_at < cutoff).delete()
        db.commit()
        return deleted
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Chat messages
# ---------------------------------------------------------------------------

def log_message(
    session_id: str,
    role: str,
    content: str,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Persist a single chat turn to the DB and return it."""
    if not session_id:
        raise ValueError("Messages are only stored against an explicit session")
    db: Session = SessionLocal()
    try:
        msg = ChatMessage(
            id=str(uuid.uuid4()),
            user_id=user_id or None,
            content=content,
            role=role,
            session_id=session_id,
            created_at=_now(),
        )
        db.add(msg)
        db.commit()
        return _row_to_dict(msg)
    finally:
        db.close()


def find_message(message_id: str) -> Optional[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        row = db.get(ChatMessage, message_id)
        return _row_to_dict(row) if row else None
    finally:
        db.close()


def find_messages_by_session(session_id: str) -> List[Dict[str, Any]]:
    """Return every message of ``session_id``, oldest first."""
    db: Session = SessionLocal()
    try:
        rows = (
            db.query(ChatMessage)
            .filter(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.asc(), _MESSAGE_ROWID.asc())
            .all()
        )
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


def find_messages_by_user(user_id: str) -> List[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        rows = (
            db.query(ChatMessage)
            .filter(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.created_at.desc(), _MESSAGE_ROWID.desc())
            .all()
        )
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


def fetch_history(session_id: str, limit: int = 10) -> List[Dict[str, str]]:
    """Return the *most recent* ``limit`` chat turns for ``session_id``.

    The list is returned in chronological order (oldest → newest) so that it
    can be appended to a prompt without additional sorting.
    """
    if not session_id:
        return []

    db: Session = SessionLocal()
    try:
        rows = (
            db.query(ChatMessage)
            .filter(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.desc(), _MESSAGE_ROWID.desc())
            .limit(limit)
            .all()
        )
        # Reverse so we go from oldest → newest.
        rows.reverse()
        return [{"role": r.role, "content": r.content} for r in rows]
    finally:
        db.close()


def delete_messages_by_session(session_id: str) -> bool:
    db: Session = SessionLocal()
    try:
        deleted = db.query(ChatMessage).filter(ChatMessage.session_id == session_id).delete()
        db.commit()
        return deleted > 0
    finally:
        db.close()


def find_messages_by_project(project_id: str) -> List[Dict[str, Any]]:
    """Return messages linked to ``project_id``, newest first."""
    db: Session = SessionLocal()
    try:
        rows = (
            db.query(ChatMessage)
            .join(ChatProjectLink, ChatProjectLink.chat_message_id == ChatMessage.id)
            .filter(ChatProjectLink.project_id == project_id)
            .order_by(ChatMessage.created_at.desc())
            .all()
        )
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def create_user(email: str, name: Optional[str] = None) -> Dict[str, Any]:
    db: Session = SessionLocal()
    try:
        user = User(id=str(uuid.uuid4()), email=email, name=name or None, created_at=_now())
        db.add(user)
        db.commit()
        return _row_to_dict(user)
    finally:
        db.close()


def find_user(user_id: str) -> Optional[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        row = db.get(User, user_id)
        return _row_to_dict(row) if row else None
    finally:
        db.close()


def find_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        row = db.query(User).filter(User.email == email).first()
        return _row_to_dict(row) if row else None
    finally:
        db.close()


def update_user(user_id: str, **fields: Any) -> Optional[Dict[str, Any]]:
    """Update ``email`` and/or ``name``; ``None`` values are left untouched."""
    db: Session = SessionLocal()
    try:
        user = db.get(User, user_id)
        if user is None:
            return None
        for key in ("email", "name"):
            if fields.get(key) is not None:
                setattr(user, key, fields[key])
        db.commit()
        return _row_to_dict(user)
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def create_project(
    title: str,
    description: Optional[str] = None,
    content: Optional[str] = None,
) -> Dict[str, Any]:
    db: Session = SessionLocal()
    try:
        now = _now()
        project = Project(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            content=content,
            created_at=now,
            updated_at=now,
        )
        db.add(project)
        db.commit()
        return _row_to_dict(project)
    finally:
        db.close()


def find_project(project_id: str) -> Optional[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        row = db.get(Project, project_id)
        return _row_to_dict(row) if row else None
    finally:
        db.close()


def find_all_projects() -> List[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        rows = db.query(Project).order_by(Project.created_at.desc()).all()
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


def update_project(project_id: str, **fields: Any) -> Optional[Dict[str, Any]]:
    """Partially update a project and bump ``updated_at``. ``None`` values are skipped."""
    db: Session = SessionLocal()
    try:
        project = db.get(Project, project_id)
        if project is None:
            return None
        for key in ("title", "description", "content"):
            if fields.get(key) is not None:
                setattr(project, key, fields[key])
        project.updated_at = _now()
        db.commit()
        return _row_to_dict(project)
    finally:
        db.close()


def delete_project(project_id: str) -> bool:
    db: Session = SessionLocal()
    try:
        db.query(ChatProjectLink).filter(ChatProjectLink.project_id == project_id).delete()
        deleted = db.query(Project).filter(Project.id == project_id).delete()
        db.commit()
        return deleted > 0
    finally:
        db.close()


def link_project_to_message(project_id: str, chat_message_id: str) -> Dict[str, Any]:
    db: Session = SessionLocal()
    try:
        link = ChatProjectLink(
            id=str(uuid.uuid4()),
            project_id=project_id,
            chat_message_id=chat_message_id,
            created_at=_now(),
        )
        db.add(link)
        db.commit()
        return _row_to_dict(link)
    finally:
        db.close()


def find_projects_by_message(chat_message_id: str) -> List[Dict[str, Any]]:
    db: Session = SessionLocal()
    try:
        rows = (
            db.query(Project)
            .join(ChatProjectLink, ChatProjectLink.project_id == Project.id)
            .filter(ChatProjectLink.chat_message_id == chat_message_id)
            .order_by(Project.created_at.desc())
            .all()
        )
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

def record_event(
    event_type: str,
    event_data: Any = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Store a telemetry event; ``event_data`` is JSON-encoded when given."""
    db: Session = SessionLocal()
    try:
        event = TelemetryEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            event_data=json.dumps(event_data) if event_data else None,
            user_id=user_id or None,
            session_id=session_id or None,
            created_at=_now(),
        )
        db.add(event)
        db.commit()
        return _row_to_dict(event)
    finally:
        db.close()


def find_events(
    event_type: Optional[str] = None,
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    start_time: Optional[int] = None,
    end_time: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Return telemetry events matching every given filter, newest first."""
    db: Session = SessionLocal()
    try:
        query = db.query(TelemetryEvent)
        if event_type is not None:
            query = query.filter(TelemetryEvent.event_type == event_type)
        if session_id is not None:
            query = query.filter(TelemetryEvent.session_id == session_id)
        if user_id is not None:
            query = query.filter(TelemetryEvent.user_id == user_id)
        if start_time is not None:
            query = query.filter(TelemetryEvent.created_at >= start_time)
        if end_time is not None:
            query = query.filter(TelemetryEvent.created_at <= end_time)
        rows = query.order_by(TelemetryEvent.created_at.desc()).all()
        return [_row_to_dict(r) for r in rows]
    finally:
        db.close()


def cleanup_old_events(max_age_days: int = 90) -> int:
    """Delete telemetry events older than ``max_age_days``. Returns the count removed."""
    cutoff = _now() - max_age_days * 24 * 60 * 60
    db: Session = SessionLocal()
    try:
        deleted = db.query(TelemetryEvent).filter(TelemetryEvent.created_at < cutoff).delete()
        db.commit()
        return deleted
    finally:
        db.close()
