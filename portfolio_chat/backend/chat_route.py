"""Non-streaming chat route backed by local SQLite history.

Every turn is persisted locally; the last ``HISTORY_LIMIT`` messages of the
session are replayed to a blocking chat completion call as context.
"""

from typing import Optional

import openai
from fastapi import APIRouter, Depends, Query
from loguru import logger

from portfolio_chat import config
from portfolio_chat.backend.schemas import ChatRequest
from portfolio_chat.llm.completion import generate_chat_completion
from portfolio_chat.llm.prompt_builder import build_messages
from portfolio_chat.memory import crud
from portfolio_chat.utils.error_handler import ApiError
from portfolio_chat.utils.feature_flags import is_feature_enabled
from portfolio_chat.utils.openai_client import get_openai_client

router = APIRouter(tags=["chat"])

HISTORY_LIMIT = 10

_client: openai.OpenAI | None = None


def get_completion_client() -> openai.OpenAI | None:
    """Lazily build the shared blocking client; None when no API key is configured."""
    global _client
    if _client is None:
        try:
            _client = get_openai_client()
        except ValueError as e:
            logger.error("Failed to initialise OpenAI client: {}", e)
            return None
    return _client


def _ensure_session(session_id: Optional[str], user_id: Optional[str]) -> str:
    """Return a usable session id, creating the session row when needed."""
    if not session_id:
        return crud.create_session(user_id)["id"]
    if not crud.update_session_activity(session_id):
        crud.create_session(user_id, session_id=session_id)
    return session_id


@router.post("/api/chat")
def send_message(
    req: ChatRequest,
    client: openai.OpenAI | None = Depends(get_completion_client),
):
    if not req.message:
        raise ApiError(400, "Message is required")

    session_id = _ensure_session(req.sessionId, req.userId)

    # History is read before the new turn is stored so it is not sent twice.
    history = crud.fetch_history(session_id, limit=HISTORY_LIMIT)
    crud.log_message(session_id, "user", req.message, user_id=req.userId)

    if is_feature_enabled("record_telemetry"):
        crud.record_event("message_sent", None, req.userId, session_id)

    if client is None:
        raise ApiError(500, "OpenAI client not initialized. Check server logs.")

    messages = build_messages(
        req.message,
        owner_name=config.PORTFOLIO_OWNER_NAME,
        documentation=config.SYSTEM_PROMPT_DOCUMENTATION,
        chat_history=history,
    )

    try:
        reply = generate_chat_completion(
            client,
            messages,
            model=config.OPENAI_COMPLETION_MODEL,
            temperature=config.OPENAI_COMPLETION_TEMPERATURE,
            max_tokens=config.OPENAI_COMPLETION_MAX_TOKENS,
        )
    except Exception as e:
        logger.error("Chat API error: {}", e)
        raise ApiError(500, "Failed to process message", str(e))

    # Persist the reply only after a successful completion.
    assistant_message = crud.log_message(session_id, "assistant", reply)

    return {"sessionId": session_id, "message": assistant_message, "success": True}


@router.get("/api/chat")
def get_chat_history(session_id: Optional[str] = Query(default=None, alias="sessionId")):
    if not session_id:
        raise ApiError(400, "Session ID is required")

    crud.update_session_activity(session_id)
    messages = crud.find_messages_by_session(session_id)
    return {"sessionId": session_id, "messages": messages, "success": True}


@router.delete("/api/chat")
def delete_chat_session(session_id: Optional[str] = Query(default=None, alias="sessionId")):
    if not session_id:
        raise ApiError(400, "Session ID is required")

    crud.delete_messages_by_session(session_id)
    crud.delete_session(session_id)
    logger.info("Deleted local chat session {}", session_id)
    return {"success": True, "message": "Chat session deleted"}
