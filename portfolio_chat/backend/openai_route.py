from __future__ import annotations

"""Streaming chat route backed by the OpenAI Assistants API.

POST   /api/chat/openai   append a message to a thread and stream the run
GET    /api/chat/openai   thread history, oldest first
DELETE /api/chat/openai   delete the thread

The stream is a sequence of ``data: {json}\\n\\n`` frames with a ``type`` of
``content`` (one text delta), ``error`` or ``complete`` (always last, carries
the thread id and the full text).
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from portfolio_chat import config
from portfolio_chat.backend.schemas import ChatRequest
from portfolio_chat.llm.message_content import extract_message_content
from portfolio_chat.utils.error_handler import ApiError
from portfolio_chat.utils.feature_flags import is_feature_enabled
from portfolio_chat.utils.openai_client import get_async_openai_client

router = APIRouter(tags=["chat-openai"])

TOOL_STUB_OUTPUT = "This feature is not available in the demo."
TOOL_CALLS_UNSUPPORTED_MESSAGE = "Function calls are not fully supported in this demo."
STREAM_FAILURE_MESSAGE = "An error occurred while processing the stream."

# Run events after which the run will not produce any more output.
TERMINAL_FAILURE_EVENTS = {
    "thread.run.failed": "failed",
    "thread.run.cancelled": "cancelled",
    "thread.run.expired": "expired",
    "thread.run.incomplete": "incomplete",
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

if not config.OPENAI_ASSISTANT_ID:
    logger.error("FATAL ERROR: OPENAI_ASSISTANT_ID environment variable is not set.")

_client: openai.AsyncOpenAI | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_assistant_client() -> openai.AsyncOpenAI | None:
    """Lazily build the shared async client; None when no API key is configured."""
    global _client
    if _client is None:
        try:
            _client = get_async_openai_client()
        except ValueError as e:
            logger.error("Failed to initialise OpenAI client: {}", e)
            return None
    return _client


def get_assistant_id() -> Optional[str]:
    return config.OPENAI_ASSISTANT_ID


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


def _require_client(client: openai.AsyncOpenAI | None) -> openai.AsyncOpenAI:
    if client is None:
        raise ApiError(500, "OpenAI client not initialized. Check server logs.")
    return client


async def _resolve_thread(client: openai.AsyncOpenAI, thread_id: Optional[str]) -> str:
    """Return ``thread_id`` if it still exists, otherwise the id of a new thread."""
    if thread_id:
        try:
            thread = await client.beta.threads.retrieve(thread_id)
            return thread.id
        except Exception as e:
            # Stale ids cached by the browser must never fail a send.
            logger.warning("Failed to retrieve thread {}: {}; creating a new one", thread_id, e)
    thread = await client.beta.threads.create()
    return thread.id


def _text_deltas(data: Any) -> List[str]:
    delta = getattr(data, "delta", None)
    parts = getattr(delta, "content", None) or []
    values = []
    for part in parts:
        if getattr(part, "type", None) != "text":
            continue
        value = getattr(getattr(part, "text", None), "value", None)
        if value:
            values.append(value)
    return values


def _requested_tool_calls(run: Any) -> List[Any]:
    required_action = getattr(run, "required_action", None)
    submit = getattr(required_action, "submit_tool_outputs", None)
    return list(getattr(submit, "tool_calls", None) or [])


def _describe_run_failure(run: Any, status: str) -> str:
    last_error = getattr(run, "last_error", None)
    detail = getattr(last_error, "message", None)
    if detail:
        return f"The assistant run {status}: {detail}"
    return f"The assistant run ended with status '{status}'."


async def _submit_stub_outputs(
    client: openai.AsyncOpenAI,
    thread_id: str,
    run_id: str,
    tool_calls: List[Any],
) -> None:
    """Answer every requested tool call with a fixed placeholder so the run can finish."""
    await client.beta.threads.runs.submit_tool_outputs(
        run_id,
        thread_id=thread_id,
        tool_outputs=[{"tool_call_id": call.id, "output": TOOL_STUB_OUTPUT} for call in tool_calls],
    )


async def relay_run_events(
    client: openai.AsyncOpenAI,
    thread_id: str,
    assistant_id: str,
    request: Request,
) -> AsyncIterator[str]:
    """Start a streaming run on ``thread_id`` and re-emit it as chat stream frames."""
    accumulated = ""
    requires_action = False
    disconnected = False

    try:
        # Leaving the context manager closes the provider stream.
        async with client.beta.threads.runs.stream(
            thread_id=thread_id,
            assistant_id=assistant_id,
        ) as stream:
            async for event in stream:
                if await request.is_disconnected():
                    disconnected = True
                    logger.info("Client disconnected, aborting run stream for thread {}", thread_id)
                    break

                name = event.event
                if name == "thread.message.delta":
                    for value in _text_deltas(event.data):
                        accumulated += value
                        yield format_sse({"type": "content", "content": value, "threadId": thread_id})

                elif name == "thread.run.requires_action":
                    tool_calls = _requested_tool_calls(event.data)
                    if tool_calls:
                        requires_action = True
                        if is_feature_enabled("stub_tool_calls"):
                            await _submit_stub_outputs(client, thread_id, event.data.id, tool_calls)

                elif name == "thread.run.completed":
                    break

                elif name in TERMINAL_FAILURE_EVENTS:
                    status = TERMINAL_FAILURE_EVENTS[name]
                    logger.warning("Run on thread {} ended as {}", thread_id, status)
                    yield format_sse({"type": "error", "content": _describe_run_failure(event.data, status)})
                    break

        if requires_action and not disconnected:
            yield format_sse({"type": "error", "content": TOOL_CALLS_UNSUPPORTED_MESSAGE})

    except Exception as e:
        logger.exception("Stream error on thread {}: {}", thread_id, e)
        yield format_sse({"type": "error", "content": STREAM_FAILURE_MESSAGE})

    finally:
        logger.debug("Run stream for thread {} closed", thread_id)

    if not disconnected:
        yield format_sse({"type": "complete", "threadId": thread_id, "content": accumulated})


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/api/chat/openai")
async def send_message(
    req: ChatRequest,
    request: Request,
    client: openai.AsyncOpenAI | None = Depends(get_assistant_client),
    assistant_id: Optional[str] = Depends(get_assistant_id),
):
    if not req.message:
        raise ApiError(400, "Message is required")
    if not assistant_id:
        raise ApiError(500, "Assistant configuration error.")
    client = _require_client(client)

    try:
        thread_id = await _resolve_thread(client, req.sessionId)
        await client.beta.threads.messages.create(thread_id, role="user", content=req.message)
    except Exception as e:
        logger.error("Streaming error: {}", e)
        raise ApiError(500, "Failed to process message", str(e))

    logger.info("Streaming run on thread {} (user={})", thread_id, req.userId)
    return StreamingResponse(
        relay_run_events(client, thread_id, assistant_id, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/api/chat/openai")
async def get_chat_history(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    client: openai.AsyncOpenAI | None = Depends(get_assistant_client),
):
    if not session_id:
        raise ApiError(400, "Thread ID is required")
    client = _require_client(client)

    try:
        messages = []
        async for msg in client.beta.threads.messages.list(session_id, order="asc"):
            messages.append({
                "id": msg.id,
                "role": msg.role,
                "content": extract_message_content(msg.content),
                "created_at": msg.created_at,
            })
    except Exception as e:
        logger.error("Chat history GET API error: {}", e)
        raise ApiError(500, "Failed to retrieve chat history", str(e))

    return {"sessionId": session_id, "messages": messages, "success": True}


@router.delete("/api/chat/openai")
async def delete_chat_session(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    client: openai.AsyncOpenAI | None = Depends(get_assistant_client),
):
    if not session_id:
        raise ApiError(400, "Thread ID is required")
    client = _require_client(client)

    try:
        await client.beta.threads.delete(session_id)
    except Exception as e:
        logger.error("Chat delete API error: {}", e)
        raise ApiError(500, "Failed to delete chat session", str(e))

    logger.info("Deleted OpenAI thread {}", session_id)
    return {"success": True, "message": "Chat session deleted successfully"}
