from __future__ import annotations

"""Client-side chat session state.

``ChatHistoryClient`` owns everything a chat widget needs: the session id
(thread id for OpenAI), a stable pseudo user id, the message list and the
loading flag. It talks to whichever provider route :class:`ProviderConfig`
selects, consumes the streamed reply and keeps the optimistic local messages
in step with what the server reports.

Storage and HTTP are injected so the client can run under Streamlit, a CLI or
a test without changes.
"""

import codecs
import math
import random
import string
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import requests

from portfolio_chat.llm.provider_config import LLMProvider, ProviderConfig
from portfolio_chat.utils.error_handler import StreamEventError, handle_exceptions
from portfolio_chat.utils.logger import get_logger

from .storage import KeyValueStorage, MemoryStorage
from .stream_parser import StreamParser

logger = get_logger(__name__)

SESSION_STORAGE_KEY = "chatSessionId"
USER_STORAGE_KEY = "chatUserId"

VALID_ROLES = ("user", "assistant", "system")

APOLOGY_MESSAGE = "Sorry, I encountered an error. Please try again."
HISTORY_UNAVAILABLE_MESSAGE = "Failed to load chat history. Please try again later."
HISTORY_NETWORK_ERROR_MESSAGE = "Network error while loading chat history. Please check your connection."
MISSING_CONTENT_MESSAGE = "Message content unavailable"

Content = Union[str, List[Dict[str, Any]]]


@dataclass
class ChatMessage:
    """A message as the chat widget renders it.

    ``content`` is either plain text or the raw OpenAI list of content parts;
    render it through ``extract_message_content``. ``is_streaming`` is local
    state only and never sent to the server.
    """

    id: str
    content: Content
    role: str
    created_at: int
    is_streaming: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def _now_ms() -> float:
    return time.time() * 1000


def generate_user_id(clock: Callable[[], float] = _now_ms) -> str:
    return f"user-{int(clock())}-{_random_suffix()}"


def normalize_incoming_message(raw: Any, now: Optional[int] = None) -> ChatMessage:
    """Coerce one history record into a :class:`ChatMessage`.

    * ``id``: kept when truthy, otherwise generated.
    * ``content``: the first of ``content``, ``text``, ``message`` holding a
      string, otherwise a fixed placeholder.
    * ``role``: kept when valid, otherwise ``system``.
    * ``created_at``: kept when a finite number, otherwise ``now``.
    """
    record: Dict[str, Any] = raw if isinstance(raw, dict) else {}
    now = int(time.time()) if now is None else now

    message_id = record.get("id")
    if not message_id:
        message_id = f"normalized-{int(_now_ms())}-{_random_suffix()}"

    content = next(
        (record[key] for key in ("content", "text", "message") if isinstance(record.get(key), str)),
        MISSING_CONTENT_MESSAGE,
    )

    role = record.get("role")
    if role not in VALID_ROLES:
        role = "system"

    created_at = record.get("created_at")
    if isinstance(created_at, bool) or not isinstance(created_at, (int, float)) or not math.isfinite(created_at):
        created_at = now

    return ChatMessage(id=str(message_id), content=content, role=role, created_at=int(created_at))


class ChatHistoryClient:
    """Session, history and streaming state for one chat widget."""

    def __init__(
        self,
        provider_config: ProviderConfig | None = None,
        *,
        base_url: str = "http://localhost:8000",
        session_storage: KeyValueStorage | None = None,
        durable_storage: KeyValueStorage | None = None,
        http: requests.Session | None = None,
        timeout: Tuple[float, float] = (10.0, 60.0),
        clock: Callable[[], float] = _now_ms,
    ):
        self.provider_config = provider_config or ProviderConfig()
        self.base_url = base_url.rstrip("/")
        self.session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.durable_storage = durable_storage if durable_storage is not None else MemoryStorage()
        self.http = http or requests.Session()
        self.timeout = timeout
        self._clock = clock

        self.messages: List[ChatMessage] = []
        self.session_id: Optional[str] = None
        self.user_id: Optional[str] = None
        self.is_loading = False
        self._send_lock = threading.Lock()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def active_provider(self) -> LLMProvider:
        return self.provider_config.provider

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url}{self.provider_config.endpoint}"

    def set_messages(self, messages: List[ChatMessage]) -> None:
        self.messages = list(messages)

    def set_is_loading(self, value: bool) -> None:
        self.is_loading = value

    def _now_seconds(self) -> int:
        return int(self._clock() // 1000)

    def _new_message_id(self, prefix: str) -> str:
        return f"{prefix}-{int(self._clock())}-{_random_suffix(5)}"

    def _append_system_message(self, content: str, prefix: str) -> None:
        self.messages = [
            *self.messages,
            ChatMessage(
                id=self._new_message_id(prefix),
                content=content,
                role="system",
                created_at=self._now_seconds(),
            ),
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Restore identity from storage and reload history of a known session."""
        stored_session_id = self.session_storage.get(SESSION_STORAGE_KEY)

        self.user_id = self.durable_storage.get(USER_STORAGE_KEY)
        if not self.user_id:
            self.user_id = generate_user_id(self._clock)
            self.durable_storage.set(USER_STORAGE_KEY, self.user_id)

        if stored_session_id:
            self.session_id = stored_session_id
            self.fetch_chat_history(stored_session_id)

    def fetch_chat_history(self, session_id: str) -> None:
        """Replace ``messages`` with the server's history. Failures become system notices."""
        try:
            response = self.http.get(
                self.endpoint_url,
                params={"sessionId": session_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Network error fetching chat history: %s", e)
            self._append_system_message(HISTORY_NETWORK_ERROR_MESSAGE, "error-fetch-net")
            return

        if not response.ok:
            logger.error("Error fetching chat history (%s): %s", response.status_code, response.text)
            self._append_system_message(HISTORY_UNAVAILABLE_MESSAGE, "error-fetch")
            return

        try:
            data = response.json()
        except ValueError:
            logger.error("Received non-JSON response when fetching history: %s", response.text[:500])
            return

        records = data.get("messages") if isinstance(data, dict) else None
        if not isinstance(records, list):
            logger.error("Failed to parse chat history: %s", data)
            return

        now = self._now_seconds()
        self.messages = [normalize_incoming_message(record, now=now) for record in records]

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send_message(self, text: str) -> bool:
        """Send ``text`` and stream the reply into a placeholder assistant message.

        Returns True when the stream finished cleanly. On any failure the
        placeholder shows an apology and False is returned; the caller decides
        whether to start a cooldown.
        """
        if not isinstance(text, str) or not text.strip():
            return False

        if not self._send_lock.acquire(blocking=False):
            logger.warning("A message is already in flight; ignoring overlapping send")
            return False
        try:
            return self._send(text)
        finally:
            self._send_lock.release()

    def _send(self, text: str) -> bool:
        now = self._now_seconds()
        user_message = ChatMessage(id=self._new_message_id("user"), content=text, role="user", created_at=now)
        assistant_message = ChatMessage(
            id=self._new_message_id("assistant"),
            content="",
            role="assistant",
            created_at=now,
            is_streaming=True,
        )
        self.messages = [*self.messages, user_message, assistant_message]
        self.is_loading = True

        payload: Dict[str, Any] = {
            "message": text,
            # init() may not have run yet
            "userId": self.user_id or generate_user_id(self._clock),
        }
        if self.session_id:
            payload["sessionId"] = self.session_id

        try:
            self._stream_reply(payload, assistant_message)
        except Exception as e:
            logger.error("Error sending chat message: %s", e)
            assistant_message.content = APOLOGY_MESSAGE
            assistant_message.is_streaming = False
            self.is_loading = False
            return False

        assistant_message.is_streaming = False
        self.is_loading = False
        return True

    def _stream_reply(self, payload: Dict[str, Any], assistant_message: ChatMessage) -> None:
        response = self.http.post(self.endpoint_url, json=payload, stream=True, timeout=self.timeout)
        try:
            if not response.ok or response.raw is None:
                raise requests.HTTPError(
                    f"Chat request failed with status {response.status_code}", response=response
                )

            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            parser = StreamParser()
            accumulated = ""

            for chunk in response.iter_content(chunk_size=None):
                if not chunk:
                    continue
                for event in parser.feed(decoder.decode(chunk)):
                    accumulated = self._apply_event(event, assistant_message, accumulated)

            for event in parser.feed(decoder.decode(b"", final=True)) + parser.flush():
                accumulated = self._apply_event(event, assistant_message, accumulated)
        finally:
            response.close()

    def _apply_event(self, event: Dict[str, Any], assistant_message: ChatMessage, accumulated: str) -> str:
        event_type = event.get("type")

        if event_type == "content":
            delta = event.get("content")
            if isinstance(delta, str):
                accumulated += delta
                # Replace rather than append so a re-render never doubles text.
                assistant_message.content = accumulated

        elif event_type == "complete":
            new_session_id = event.get("threadId") or event.get("sessionId")
            if not self.session_id and new_session_id:
                self.session_id = str(new_session_id)
                self.session_storage.set(SESSION_STORAGE_KEY, self.session_id)
            assistant_message.is_streaming = False

        elif event_type == "error":
            raise StreamEventError(str(event.get("content") or "Unknown stream error"))

        else:
            logger.debug("Ignoring stream event of type %r", event_type)

        return accumulated

    # ------------------------------------------------------------------
    # Clearing
    # ------------------------------------------------------------------

    @handle_exceptions(requests.RequestException, default_value=False)
    def _delete_remote_session(self, session_id: str) -> bool:
        response = self.http.delete(
            self.endpoint_url,
            params={"sessionId": session_id},
            timeout=self.timeout,
        )
        if not response.ok:
            logger.error("Failed to delete chat session %s (%s)", session_id, response.status_code)
        return response.ok

    def clear_chat(self) -> None:
        """Forget the conversation locally and ask the server to drop it."""
        if self.session_id:
            self._delete_remote_session(self.session_id)

        self.messages = []
        self.session_id = None
        self.session_storage.remove(SESSION_STORAGE_KEY)
