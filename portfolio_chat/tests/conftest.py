import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Point the default database at a throwaway file *before* anything imports the
# memory package; each test then gets its own file via the ``temp_db`` fixture.
os.environ["PORTFOLIO_CHAT_DB"] = f"sqlite:///{Path(tempfile.gettempdir()) / 'portfolio_chat_test.db'}"

from portfolio_chat.memory.db import configure_database, init_db  # noqa: E402


@pytest.fixture
def temp_db(tmp_path):
    configure_database(f"sqlite:///{tmp_path / 'chat.db'}")
    init_db()
    yield tmp_path / "chat.db"


@pytest.fixture
def app(temp_db):
    from portfolio_chat.backend.app import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def api_client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as client:
        yield client


# ---------------------------------------------------------------------------
# Fake OpenAI Assistants client
# ---------------------------------------------------------------------------


def delta_event(text):
    part = SimpleNamespace(type="text", text=SimpleNamespace(value=text))
    return SimpleNamespace(
        event="thread.message.delta",
        data=SimpleNamespace(delta=SimpleNamespace(content=[part])),
    )


def run_event(name, run_id="run_1", **fields):
    return SimpleNamespace(event=name, data=SimpleNamespace(id=run_id, **fields))


def requires_action_event(run_id, call_ids):
    calls = [SimpleNamespace(id=call_id) for call_id in call_ids]
    required_action = SimpleNamespace(submit_tool_outputs=SimpleNamespace(tool_calls=calls))
    return run_event("thread.run.requires_action", run_id=run_id, required_action=required_action)


def thread_message(message_id, role, texts, created_at=1700000000):
    content = [SimpleNamespace(type="text", text=SimpleNamespace(value=t, annotations=[])) for t in texts]
    return SimpleNamespace(id=message_id, role=role, content=content, created_at=created_at)


class FakeRunStream:
    """Async context manager + async iterator standing in for the run stream manager."""

    def __init__(self, events):
        self._events = events
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self._events:
            if isinstance(event, Exception):
                raise event
            yield event


class FakeMessagePage:
    def __init__(self, messages):
        self._messages = messages

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message


class FakeAssistantsClient:
    """Records every Assistants API call the streaming route makes."""

    def __init__(self, events=None, known_threads=("thread_existing",), history=None):
        self.events = list(events or [])
        self.known_threads = set(known_threads)
        self.history = list(history or [])
        self.calls = []
        self.streams = []
        self._created = 0

        async def retrieve(thread_id):
            self.calls.append(("retrieve", thread_id))
            if thread_id not in self.known_threads:
                raise RuntimeError(f"No thread found with id '{thread_id}'")
            return SimpleNamespace(id=thread_id)

        async def create():
            self._created += 1
            thread_id = f"thread_new_{self._created}"
            self.known_threads.add(thread_id)
            self.calls.append(("create", thread_id))
            return SimpleNamespace(id=thread_id)

        async def delete(thread_id):
            self.calls.append(("delete", thread_id))
            if thread_id not in self.known_threads:
                raise RuntimeError("thread not found")
            return SimpleNamespace(id=thread_id, deleted=True)

        async def create_message(thread_id, role, content):
            self.calls.append(("message", thread_id, role, content))
            return SimpleNamespace(id="msg_1")

        def list_messages(thread_id, order="desc"):
            self.calls.append(("list", thread_id, order))
            return FakeMessagePage(self.history)

        def stream(thread_id, assistant_id):
            self.calls.append(("stream", thread_id, assistant_id))
            run_stream = FakeRunStream(self.events)
            self.streams.append(run_stream)
            return run_stream

        async def submit_tool_outputs(run_id, thread_id, tool_outputs):
            self.calls.append(("submit_tool_outputs", run_id, thread_id, tool_outputs))
            return SimpleNamespace(id=run_id)

        self.beta = SimpleNamespace(
            threads=SimpleNamespace(
                retrieve=retrieve,
                create=create,
                delete=delete,
                messages=SimpleNamespace(create=create_message, list=list_messages),
                runs=SimpleNamespace(stream=stream, submit_tool_outputs=submit_tool_outputs),
            )
        )


# ---------------------------------------------------------------------------
# Fake requests session for the chat client
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, chunks=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._json = json_data
        self._chunks = list(chunks or [])
        self.text = text
        self.raw = object()
        self.closed = False

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size=None):
        for chunk in self._chunks:
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

    def close(self):
        self.closed = True


class FakeHttp:
    """Queue-driven stand-in for ``requests.Session``.

    Each queued item is either a response or an exception to raise.
    """

    def __init__(self):
        self.calls = []
        self.queues = {"get": [], "post": [], "delete": []}
        self.on_post = None

    def queue(self, method, item):
        self.queues[method].append(item)
        return self

    def _next(self, method):
        item = self.queues[method].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, params=None, timeout=None):
        self.calls.append(("get", url, params))
        return self._next("get")

    def post(self, url, json=None, stream=False, timeout=None):
        self.calls.append(("post", url, json))
        if self.on_post is not None:
            self.on_post()
        return self._next("post")

    def delete(self, url, params=None, timeout=None):
        self.calls.append(("delete", url, params))
        return self._next("delete")


def sse(*events):
    import json

    return "".join(f"data: {json.dumps(event)}\n\n" for event in events)
