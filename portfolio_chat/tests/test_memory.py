import json

import pytest

from portfolio_chat.memory import crud


@pytest.fixture
def frozen_now(monkeypatch):
    """Control the timestamps crud writes."""
    clock = {"now": 1_700_000_000}
    monkeypatch.setattr(crud, "_now", lambda: clock["now"])
    return clock


def test_memory_roundtrip(temp_db):
    session = crud.create_session()
    crud.log_message(session["id"], "user", "Hello there!", user_id="user-1")
    crud.log_message(session["id"], "assistant", "Hi! How can I help?")

    hist = crud.fetch_history(session["id"], limit=10)
    assert hist == [
        {"role": "user", "content": "Hello there!"},
        {"role": "assistant", "content": "Hi! How can I help?"},
    ]


def test_history_keeps_most_recent_turns_in_order(temp_db, frozen_now):
    session_id = crud.create_session()["id"]
    for i in range(6):
        crud.log_message(session_id, "user" if i % 2 == 0 else "assistant", f"turn {i}")

    hist = crud.fetch_history(session_id, limit=4)

    # All rows share one timestamp; insertion order still decides.
    assert [h["content"] for h in hist] == ["turn 2", "turn 3", "turn 4", "turn 5"]


def test_history_of_unknown_or_blank_session_is_empty(temp_db):
    assert crud.fetch_history("missing") == []
    assert crud.fetch_history("") == []


def test_messages_require_a_session(temp_db):
    with pytest.raises(ValueError):
        crud.log_message("", "user", "orphan")


def test_find_messages_by_session_and_user(temp_db, frozen_now):
    session_id = crud.create_session("user-1")["id"]
    first = crud.log_message(session_id, "user", "one", user_id="user-1")
    frozen_now["now"] += 5
    second = crud.log_message(session_id, "user", "two", user_id="user-1")
    crud.log_message("other-session", "user", "elsewhere", user_id="user-2")

    assert [m["id"] for m in crud.find_messages_by_session(session_id)] == [first["id"], second["id"]]
    assert [m["id"] for m in crud.find_messages_by_user("user-1")] == [second["id"], first["id"]]
    assert crud.find_message(first["id"])["content"] == "one"
    assert crud.find_message("nope") is None


def test_delete_messages_by_session(temp_db):
    session_id = crud.create_session()["id"]
    crud.log_message(session_id, "user", "bye")

    assert crud.delete_messages_by_session(session_id) is True
    assert crud.find_messages_by_session(session_id) == []
    assert crud.delete_messages_by_session(session_id) is False


def test_session_lifecycle(temp_db, frozen_now):
    session = crud.create_session(session_id="fixed-id")
    assert session["id"] == "fixed-id"
    assert session["created_at"] == session["last_active_at"] == 1_700_000_000

    frozen_now["now"] += 60
    assert crud.update_session_activity("fixed-id") is True
    assert crud.find_session("fixed-id")["last_active_at"] == 1_700_000_060
    assert crud.update_session_activity("unknown") is False

    assert crud.set_session_user("fixed-id", "user-9") is True
    assert [s["id"] for s in crud.find_sessions_by_user("user-9")] == ["fixed-id"]

    assert crud.delete_session("fixed-id") is True
    assert crud.find_session("fixed-id") is None


def test_cleanup_old_sessions(temp_db, frozen_now):
    crud.create_session(session_id="stale")
    frozen_now["now"] += 31 * 24 * 60 * 60
    crud.create_session(session_id="fresh")

    assert crud.cleanup_old_sessions(30) == 1
    assert crud.find_session("stale") is None
    assert crud.find_session("fresh") is not None


def test_users(temp_db):
    user = crud.create_user("ada@example.com", "Ada")

    assert crud.find_user(user["id"])["email"] == "ada@example.com"
    assert crud.find_user_by_email("ada@example.com")["id"] == user["id"]
    assert crud.find_user_by_email("nobody@example.com") is None

    updated = crud.update_user(user["id"], name="Ada L.", email=None)
    assert updated["name"] == "Ada L."
    assert updated["email"] == "ada@example.com"
    assert crud.update_user("missing", name="x") is None


def test_projects_and_links(temp_db, frozen_now):
    project = crud.create_project("Accessible forms", "Case study", "Long form content")
    other = crud.create_project("Design tokens")

    frozen_now["now"] += 10
    updated = crud.update_project(project["id"], title="Accessible forms v2", description=None)
    assert updated["title"] == "Accessible forms v2"
    assert updated["description"] == "Case study"
    assert updated["updated_at"] == project["updated_at"] + 10
    assert crud.update_project("missing", title="x") is None

    session_id = crud.create_session()["id"]
    message = crud.log_message(session_id, "assistant", "Let me tell you about forms")
    crud.link_project_to_message(project["id"], message["id"])

    assert [p["id"] for p in crud.find_projects_by_message(message["id"])] == [project["id"]]
    assert [m["id"] for m in crud.find_messages_by_project(project["id"])] == [message["id"]]
    assert {p["id"] for p in crud.find_all_projects()} == {project["id"], other["id"]}

    assert crud.delete_project(project["id"]) is True
    assert crud.find_project(project["id"]) is None
    assert crud.find_projects_by_message(message["id"]) == []
    assert crud.delete_project(project["id"]) is False


def test_telemetry_events(temp_db, frozen_now):
    crud.record_event("message_sent", None, "user-1", "s1")
    frozen_now["now"] += 100
    event = crud.record_event("user_created", {"userId": "user-1"}, "user-1")

    assert json.loads(event["event_data"]) == {"userId": "user-1"}
    assert [e["event_type"] for e in crud.find_events(user_id="user-1")] == ["user_created", "message_sent"]
    assert [e["event_type"] for e in crud.find_events(session_id="s1")] == ["message_sent"]
    assert [e["event_type"] for e in crud.find_events(start_time=1_700_000_050)] == ["user_created"]
    assert crud.find_events(event_type="project_created") == []


def test_cleanup_old_events(temp_db, frozen_now):
    crud.record_event("old")
    frozen_now["now"] += 91 * 24 * 60 * 60
    crud.record_event("new")

    assert crud.cleanup_old_events(90) == 1
    assert [e["event_type"] for e in crud.find_events()] == ["new"]
