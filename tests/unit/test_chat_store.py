# tests/unit/test_chat_store.py

from __future__ import annotations
import sys, json
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chatdeck.artifacts import extract_artifact
from chatdeck.storage.chat_store import ChatStore


def test_in_memory_store_messages_order():
    s = ChatStore()
    s.add_message("user", "hi")
    s.add_message("assistant", "ok", thinking="hmm", thinking_tokens=3, duration_ms=10)
    assert s.conversation() == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "ok"},
    ]
    last = s.current()["messages"][-1]
    assert (last["thinking"], last["thinking_tokens"], last["duration_ms"]) == ("hmm", 3, 10)


def test_title_comes_from_first_user_message():
    s = ChatStore()
    assert s.current()["title"] == "New Chat"
    s.add_message("user", "x" * 60)
    assert s.current()["title"] == "x" * 50 + "..."
    s.add_message("user", "second message does not rename")
    assert s.current()["title"] == "x" * 50 + "..."


def test_create_switch_delete_keeps_one_chat():
    s = ChatStore()
    first = s.current_chat_id
    second = s.create_chat()["id"]
    assert s.current_chat_id == second
    assert [c["id"] for c in s.chats] == [second, first]  # newest first

    s.switch_to(first)
    assert s.current_chat_id == first
    with pytest.raises(KeyError):
        s.switch_to("missing")

    s.delete_chat(first)
    assert s.current_chat_id == second
    s.delete_chat(second)
    assert len(s.chats) == 1 and s.current_chat_id not in (first, second)


def test_artifacts_add_get_update_clear():
    s = ChatStore()
    art = s.add_artifact(extract_artifact("```html\n<p>a</p>\n```"))
    assert s.get_artifact(art.id).content == "<p>a</p>\n"

    updated = s.update_artifact_content(art.id, "<p>b</p>")
    assert updated.id == art.id
    assert s.get_artifact(art.id).content == "<p>b</p>"
    with pytest.raises(KeyError):
        s.update_artifact_content("nope", "x")

    s.clear_chat()
    assert s.get_artifact(art.id) is None
    assert s.conversation() == []


def test_file_backed_writes_and_resume(tmp_path: Path):
    path = tmp_path / "state" / "chatdeck.json"
    s = ChatStore(path)
    s.select("groq", "llama-3.3-70b-versatile")
    s.set_api_key("groq", "gk")
    s.add_message("user", "hello")
    s.add_message("assistant", "world")
    chat_id = s.current_chat_id

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert set(doc) == {"chat_history", "current_chat_id", "selected_provider", "selected_model", "api_keys"}

    s2 = ChatStore(path)
    assert s2.current_chat_id == chat_id
    assert (s2.selected_provider, s2.selected_model) == ("groq", "llama-3.3-70b-versatile")
    assert s2.api_keys == {"groq": "gk"}
    assert s2.conversation() == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "world"},
    ]


def test_corrupt_document_starts_fresh(tmp_path: Path, caplog):
    path = tmp_path / "chatdeck.json"
    path.write_text("{not json", encoding="utf-8")
    s = ChatStore(path)
    assert len(s.chats) == 1
    assert s.conversation() == []
    assert "unreadable" in caplog.text


def test_writes_can_target_a_chat_other_than_current():
    s = ChatStore()
    origin = s.current_chat_id
    s.add_message("user", "hi")
    s.create_chat()

    s.add_message("assistant", "late reply", chat_id=origin)
    art = extract_artifact("```svg\n<svg/>\n```")
    s.add_artifact(art, chat_id=origin)

    assert s.conversation(origin)[-1] == {"role": "assistant", "content": "late reply"}
    assert s.current()["messages"] == []
    assert s.get_chat(origin)["artifacts"][0]["id"] == art.id


def test_write_to_deleted_chat_is_dropped(caplog):
    s = ChatStore()
    gone = s.current_chat_id
    s.create_chat()
    s.delete_chat(gone)

    msg = s.add_message("assistant", "orphan", chat_id=gone)
    assert msg["content"] == "orphan"
    assert all(m["content"] != "orphan" for c in s.chats for m in c["messages"])
    assert "no longer exists" in caplog.text
