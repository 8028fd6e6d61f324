import json

import pytest

from brenner.bridge import ThreadFile
from brenner.errors import StorageCorruptionError
from brenner.protocols import MessagingClient


@pytest.fixture
def thread_path(tmp_path):
    path = tmp_path / "thread.json"
    path.write_text(
        json.dumps(
            {
                "thread_id": "RS20251230",
                "messages": [
                    {"id": 2, "from": "Critic", "to": ["Operator"], "subject": "DELTA: x", "body_md": "b", "created_ts": "2025-12-30T10:02:00Z"},
                    {"id": 1, "from": "Operator", "to": ["Critic"], "subject": "KICKOFF: go", "body": "a", "created_ts": "2025-12-30T10:01:00Z", "ack_required": True},
                ],
            }
        )
    )
    return path


def test_is_messaging_client(thread_path):
    assert isinstance(ThreadFile(thread_path), MessagingClient)


def test_read_thread_orders_by_id(thread_path):
    thread = ThreadFile(thread_path).read_thread()

    assert thread.thread_id == "RS20251230"
    assert [m.id for m in thread.messages] == [1, 2]
    assert thread.messages[0].ack_required
    assert thread.messages[1].body == "b"


def test_read_wrong_thread_id(thread_path):
    with pytest.raises(ValueError):
        ThreadFile(thread_path).read_thread("OTHER")


def test_send_appends_with_next_id(thread_path):
    client = ThreadFile(thread_path)
    message = client.send_message("RS20251230", "Operator", ["Critic"], "COMPILED: v1", "body")

    assert message.id == 3
    thread = client.read_thread()
    assert thread.messages[-1].subject == "COMPILED: v1"
    assert thread.messages[-1].sender == "Operator"


def test_missing_and_malformed(tmp_path):
    with pytest.raises(FileNotFoundError):
        ThreadFile(tmp_path / "none.json").read_thread()

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"messages": [{"from": "x"}]}))
    with pytest.raises(StorageCorruptionError):
        ThreadFile(bad).read_thread()
