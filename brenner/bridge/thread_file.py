"""Thread exports on disk as a MessagingClient.

A thread file holds ``{"thread_id": ..., "messages": [...]}`` with messages
in the wire shape (``from``, ``to``, ``subject``, ``body``, ``created_ts``).
"""

import logging
from pathlib import Path

from brenner.errors import StorageCorruptionError
from brenner.lib import fs, times
from brenner.models import Message, Thread

logger = logging.getLogger(__name__)


class ThreadFile:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> Thread:
        data = fs.read_json(self.path)
        if data is None:
            raise FileNotFoundError(f"Thread file not found: {self.path}")
        if not isinstance(data, dict) or not isinstance(data.get("messages", []), list):
            raise StorageCorruptionError(self.path, "expected an object with a 'messages' list")
        try:
            return Thread.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageCorruptionError(self.path, f"malformed message: {e!r}") from e

    def read_thread(self, thread_id: str | None = None) -> Thread:
        thread = self._load()
        if thread_id and thread.thread_id and thread_id != thread.thread_id:
            raise ValueError(f"{self.path} holds thread {thread.thread_id!r}, not {thread_id!r}")
        return Thread(
            thread_id=thread.thread_id or thread_id or self.path.stem,
            messages=sorted(thread.messages, key=lambda m: m.id),
        )

    def send_message(
        self,
        thread_id: str,
        sender: str,
        recipients: list[str],
        subject: str,
        body: str,
        ack_required: bool = False,
    ) -> Message:
        thread = self.read_thread(thread_id)
        message = Message(
            id=max((m.id for m in thread.messages), default=0) + 1,
            sender=sender,
            subject=subject,
            body=body,
            to=list(recipients),
            created_ts=times.now_iso(),
            ack_required=ack_required,
        )
        updated = Thread(thread_id=thread.thread_id, messages=[*thread.messages, message])
        fs.write_json_atomic(self.path, updated.to_dict())
        logger.info(f"Appended message {message.id} to {thread.thread_id}")
        return message
