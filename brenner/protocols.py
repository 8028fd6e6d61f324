"""Messaging collaborator protocol - the thread transport the core reads from."""

from typing import Protocol, runtime_checkable

from brenner.models import Message, Thread


@runtime_checkable
class MessagingClient(Protocol):
    """Read/append access to named message threads.

    Delivery, retries, and authentication belong to the implementation.
    """

    def read_thread(self, thread_id: str) -> Thread:
        """Return every message of a thread in id order."""
        ...

    def send_message(
        self,
        thread_id: str,
        sender: str,
        recipients: list[str],
        subject: str,
        body: str,
        ack_required: bool = False,
    ) -> Message:
        """Append a message and return it as stored."""
        ...
