"""
Conversation Store
==================

Process-wide, in-memory turn history keyed by conversation id.

Entries are created on a conversation's first turn, removed only by
``clear`` and never persisted. Each entry has its own locks, so unrelated
conversations never wait on each other:

- ``data_lock`` guards the turn list (appends, outcome merges, snapshots)
- ``turn_lock`` is held across a whole mutating operation (a pipeline turn,
  an execute-and-record, a clear) to keep them causally ordered
"""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional

from chatbi.exceptions import ConversationStateError
from chatbi.models import ConversationState, ConversationTurn, ExecutionOutcome


class _Entry:
    __slots__ = ("turns", "data_lock", "turn_lock")

    def __init__(self) -> None:
        self.turns: list[ConversationTurn] = []
        self.data_lock = threading.Lock()
        self.turn_lock = threading.RLock()


class ConversationStore:
    """Append-only turn histories with per-conversation serialization."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        # Guards entry creation/removal only
        self._registry_lock = threading.Lock()

    def _get(self, conversation_id: str, create: bool = False) -> Optional[_Entry]:
        with self._registry_lock:
            entry = self._entries.get(conversation_id)
            if entry is None and create:
                entry = self._entries[conversation_id] = _Entry()
            return entry

    @contextmanager
    def exclusive(self, conversation_id: str, create: bool = True) -> Iterator[bool]:
        """
        Hold the conversation's turn lock, creating the entry if needed.

        If the entry is cleared while waiting for the lock, the wait is
        repeated on the fresh entry so no turn lands in a discarded history.
        With ``create=False`` an unknown conversation is not created: the
        block runs without a lock and receives False.
        """
        while True:
            entry = self._get(conversation_id, create=create)
            if entry is None:
                yield False
                return
            entry.turn_lock.acquire()
            if self._get(conversation_id) is entry:
                break
            entry.turn_lock.release()
        try:
            yield True
        finally:
            entry.turn_lock.release()

    def append(self, conversation_id: str, turn: ConversationTurn) -> None:
        """
        Append a turn, enforcing user/assistant alternation starting with user.

        Raises:
            ConversationStateError: If the turn would break the alternation
        """
        entry = self._get(conversation_id, create=True)
        with entry.data_lock:
            last_role = entry.turns[-1].role if entry.turns else None
            expected = ConversationTurn.USER if last_role in (None, ConversationTurn.ASSISTANT) else ConversationTurn.ASSISTANT
            if turn.role != expected:
                raise ConversationStateError(
                    f"conversation {conversation_id} expects a {expected} turn, got {turn.role}"
                )
            entry.turns.append(turn)

    def update_last_assistant(
        self, conversation_id: str, update: Callable[[ConversationTurn], ConversationTurn]
    ) -> Optional[ConversationTurn]:
        """
        Replace the most recent assistant turn with ``update(turn)``.

        Returns:
            The new turn, or None if the conversation has no assistant turn
        """
        entry = self._get(conversation_id)
        if entry is None:
            return None
        with entry.data_lock:
            for index in range(len(entry.turns) - 1, -1, -1):
                if entry.turns[index].role == ConversationTurn.ASSISTANT:
                    entry.turns[index] = update(entry.turns[index])
                    return entry.turns[index]
        return None

    def attach_outcome(self, conversation_id: str, outcome: ExecutionOutcome) -> Optional[ConversationTurn]:
        return self.update_last_assistant(
            conversation_id, lambda turn: replace(turn, execution_outcome=outcome)
        )

    def history(self, conversation_id: str) -> list[ConversationTurn]:
        """Snapshot of a conversation's turns; empty for unknown ids."""
        entry = self._get(conversation_id)
        if entry is None:
            return []
        with entry.data_lock:
            return list(entry.turns)

    def last_user_text(self, conversation_id: str) -> Optional[str]:
        for turn in reversed(self.history(conversation_id)):
            if turn.role == ConversationTurn.USER:
                return turn.text
        return None

    def state(self, conversation_id: str) -> ConversationState:
        turns = self.history(conversation_id)
        if not turns:
            return ConversationState.NO_TURNS
        last = turns[-1]
        if (
            last.role == ConversationTurn.ASSISTANT
            and last.executable
            and last.execution_outcome is None
        ):
            return ConversationState.AWAITING_EXECUTION
        return ConversationState.SETTLED

    def clear(self, conversation_id: str) -> None:
        """Remove every turn of a conversation. Unknown ids are ignored."""
        with self.exclusive(conversation_id, create=False) as held:
            if not held:
                return
            with self._registry_lock:
                self._entries.pop(conversation_id, None)

    def conversation_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._entries)
