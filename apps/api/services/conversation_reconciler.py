"""
Client-side conversation save logic.

Tracks whether a turn is in flight ({idle, generating}) and persists the
conversation exactly once on each generating -> idle transition:

- no conversation id yet: create it with the full message list and adopt the
  returned id for the rest of the session
- existing id: update with the full message list, but only if it grew past
  the count recorded at the last load/save

Save failures are logged and dropped. Nothing is retried; the next turn
that grows the conversation saves it again.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"


class ConversationStore(Protocol):
    def create_conversation(self, messages: List[Dict[str, Any]], title: Optional[str] = None) -> Dict[str, Any]:
        ...

    def update_conversation(
        self, conversation_id: str, messages: List[Dict[str, Any]], title: Optional[str] = None
    ) -> Dict[str, Any]:
        ...


class SaveAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class ConversationReconciler:
    def __init__(
        self,
        store: ConversationStore,
        conversation_id: Optional[str] = None,
        initial_messages: Optional[List[Dict[str, Any]]] = None,
    ):
        self.store = store
        self.state = TurnState.IDLE
        self.conversation_id: Optional[str] = None
        self.saved_count = 0
        self.load(conversation_id, initial_messages or [])

    def load(self, conversation_id: Optional[str], messages: List[Dict[str, Any]]) -> None:
        """Switch to another conversation (or a fresh one when id is None)."""
        self.conversation_id = conversation_id
        self.saved_count = len(messages) if conversation_id else 0
        self.state = TurnState.IDLE

    def begin_turn(self) -> None:
        if self.state is TurnState.GENERATING:
            logger.warning("begin_turn called while a turn is already generating")
        self.state = TurnState.GENERATING

    def finish_turn(self, messages: List[Dict[str, Any]]) -> Optional[SaveAction]:
        """
        Fire the save action for the generating -> idle edge.

        Returns None when no edge occurred (already idle).
        """
        if self.state is not TurnState.GENERATING:
            return None
        self.state = TurnState.IDLE
        return self._save(list(messages))

    def _save(self, messages: List[Dict[str, Any]]) -> SaveAction:
        if not messages:
            return SaveAction.SKIPPED

        if self.conversation_id is None:
            try:
                saved = self.store.create_conversation(messages)
            except Exception as e:
                logger.error(f"Error saving new conversation: {e}")
                return SaveAction.FAILED
            self.conversation_id = str(saved["id"])
            self.saved_count = len(messages)
            logger.info(f"New conversation created, id={self.conversation_id}")
            return SaveAction.CREATED

        if len(messages) <= self.saved_count:
            logger.debug("Turn finished, but no new messages detected to save")
            return SaveAction.SKIPPED

        try:
            self.store.update_conversation(self.conversation_id, messages)
        except Exception as e:
            logger.error(f"Error saving conversation {self.conversation_id}: {e}")
            return SaveAction.FAILED
        self.saved_count = len(messages)
        return SaveAction.UPDATED
