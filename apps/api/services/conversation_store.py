"""
Conversation persistence (owner-scoped).

A conversation id that exists but belongs to someone else is reported
exactly like a missing one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import Conversation

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 50


def derive_title(messages: List[Dict[str, Any]], provided: Optional[str] = None) -> str:
    """Provided title, else the first user message (truncated), else a default."""
    if provided and provided.strip():
        return provided.strip()
    for m in messages:
        if m.get("role") == "user" and isinstance(m.get("content"), str) and m["content"].strip():
            text = m["content"].strip()
            if len(text) > TITLE_MAX_CHARS:
                return text[:TITLE_MAX_CHARS] + "..."
            return text
    return DEFAULT_TITLE


def list_conversations(db: Session, user_id: UUID) -> List[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .all()
    )


def get_conversation(db: Session, user_id: UUID, conversation_id: UUID) -> Conversation:
    conversation = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .first()
    )
    if not conversation:
        raise NotFoundError("Conversation", str(conversation_id))
    return conversation


def create_conversation(
    db: Session,
    user_id: UUID,
    messages: List[Dict[str, Any]],
    title: Optional[str] = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    conversation = Conversation(
        user_id=user_id,
        title=derive_title(messages, title),
        messages=messages,
        created_at=now,
        updated_at=now,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.info(
        "Conversation created",
        extra={"extra_fields": {"user_id": str(user_id), "conversation_id": str(conversation.id),
                                "message_count": len(messages)}},
    )
    return conversation


def update_conversation(
    db: Session,
    user_id: UUID,
    conversation_id: UUID,
    messages: List[Dict[str, Any]],
    title: Optional[str] = None,
) -> Conversation:
    """
    Replace the message list and bump updated_at in one UPDATE.

    The row is matched on id and owner together; zero matched rows means
    not found (or not yours).
    """
    values: Dict[str, Any] = {
        Conversation.messages: messages,
        Conversation.updated_at: datetime.now(timezone.utc),
    }
    if title is not None:
        values[Conversation.title] = title

    matched = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .update(values, synchronize_session=False)
    )
    if matched == 0:
        db.rollback()
        raise NotFoundError("Conversation", str(conversation_id))
    db.commit()

    conversation = get_conversation(db, user_id, conversation_id)
    db.refresh(conversation)
    return conversation


def delete_conversation(db: Session, user_id: UUID, conversation_id: UUID) -> None:
    deleted = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        db.rollback()
        raise NotFoundError("Conversation", str(conversation_id))
    db.commit()
