"""
Conversation history API.

All routes are owner-scoped: a conversation owned by someone else answers
404, same as one that doesn't exist.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from schemas import (
    ConversationCreate,
    ConversationOut,
    ConversationSummary,
    ConversationUpdate,
    dump_messages,
)
from services import conversation_store

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=List[ConversationSummary])
def list_conversations(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Caller's conversations, most recently updated first."""
    return conversation_store.list_conversations(db, user_id)


@router.post(
    "",
    response_model=ConversationOut,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_conversation(
    body: ConversationCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return conversation_store.create_conversation(
        db, user_id, dump_messages(body.messages), title=body.title
    )


@router.get("/{conversation_id}", response_model=ConversationOut, response_model_exclude_none=True)
def get_conversation(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return conversation_store.get_conversation(db, user_id, conversation_id)


@router.put("/{conversation_id}", response_model=ConversationOut, response_model_exclude_none=True)
def update_conversation(
    conversation_id: UUID,
    body: ConversationUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Replace the stored message list (and optionally the title)."""
    return conversation_store.update_conversation(
        db, user_id, conversation_id, dump_messages(body.messages), title=body.title
    )


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_conversation(
    conversation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    conversation_store.delete_conversation(db, user_id, conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
