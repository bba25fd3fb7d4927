"""Per-accreditation chat between agents.

Messages are not accreditation mutations (the version is untouched), but each
one writes a CHAT_MESSAGE history row so pollers see it.
"""
import logging
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.accreditation import Accreditation
from app.models.chat import ChatMessage
from app.models.user import User
from app.services import history_service
from app.services.history_service import Actor

logger = logging.getLogger(__name__)


def _require_accreditation(db: Session, accreditation_id: str) -> None:
    if not db.query(Accreditation.id).filter(Accreditation.id == accreditation_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Accreditation not found")


def list_messages(
    db: Session,
    accreditation_id: str,
    limit: int = 50,
    cursor: Optional[int] = None,
) -> dict[str, Any]:
    """Oldest first; ``cursor`` is the id of the last message already seen."""
    _require_accreditation(db, accreditation_id)
    query = db.query(ChatMessage).filter(ChatMessage.accreditation_id == accreditation_id)
    if cursor is not None:
        query = query.filter(ChatMessage.id > cursor)
    messages = query.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).limit(limit).all()
    return {
        "messages": messages,
        "has_more": len(messages) == limit,
        "next_cursor": messages[-1].id if messages else None,
    }


def post_message(db: Session, accreditation_id: str, user: User, message: str, actor: Actor) -> ChatMessage:
    text = message.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")
    _require_accreditation(db, accreditation_id)

    user_name = user.name or "Agent"
    chat = ChatMessage(accreditation_id=accreditation_id, user_id=user.id, user_name=user_name, message=text)
    db.add(chat)
    history_service.record_chat_message(db, accreditation_id, user_name, text, actor)
    db.commit()
    db.refresh(chat)
    logger.info("Chat message %d on accreditation %s by %s", chat.id, accreditation_id, user.id)
    return chat
