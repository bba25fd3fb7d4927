"""ChatMessage ORM model — agent notes attached to an accreditation."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.database import Base
from app.timeutils import utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    accreditation_id = Column(String(36), ForeignKey("accreditations.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    user_name = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
