from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from .base import Base

class Conversation(Base):
    __tablename__ = "conversation"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False, default="New Chat")
    started_from_course_id = Column(String(255), nullable=True)
    started_from_material_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)

class Message(Base):
    __tablename__ = "message"

    id = Column(String(36), primary_key=True, index=True)
    conversation_id = Column(
        String(36), ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(255), nullable=False, index=True)
    sender = Column(String(20), nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    sources = Column(JSON, nullable=True)
    sequence_order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_message_conversation_order", "conversation_id", "sequence_order"),
    )
