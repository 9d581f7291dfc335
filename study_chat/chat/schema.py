import enum
from datetime import datetime, timezone
from typing import Optional, List

from pydantic import BaseModel, Field

DEFAULT_TITLE = "New Chat"
PENDING_ID_PREFIX = "pending-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Sender(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SessionState(str, enum.Enum):
    NO_CONVERSATIONS = "NO_CONVERSATIONS"
    CONVERSATION_SELECTED = "CONVERSATION_SELECTED"
    SENDING = "SENDING"


class UserContext(BaseModel):
    """Identity of the caller, supplied by the identity provider."""
    user_id: str = Field(..., min_length=1)


class ConversationRecord(BaseModel):
    id: str
    user_id: str
    title: str = DEFAULT_TITLE
    created_at: datetime
    updated_at: datetime
    started_from_course_id: Optional[str] = None
    started_from_material_id: Optional[str] = None


class MessageRecord(BaseModel):
    id: str
    conversation_id: str
    user_id: str
    sender: Sender
    content: str
    created_at: datetime
    sequence_order: int
    sources: Optional[List[str]] = None
    pending: bool = False


class SendResult(BaseModel):
    user_message: MessageRecord
    assistant_message: MessageRecord


class AnswerRequest(BaseModel):
    conversation_id: str
    content: str
    history: List[MessageRecord] = Field(default_factory=list)


class Answer(BaseModel):
    content: str
    sources: List[str] = Field(default_factory=list)
