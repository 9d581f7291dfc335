from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from study_chat.chat.schema import Sender

class MessageOut(BaseModel):
    """A stored message in a conversation"""
    id: str = Field(..., description="Unique identifier of the message")
    conversation_id: str = Field(..., description="Conversation the message belongs to")
    sender: Sender = Field(..., description="Who wrote the message (user, assistant)")
    content: str = Field(..., description="Content of the message")
    sequence_order: int = Field(..., description="Order of message in conversation")
    created_at: datetime = Field(..., description="Timestamp when message was created")
    sources: Optional[List[str]] = Field(None, description="Citation labels for assistant messages")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": "0b7f4c1e-7a58-4d7f-9a55-31d1b0f3e2c4",
                "conversation_id": "a542db3f-0e80-4d34-8574-982966e038c6",
                "sender": "assistant",
                "content": "A stack is a LIFO collection...",
                "sequence_order": 2,
                "created_at": "2025-01-20T14:30:02.120597+00:00",
                "sources": ["Introduction to Arrays and Linked Lists.pdf"]
            }
        }

class ConversationOut(BaseModel):
    """A conversation without its messages"""
    id: str = Field(..., description="Unique identifier for the conversation")
    title: str = Field(..., description="Human readable title")
    created_at: datetime = Field(..., description="Timestamp when the conversation was created")
    updated_at: datetime = Field(..., description="Timestamp of the latest activity")
    started_from_course_id: Optional[str] = Field(None, description="Course the chat was started from")
    started_from_material_id: Optional[str] = Field(None, description="Material the chat was started from")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": "a542db3f-0e80-4d34-8574-982966e038c6",
                "title": "What is a stack?",
                "created_at": "2025-01-20T14:29:55.000000+00:00",
                "updated_at": "2025-01-20T14:30:02.120597+00:00",
                "started_from_course_id": "ds-101",
                "started_from_material_id": None
            }
        }

class ConversationDetailResponse(BaseModel):
    """Response model for conversation retrieval"""
    conversation: ConversationOut
    messages: List[MessageOut] = Field(..., description="Messages in chronological order")

class SessionResponse(BaseModel):
    """Everything a chat page needs on first load"""
    conversations: List[ConversationOut] = Field(..., description="Conversations, most recent first")
    selected_conversation_id: str = Field(..., description="Conversation to show first")
    messages: List[MessageOut] = Field(..., description="Messages of the selected conversation")

class ConversationCreateRequest(BaseModel):
    """Request model for creating a conversation"""
    title: Optional[str] = Field(None, max_length=255, description="Initial title, defaults to 'New Chat'")
    course_id: Optional[str] = Field(None, description="Course the chat is started from")
    material_id: Optional[str] = Field(None, description="Material the chat is started from")

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Exam revision",
                "course_id": "os-201",
                "material_id": "mat-3"
            }
        }

class RenameRequest(BaseModel):
    """Request model for renaming. A blank title keeps the current one."""
    title: str = Field(..., max_length=255, description="New title")

class SendMessageRequest(BaseModel):
    """Request model for sending messages"""
    message: str = Field(..., min_length=1, max_length=10000, description="The user's question")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "message": "What is a stack?"
            }
        }

class SendMessageResponse(BaseModel):
    """Response model for message sending"""
    conversation_id: str = Field(..., description="Conversation the messages were stored in")
    user_message: MessageOut = Field(..., description="The stored question")
    assistant_message: Optional[MessageOut] = Field(None, description="The stored answer")
    error: Optional[str] = None

class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Conversation not found",
                "detail": "No conversation exists with the provided ID"
            }
        }
