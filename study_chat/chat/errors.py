from typing import Optional

from study_chat.chat.schema import MessageRecord


class StudyChatError(Exception):
    """Base class for errors raised by the chat core."""
    def __init__(self, message="Chat operation failed"):
        super().__init__(message)
        self.message = message


class ValidationError(StudyChatError):
    """Exception raised when message content is rejected before it is stored."""
    def __init__(self, message="Message content cannot be empty"):
        super().__init__(message)


class NotFoundError(StudyChatError):
    """Exception raised when a conversation does not exist for the calling user."""
    def __init__(self, conversation_id: str, message: Optional[str] = None):
        super().__init__(message or f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class CollaboratorFailure(StudyChatError):
    """Exception raised when the answer generator fails.

    The user's question has already been stored and is carried on
    ``user_message`` so the caller can offer a retry.
    """
    def __init__(self, user_message: MessageRecord, message="Answer generation failed"):
        super().__init__(message)
        self.user_message = user_message
