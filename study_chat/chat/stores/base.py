from abc import ABC, abstractmethod
from typing import List, Optional

from study_chat.chat.schema import (
    ConversationRecord,
    MessageRecord,
    Sender,
    UserContext,
)


class ConversationStore(ABC):
    """Persists conversation records owned by a single user each."""

    @abstractmethod
    def list(self, ctx: UserContext) -> List[ConversationRecord]:
        """Conversations of the user, most recently updated first."""

    @abstractmethod
    def get(self, ctx: UserContext, conversation_id: str) -> ConversationRecord:
        """Raises NotFoundError for unknown ids and ids owned by other users."""

    @abstractmethod
    def create(
        self,
        ctx: UserContext,
        initial_title: Optional[str] = None,
        course_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ) -> ConversationRecord:
        ...

    @abstractmethod
    def rename(self, ctx: UserContext, conversation_id: str, title: str) -> ConversationRecord:
        """A blank title keeps the current one but still advances updated_at."""

    @abstractmethod
    def delete(self, ctx: UserContext, conversation_id: str) -> None:
        """Unknown ids are ignored."""

    @abstractmethod
    def touch(
        self,
        ctx: UserContext,
        conversation_id: str,
        title_if_unset: Optional[str] = None,
    ) -> ConversationRecord:
        """Advance updated_at and adopt title_if_unset while the title is still the default."""


class MessageStore(ABC):
    """Persists the ordered messages of each conversation."""

    @abstractmethod
    def list_for_conversation(
        self, ctx: UserContext, conversation_id: str
    ) -> List[MessageRecord]:
        """Chronological order; empty for unknown conversations."""

    @abstractmethod
    def append(
        self,
        ctx: UserContext,
        conversation_id: str,
        sender: Sender,
        content: str,
        sources: Optional[List[str]] = None,
    ) -> MessageRecord:
        """
        Raises ValidationError for blank user content and NotFoundError when
        the conversation does not exist for the user.
        """

    @abstractmethod
    def delete_for_conversation(self, ctx: UserContext, conversation_id: str) -> None:
        ...
