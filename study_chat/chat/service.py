"""Chat service layer shared by the session controller and the HTTP routes.

Handles:
- Conversation bootstrap (a user always has at least one conversation)
- The send round trip: user message, answer generation, assistant message
- Conversation metadata refresh and title derivation after each send
- Cascade delete of a conversation and its messages
"""
import logging
from typing import List, Optional

from study_chat.chat.answers import AnswerGenerator
from study_chat.chat.errors import CollaboratorFailure, ValidationError
from study_chat.chat.schema import (
    AnswerRequest,
    ConversationRecord,
    MessageRecord,
    SendResult,
    Sender,
    UserContext,
)
from study_chat.chat.stores.base import ConversationStore, MessageStore
from study_chat.chat.titles import derive_title
from study_chat.settings import config

logger = logging.getLogger(__name__)


class ChatService:
    """Service layer for chat operations. Holds no per-session state."""

    def __init__(
        self,
        conversations: ConversationStore,
        messages: MessageStore,
        answers: AnswerGenerator,
        history_limit: int = config.history_limit,
    ):
        self.conversations = conversations
        self.messages = messages
        self.answers = answers
        self.history_limit = history_limit

    def list_conversations(self, ctx: UserContext) -> List[ConversationRecord]:
        return self.conversations.list(ctx)

    def get_conversation(self, ctx: UserContext, conversation_id: str) -> ConversationRecord:
        return self.conversations.get(ctx, conversation_id)

    def list_messages(self, ctx: UserContext, conversation_id: str) -> List[MessageRecord]:
        return self.messages.list_for_conversation(ctx, conversation_id)

    def create_conversation(
        self,
        ctx: UserContext,
        title: Optional[str] = None,
        course_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ) -> ConversationRecord:
        return self.conversations.create(
            ctx, initial_title=title, course_id=course_id, material_id=material_id
        )

    def ensure_conversations(self, ctx: UserContext) -> List[ConversationRecord]:
        """
        List the user's conversations, creating a default one when there are none.

        Returns:
            Non-empty list of conversations, most recently updated first
        """
        conversations = self.conversations.list(ctx)
        if conversations:
            return conversations

        created = self.conversations.create(ctx)
        logger.info(f"Created initial conversation {created.id} for user {ctx.user_id}")
        return self.conversations.list(ctx)

    def rename_conversation(
        self, ctx: UserContext, conversation_id: str, title: str
    ) -> ConversationRecord:
        return self.conversations.rename(ctx, conversation_id, title)

    def delete_conversation(self, ctx: UserContext, conversation_id: str) -> None:
        """
        Delete a conversation and all of its messages.

        Messages go first so a failure part way leaves the conversation in
        place and the delete can simply be retried.
        """
        self.messages.delete_for_conversation(ctx, conversation_id)
        self.conversations.delete(ctx, conversation_id)

    def _refresh_metadata(
        self, ctx: UserContext, conversation_id: str, thread: List[MessageRecord]
    ) -> ConversationRecord:
        conversation = self.conversations.get(ctx, conversation_id)
        first_user = next((m for m in thread if m.sender == Sender.USER), None)
        title = (
            derive_title(conversation.title, first_user.content.strip()) if first_user else None
        )
        return self.conversations.touch(ctx, conversation_id, title_if_unset=title)

    async def send(self, ctx: UserContext, conversation_id: str, content: str) -> SendResult:
        """
        Store the user's question, generate the answer and store it.

        Flow:
        1. Verify the conversation belongs to the user
        2. Store user message
        3. Ask the answer generator with recent history
        4. Store assistant message
        5. Advance updated_at and derive the title

        The question is stored as typed; surrounding whitespace only matters
        for the blank check and the title.

        Raises:
            ValidationError: If content is blank
            NotFoundError: If the conversation does not exist for this user, or
                was deleted while the answer was being generated
            CollaboratorFailure: If answer generation failed; the user
                message stays stored
        """
        if not content.strip():
            raise ValidationError()

        self.conversations.get(ctx, conversation_id)

        user_message = self.messages.append(ctx, conversation_id, Sender.USER, content)
        thread = self.messages.list_for_conversation(ctx, conversation_id)
        earlier = [m for m in thread if m.id != user_message.id]
        history = earlier[-self.history_limit:] if self.history_limit > 0 else []

        try:
            answer = await self.answers.generate(
                AnswerRequest(conversation_id=conversation_id, content=content, history=history)
            )
        except Exception as e:
            logger.error(
                f"Answer generation failed for conversation {conversation_id}: {e}",
                exc_info=True,
            )
            self._refresh_metadata(ctx, conversation_id, thread)
            raise CollaboratorFailure(user_message) from e

        # deleted while waiting for the answer
        self.conversations.get(ctx, conversation_id)

        assistant_message = self.messages.append(
            ctx,
            conversation_id,
            Sender.ASSISTANT,
            answer.content,
            sources=answer.sources,
        )
        self._refresh_metadata(ctx, conversation_id, thread)

        return SendResult(user_message=user_message, assistant_message=assistant_message)
