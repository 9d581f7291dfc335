import uuid
from typing import List, Optional

from study_chat.chat.errors import CollaboratorFailure
from study_chat.chat.schema import (
    PENDING_ID_PREFIX,
    ConversationRecord,
    MessageRecord,
    SendResult,
    Sender,
    SessionState,
    UserContext,
    utcnow,
)
from study_chat.chat.service import ChatService


class ChatSessionController:
    """
    Per-session chat state: the conversation list, the active selection and
    the messages shown for it.

    Sends are single-flight per controller. Each send is bound to the
    conversation id it was called with, so switching conversations while an
    answer is pending never redirects the reply.
    """

    def __init__(self, service: ChatService, ctx: UserContext):
        self.service = service
        self.ctx = ctx
        self.conversations: List[ConversationRecord] = []
        self.messages: List[MessageRecord] = []
        self.active_conversation_id: Optional[str] = None
        self._sending = False

    @property
    def is_sending(self) -> bool:
        return self._sending

    @property
    def state(self) -> SessionState:
        if self._sending:
            return SessionState.SENDING
        if self.active_conversation_id is None:
            return SessionState.NO_CONVERSATIONS
        return SessionState.CONVERSATION_SELECTED

    @property
    def active_conversation(self) -> Optional[ConversationRecord]:
        return next(
            (c for c in self.conversations if c.id == self.active_conversation_id),
            None,
        )

    def initialize(self) -> None:
        self.conversations = self.service.ensure_conversations(self.ctx)
        self._activate(self.conversations[0].id)

    def refresh_conversations(self) -> List[ConversationRecord]:
        self.conversations = self.service.list_conversations(self.ctx)
        return self.conversations

    def _activate(self, conversation_id: str) -> None:
        self.active_conversation_id = conversation_id
        self.messages = self.service.list_messages(self.ctx, conversation_id)

    def _deactivate(self) -> None:
        self.active_conversation_id = None
        self.messages = []

    def select_conversation(self, conversation_id: str) -> None:
        self.service.get_conversation(self.ctx, conversation_id)
        self._activate(conversation_id)

    def new_conversation(
        self,
        title: Optional[str] = None,
        course_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ) -> ConversationRecord:
        conversation = self.service.create_conversation(
            self.ctx, title=title, course_id=course_id, material_id=material_id
        )
        self.refresh_conversations()
        self.active_conversation_id = conversation.id
        self.messages = []
        return conversation

    def rename(self, conversation_id: str, title: str) -> ConversationRecord:
        conversation = self.service.rename_conversation(self.ctx, conversation_id, title)
        self.refresh_conversations()
        return conversation

    def delete(self, conversation_id: str) -> None:
        self.service.delete_conversation(self.ctx, conversation_id)
        self.refresh_conversations()

        if self.active_conversation_id != conversation_id:
            return
        if self.conversations:
            self._activate(self.conversations[0].id)
        else:
            self._deactivate()

    def _add_pending(self, conversation_id: str, content: str) -> Optional[MessageRecord]:
        if conversation_id != self.active_conversation_id:
            return None
        last_order = self.messages[-1].sequence_order if self.messages else 0
        pending = MessageRecord(
            id=f"{PENDING_ID_PREFIX}{uuid.uuid4()}",
            conversation_id=conversation_id,
            user_id=self.ctx.user_id,
            sender=Sender.USER,
            content=content,
            created_at=utcnow(),
            sequence_order=last_order + 1,
            pending=True,
        )
        self.messages.append(pending)
        return pending

    def _drop_pending(self, pending: Optional[MessageRecord]) -> None:
        if pending is not None:
            self.messages = [m for m in self.messages if m.id != pending.id]

    def _reconcile(
        self,
        conversation_id: str,
        pending: Optional[MessageRecord],
        confirmed: List[MessageRecord],
    ) -> None:
        self._drop_pending(pending)
        if conversation_id != self.active_conversation_id:
            return
        # the conversation may have been reselected and reloaded mid-send
        shown = {m.id for m in self.messages}
        self.messages.extend(m for m in confirmed if m.id not in shown)

    async def send(self, conversation_id: str, content: str) -> Optional[SendResult]:
        """
        Send a question in a conversation.

        Returns:
            SendResult with both stored messages, or None when the content is
            blank or another send from this controller is still in flight

        Raises:
            NotFoundError: If the conversation does not exist, including when
                it is deleted before the answer arrives
            CollaboratorFailure: If no answer could be generated; the question
                is kept and shown
        """
        if not content.strip() or self._sending:
            return None

        self._sending = True
        pending = self._add_pending(conversation_id, content)
        try:
            result = await self.service.send(self.ctx, conversation_id, content)
        except CollaboratorFailure as e:
            self._reconcile(conversation_id, pending, [e.user_message])
            self.refresh_conversations()
            raise
        except Exception:
            self._drop_pending(pending)
            raise
        finally:
            self._sending = False

        self._reconcile(
            conversation_id, pending, [result.user_message, result.assistant_message]
        )
        self.refresh_conversations()
        return result
