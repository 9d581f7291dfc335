import uuid
from threading import Lock
from typing import Callable, Dict, List, Optional
from datetime import datetime

from study_chat.chat.errors import NotFoundError, ValidationError
from study_chat.chat.schema import (
    DEFAULT_TITLE,
    ConversationRecord,
    MessageRecord,
    Sender,
    UserContext,
    utcnow,
)
from study_chat.chat.stores.base import ConversationStore, MessageStore
from study_chat.chat.titles import is_default_title


class InMemoryConversationStore(ConversationStore):
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._conversations: Dict[str, ConversationRecord] = {}
        self._lock = Lock()

    def _owned(self, ctx: UserContext, conversation_id: str) -> ConversationRecord:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.user_id != ctx.user_id:
            raise NotFoundError(conversation_id)
        return conversation

    def _advance(self, conversation: ConversationRecord) -> datetime:
        return max(self._clock(), conversation.updated_at)

    def list(self, ctx: UserContext) -> List[ConversationRecord]:
        with self._lock:
            owned = [
                c.model_copy() for c in self._conversations.values()
                if c.user_id == ctx.user_id
            ]
        # newest first
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return owned

    def get(self, ctx: UserContext, conversation_id: str) -> ConversationRecord:
        with self._lock:
            return self._owned(ctx, conversation_id).model_copy()

    def create(
        self,
        ctx: UserContext,
        initial_title: Optional[str] = None,
        course_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ) -> ConversationRecord:
        now = self._clock()
        title = initial_title.strip() if initial_title else ""
        conversation = ConversationRecord(
            id=str(uuid.uuid4()),
            user_id=ctx.user_id,
            title=title or DEFAULT_TITLE,
            created_at=now,
            updated_at=now,
            started_from_course_id=course_id,
            started_from_material_id=material_id,
        )
        with self._lock:
            self._conversations[conversation.id] = conversation
        return conversation.model_copy()

    def rename(self, ctx: UserContext, conversation_id: str, title: str) -> ConversationRecord:
        with self._lock:
            conversation = self._owned(ctx, conversation_id)
            update = {"updated_at": self._advance(conversation)}
            if title and title.strip():
                update["title"] = title.strip()
            renamed = conversation.model_copy(update=update)
            self._conversations[conversation_id] = renamed
            return renamed.model_copy()

    def delete(self, ctx: UserContext, conversation_id: str) -> None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is not None and conversation.user_id == ctx.user_id:
                del self._conversations[conversation_id]

    def touch(
        self,
        ctx: UserContext,
        conversation_id: str,
        title_if_unset: Optional[str] = None,
    ) -> ConversationRecord:
        with self._lock:
            conversation = self._owned(ctx, conversation_id)
            update = {"updated_at": self._advance(conversation)}
            if title_if_unset and is_default_title(conversation.title):
                update["title"] = title_if_unset
            touched = conversation.model_copy(update=update)
            self._conversations[conversation_id] = touched
            return touched.model_copy()


class InMemoryMessageStore(MessageStore):
    def __init__(
        self,
        conversations: ConversationStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._conversations = conversations
        self._clock = clock
        self._messages: Dict[str, List[MessageRecord]] = {}
        self._lock = Lock()

    def list_for_conversation(
        self, ctx: UserContext, conversation_id: str
    ) -> List[MessageRecord]:
        with self._lock:
            messages = [
                m.model_copy() for m in self._messages.get(conversation_id, [])
                if m.user_id == ctx.user_id
            ]
        messages.sort(key=lambda m: (m.created_at, m.sequence_order))
        return messages

    def append(
        self,
        ctx: UserContext,
        conversation_id: str,
        sender: Sender,
        content: str,
        sources: Optional[List[str]] = None,
    ) -> MessageRecord:
        if sender == Sender.USER and not content.strip():
            raise ValidationError()

        # raises NotFoundError for unknown or foreign conversations
        self._conversations.get(ctx, conversation_id)

        with self._lock:
            thread = self._messages.setdefault(conversation_id, [])
            created_at = self._clock()
            sequence_order = 1
            if thread:
                last = thread[-1]
                created_at = max(created_at, last.created_at)
                sequence_order = last.sequence_order + 1
            message = MessageRecord(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                user_id=ctx.user_id,
                sender=sender,
                content=content,
                created_at=created_at,
                sequence_order=sequence_order,
                sources=list(sources) if sources is not None else None,
            )
            thread.append(message)
        return message.model_copy()

    def delete_for_conversation(self, ctx: UserContext, conversation_id: str) -> None:
        with self._lock:
            thread = self._messages.get(conversation_id)
            if thread is None:
                return
            remaining = [m for m in thread if m.user_id != ctx.user_id]
            if remaining:
                self._messages[conversation_id] = remaining
            else:
                del self._messages[conversation_id]
