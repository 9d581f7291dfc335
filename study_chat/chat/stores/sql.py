import uuid
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from study_chat.chat.errors import NotFoundError, ValidationError
from study_chat.chat.schema import (
    DEFAULT_TITLE,
    ConversationRecord,
    MessageRecord,
    Sender,
    UserContext,
    as_utc,
    utcnow,
)
from study_chat.chat.stores.base import ConversationStore, MessageStore
from study_chat.chat.titles import is_default_title
from study_chat.db.crud_helper import (
    ConversationCRUD,
    MessageCRUD,
    conversation_crud,
    message_crud,
)
from study_chat.models.chat import Conversation, Message

logger = logging.getLogger(__name__)


def row_to_conversation(row: Dict[str, Any]) -> ConversationRecord:
    return ConversationRecord(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        created_at=as_utc(row["created_at"]),
        updated_at=as_utc(row["updated_at"]),
        started_from_course_id=row.get("started_from_course_id"),
        started_from_material_id=row.get("started_from_material_id"),
    )


def row_to_message(row: Dict[str, Any]) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        conversation_id=row["conversation_id"],
        user_id=row["user_id"],
        sender=Sender(row["sender"]),
        content=row["content"],
        created_at=as_utc(row["created_at"]),
        sequence_order=row["sequence_order"],
        sources=row.get("sources"),
    )


class SqlConversationStore(ConversationStore):
    def __init__(
        self,
        crud: Optional[ConversationCRUD] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.crud = crud or conversation_crud
        self._clock = clock

    def _owned_row(self, ctx: UserContext, conversation_id: str) -> Dict[str, Any]:
        row = self.crud.get_resource(
            resource_id=conversation_id,
            where=[Conversation.user_id == ctx.user_id],
        )
        if row is None:
            raise NotFoundError(conversation_id)
        return row

    def _update(self, ctx: UserContext, conversation_id: str, data: Dict[str, Any]) -> ConversationRecord:
        row = self.crud.update_resource(
            data,
            resource_id=conversation_id,
            where=[Conversation.user_id == ctx.user_id],
        )
        if row is None:
            # deleted between the read and the write
            raise NotFoundError(conversation_id)
        return row_to_conversation(row)

    def list(self, ctx: UserContext) -> List[ConversationRecord]:
        rows = self.crud.list_resource(
            where=[Conversation.user_id == ctx.user_id],
            order_by=["-updated_at", "-created_at"],
        )
        return [row_to_conversation(row) for row in rows]

    def get(self, ctx: UserContext, conversation_id: str) -> ConversationRecord:
        return row_to_conversation(self._owned_row(ctx, conversation_id))

    def create(
        self,
        ctx: UserContext,
        initial_title: Optional[str] = None,
        course_id: Optional[str] = None,
        material_id: Optional[str] = None,
    ) -> ConversationRecord:
        now = self._clock()
        title = initial_title.strip() if initial_title else ""
        row = self.crud.create_resource(
            {
                "id": str(uuid.uuid4()),
                "user_id": ctx.user_id,
                "title": title or DEFAULT_TITLE,
                "started_from_course_id": course_id,
                "started_from_material_id": material_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info(f"Created conversation {row['id']} for user {ctx.user_id}")
        return row_to_conversation(row)

    def rename(self, ctx: UserContext, conversation_id: str, title: str) -> ConversationRecord:
        current = row_to_conversation(self._owned_row(ctx, conversation_id))
        data: Dict[str, Any] = {"updated_at": max(self._clock(), current.updated_at)}
        if title and title.strip():
            data["title"] = title.strip()
        return self._update(ctx, conversation_id, data)

    def delete(self, ctx: UserContext, conversation_id: str) -> None:
        deleted = self.crud.delete_resource(
            resource_id=conversation_id,
            where=[Conversation.user_id == ctx.user_id],
        )
        if deleted is not None:
            logger.info(f"Deleted conversation {conversation_id} for user {ctx.user_id}")

    def touch(
        self,
        ctx: UserContext,
        conversation_id: str,
        title_if_unset: Optional[str] = None,
    ) -> ConversationRecord:
        current = row_to_conversation(self._owned_row(ctx, conversation_id))
        data: Dict[str, Any] = {"updated_at": max(self._clock(), current.updated_at)}
        if title_if_unset and is_default_title(current.title):
            data["title"] = title_if_unset
        return self._update(ctx, conversation_id, data)


class SqlMessageStore(MessageStore):
    def __init__(
        self,
        crud: Optional[MessageCRUD] = None,
        clock: Callable[[], datetime] = utcnow,
        conversations: Optional[ConversationCRUD] = None,
    ):
        self.crud = crud or message_crud
        self.conversations = conversations or conversation_crud
        self._clock = clock

    def _check_conversation(self, ctx: UserContext, conversation_id: str) -> None:
        row = self.conversations.get_resource(
            resource_id=conversation_id,
            where=[Conversation.user_id == ctx.user_id],
        )
        if row is None:
            raise NotFoundError(conversation_id)

    def _last_message(self, conversation_id: str) -> Optional[MessageRecord]:
        rows = self.crud.list_resource(
            where=[Message.conversation_id == conversation_id],
            order_by=["-sequence_order"],
            limit=1,
        )
        return row_to_message(rows[0]) if rows else None

    def list_for_conversation(
        self, ctx: UserContext, conversation_id: str
    ) -> List[MessageRecord]:
        rows = self.crud.list_resource(
            where=[
                Message.conversation_id == conversation_id,
                Message.user_id == ctx.user_id,
            ],
            order_by=["created_at", "sequence_order"],
        )
        return [row_to_message(row) for row in rows]

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

        self._check_conversation(ctx, conversation_id)

        created_at = self._clock()
        sequence_order = 1
        last = self._last_message(conversation_id)
        if last is not None:
            created_at = max(created_at, last.created_at)
            sequence_order = last.sequence_order + 1

        try:
            row = self.crud.create_resource(
                {
                    "id": str(uuid.uuid4()),
                    "conversation_id": conversation_id,
                    "user_id": ctx.user_id,
                    "sender": sender.value,
                    "content": content,
                    "sources": list(sources) if sources is not None else None,
                    "sequence_order": sequence_order,
                    "created_at": created_at,
                }
            )
        except IntegrityError as e:
            # conversation deleted after the check
            raise NotFoundError(conversation_id) from e
        return row_to_message(row)

    def delete_for_conversation(self, ctx: UserContext, conversation_id: str) -> None:
        removed = self.crud.delete_resources(
            where=[
                Message.conversation_id == conversation_id,
                Message.user_id == ctx.user_id,
            ]
        )
        if removed:
            logger.info(f"Deleted {removed} messages from conversation {conversation_id}")
