from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from typing import List
import logging

from study_chat.chat.errors import CollaboratorFailure, NotFoundError, ValidationError
from study_chat.chat.schema import ConversationRecord, MessageRecord, UserContext
from study_chat.chat.service import ChatService
from study_chat.routes.deps import get_chat_service, get_user_context
from study_chat.routes.chat.schemas import (
    ConversationCreateRequest,
    ConversationDetailResponse,
    ConversationOut,
    ErrorResponse,
    MessageOut,
    RenameRequest,
    SendMessageRequest,
    SendMessageResponse,
    SessionResponse,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

router = APIRouter()


def to_conversation_out(conversation: ConversationRecord) -> ConversationOut:
    return ConversationOut(**conversation.model_dump())


def to_message_out(message: MessageRecord) -> MessageOut:
    return MessageOut(**message.model_dump())


def not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


def internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed {action}",
    )


# --- ROUTES ---


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Load the chat page",
    description="Lists conversations, creating one if the user has none, and returns the messages of the most recent",
)
def load_session(
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        conversations = service.ensure_conversations(ctx)
        selected = conversations[0]
        messages = service.list_messages(ctx, selected.id)
        return SessionResponse(
            conversations=[to_conversation_out(c) for c in conversations],
            selected_conversation_id=selected.id,
            messages=[to_message_out(m) for m in messages],
        )
    except Exception as e:
        raise internal_error("loading session", e)


@router.get(
    "/conversations",
    response_model=List[ConversationOut],
    summary="List conversations",
    description="Conversations of the user, most recently active first",
)
def list_conversations(
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        return [to_conversation_out(c) for c in service.list_conversations(ctx)]
    except Exception as e:
        raise internal_error("listing conversations", e)


@router.post(
    "/conversations",
    response_model=ConversationOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new conversation",
)
def create_conversation(
    request: ConversationCreateRequest,
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        conversation = service.create_conversation(
            ctx,
            title=request.title,
            course_id=request.course_id,
            material_id=request.material_id,
        )
        return to_conversation_out(conversation)
    except Exception as e:
        raise internal_error("creating conversation", e)


@router.get(
    "/conversations/{conversation_id}",
    response_model=ConversationDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get conversation history",
)
def get_conversation(
    conversation_id: str,
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        conversation = service.get_conversation(ctx, conversation_id)
        messages = service.list_messages(ctx, conversation_id)
        return ConversationDetailResponse(
            conversation=to_conversation_out(conversation),
            messages=[to_message_out(m) for m in messages],
        )
    except NotFoundError as e:
        raise not_found(e)
    except Exception as e:
        raise internal_error("retrieving conversation", e)


@router.patch(
    "/conversations/{conversation_id}",
    response_model=ConversationOut,
    responses={404: {"model": ErrorResponse}},
    summary="Rename a conversation",
    description="A blank title keeps the current title",
)
def rename_conversation(
    conversation_id: str,
    request: RenameRequest,
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        conversation = service.rename_conversation(ctx, conversation_id, request.title)
        return to_conversation_out(conversation)
    except NotFoundError as e:
        raise not_found(e)
    except Exception as e:
        raise internal_error("renaming conversation", e)


@router.delete(
    "/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a conversation and its messages",
    description="Deleting an unknown conversation is not an error",
)
def delete_conversation(
    conversation_id: str,
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    try:
        service.delete_conversation(ctx, conversation_id)
    except Exception as e:
        raise internal_error("deleting conversation", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=SendMessageResponse,
    responses={
        404: {"model": ErrorResponse},
        502: {"model": SendMessageResponse},
    },
    summary="Send a message",
    description="Store the question, generate an answer and store it",
)
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    ctx: UserContext = Depends(get_user_context),
    service: ChatService = Depends(get_chat_service),
):
    """
    Send a question and get the answer.

    Returns:
        SendMessageResponse with both stored messages. When the answer could
        not be generated the status is 502 and only the question is returned.
    """
    try:
        result = await service.send(ctx, conversation_id, request.message)
    except NotFoundError as e:
        raise not_found(e)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except CollaboratorFailure as e:
        body = SendMessageResponse(
            conversation_id=conversation_id,
            user_message=to_message_out(e.user_message),
            assistant_message=None,
            error="Failed to generate an answer. Please try again later.",
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=body.model_dump(mode="json"),
        )
    except Exception as e:
        raise internal_error("sending message", e)

    return SendMessageResponse(
        conversation_id=conversation_id,
        user_message=to_message_out(result.user_message),
        assistant_message=to_message_out(result.assistant_message),
    )
