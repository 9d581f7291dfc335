from typing import Optional

from fastapi import Header, HTTPException, Request, status

from study_chat.chat.schema import UserContext
from study_chat.chat.service import ChatService


def get_user_context(x_user_id: Optional[str] = Header(None)) -> UserContext:
    """
    Identity of the caller as verified by the upstream identity provider.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return UserContext(user_id=x_user_id.strip())


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
