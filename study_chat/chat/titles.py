from study_chat.chat.schema import DEFAULT_TITLE

TITLE_MAX_LENGTH = 37
TITLE_ELLIPSIS = "..."


def is_default_title(title: str | None) -> bool:
    return not title or title == DEFAULT_TITLE


def derive_title(current_title: str | None, first_user_message: str) -> str:
    """
    Name an untitled conversation after its first user message.

    Args:
        current_title: Title the conversation has now
        first_user_message: Content of the first user message in the conversation

    Returns:
        The current title when it was chosen by the user (or derived earlier),
        otherwise the message cut to 37 characters with "..." appended when cut.
    """
    if not is_default_title(current_title):
        return current_title  # type: ignore[return-value]

    if len(first_user_message) <= TITLE_MAX_LENGTH:
        return first_user_message
    return first_user_message[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
