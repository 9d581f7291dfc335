import pytest

from study_chat.chat.schema import DEFAULT_TITLE
from study_chat.chat.titles import derive_title, is_default_title

LONG_QUESTION = (
    "Explain how operating systems schedule processes using round robin "
    "and priority based preemption"
)


def test_short_message_is_used_verbatim():
    assert derive_title(DEFAULT_TITLE, "What is a stack?") == "What is a stack?"


def test_message_of_exactly_37_characters_is_not_truncated():
    content = "x" * 37
    assert derive_title(DEFAULT_TITLE, content) == content


def test_message_of_38_characters_is_truncated():
    content = "y" * 38
    assert derive_title(DEFAULT_TITLE, content) == "y" * 37 + "..."


def test_long_question_is_cut_to_37_characters_plus_ellipsis():
    title = derive_title(DEFAULT_TITLE, LONG_QUESTION)
    assert title == "Explain how operating systems schedul..."
    assert title == LONG_QUESTION[:37] + "..."


@pytest.mark.parametrize("current", ["", None])
def test_empty_title_counts_as_unset(current):
    assert derive_title(current, "hello") == "hello"


def test_user_chosen_title_is_kept():
    assert derive_title("My Notes", "hello") == "My Notes"


@pytest.mark.parametrize("content", ["What is a stack?", LONG_QUESTION])
def test_derivation_is_idempotent(content):
    once = derive_title(DEFAULT_TITLE, content)
    twice = derive_title(once, content)
    assert twice == once


def test_later_messages_do_not_rename():
    title = derive_title(DEFAULT_TITLE, "first question")
    assert derive_title(title, "a completely different second question") == "first question"


def test_is_default_title():
    assert is_default_title(DEFAULT_TITLE)
    assert is_default_title("")
    assert not is_default_title("new chat")
