import pytest

from study_chat.chat.errors import NotFoundError, ValidationError
from study_chat.chat.schema import DEFAULT_TITLE, Sender


@pytest.fixture
def conversations(stores):
    return stores[0]


@pytest.fixture
def messages(stores):
    return stores[1]


# --- conversations ---


def test_list_is_empty_for_new_user(conversations, user):
    assert conversations.list(user) == []


def test_create_defaults(conversations, user):
    conversation = conversations.create(user)
    assert conversation.title == DEFAULT_TITLE
    assert conversation.user_id == user.user_id
    assert conversation.created_at == conversation.updated_at
    assert conversation.started_from_course_id is None


def test_create_with_blank_title_uses_default(conversations, user):
    assert conversations.create(user, "   ").title == DEFAULT_TITLE


def test_create_keeps_title_and_provenance(conversations, user):
    conversation = conversations.create(
        user, "Exam revision", course_id="os-201", material_id="mat-3"
    )
    fetched = conversations.get(user, conversation.id)
    assert fetched.title == "Exam revision"
    assert fetched.started_from_course_id == "os-201"
    assert fetched.started_from_material_id == "mat-3"


def test_list_orders_by_latest_activity(conversations, user):
    first = conversations.create(user, "first")
    second = conversations.create(user, "second")
    assert [c.id for c in conversations.list(user)] == [second.id, first.id]

    conversations.touch(user, first.id)
    assert [c.id for c in conversations.list(user)] == [first.id, second.id]


def test_get_unknown_raises_not_found(conversations, user):
    with pytest.raises(NotFoundError) as excinfo:
        conversations.get(user, "missing")
    assert excinfo.value.conversation_id == "missing"


def test_rename_strips_and_advances(conversations, user):
    conversation = conversations.create(user)
    renamed = conversations.rename(user, conversation.id, "  My Notes ")
    assert renamed.title == "My Notes"
    assert renamed.updated_at > conversation.updated_at


def test_blank_rename_keeps_title_but_advances(conversations, user):
    conversation = conversations.create(user, "Algorithms")
    renamed = conversations.rename(user, conversation.id, "   ")
    assert renamed.title == "Algorithms"
    assert renamed.updated_at > conversation.updated_at


def test_rename_unknown_raises_not_found(conversations, user):
    with pytest.raises(NotFoundError):
        conversations.rename(user, "missing", "title")


def test_delete_unknown_is_a_no_op(conversations, user):
    conversations.delete(user, "missing")


def test_delete_removes_conversation(conversations, user):
    conversation = conversations.create(user)
    conversations.delete(user, conversation.id)
    assert conversations.list(user) == []
    with pytest.raises(NotFoundError):
        conversations.get(user, conversation.id)


def test_touch_adopts_title_only_while_default(conversations, user):
    conversation = conversations.create(user)
    touched = conversations.touch(user, conversation.id, title_if_unset="What is a stack?")
    assert touched.title == "What is a stack?"

    touched = conversations.touch(user, conversation.id, title_if_unset="Something else")
    assert touched.title == "What is a stack?"


def test_touch_never_moves_updated_at_backwards(conversations, user, clock):
    conversation = conversations.create(user)
    touched = conversations.touch(user, conversation.id)
    clock.rewind(3600)
    again = conversations.touch(user, conversation.id)
    assert again.updated_at == touched.updated_at
    assert again.updated_at >= again.created_at


def test_touch_unknown_raises_not_found(conversations, user):
    with pytest.raises(NotFoundError):
        conversations.touch(user, "missing")


def test_conversations_are_isolated_per_user(conversations, user, other_user):
    mine = conversations.create(user, "mine")
    conversations.create(other_user, "theirs")

    assert [c.title for c in conversations.list(user)] == ["mine"]
    with pytest.raises(NotFoundError):
        conversations.get(other_user, mine.id)
    with pytest.raises(NotFoundError):
        conversations.rename(other_user, mine.id, "stolen")

    conversations.delete(other_user, mine.id)
    assert conversations.get(user, mine.id).title == "mine"


# --- messages ---


def test_append_assigns_order(conversations, messages, user):
    conversation = conversations.create(user)
    question = messages.append(user, conversation.id, Sender.USER, "What is a stack?")
    reply = messages.append(
        user, conversation.id, Sender.ASSISTANT, "A LIFO collection", sources=["Stacks.pdf"]
    )

    listed = messages.list_for_conversation(user, conversation.id)
    assert [m.id for m in listed] == [question.id, reply.id]
    assert [m.sender for m in listed] == [Sender.USER, Sender.ASSISTANT]
    assert reply.sequence_order == question.sequence_order + 1
    assert listed[1].sources == ["Stacks.pdf"]
    assert listed[0].sources is None


def test_blank_user_message_is_rejected(conversations, messages, user):
    conversation = conversations.create(user)
    with pytest.raises(ValidationError):
        messages.append(user, conversation.id, Sender.USER, "  \n ")
    assert messages.list_for_conversation(user, conversation.id) == []


def test_created_at_is_non_decreasing_when_clock_goes_back(
    conversations, messages, user, clock
):
    conversation = conversations.create(user)
    messages.append(user, conversation.id, Sender.USER, "one")
    clock.rewind(600)
    messages.append(user, conversation.id, Sender.ASSISTANT, "two")
    messages.append(user, conversation.id, Sender.USER, "three")

    listed = messages.list_for_conversation(user, conversation.id)
    assert [m.content for m in listed] == ["one", "two", "three"]
    stamps = [m.created_at for m in listed]
    assert stamps == sorted(stamps)


def test_list_for_unknown_conversation_is_empty(messages, user):
    assert messages.list_for_conversation(user, "missing") == []


def test_delete_for_conversation(conversations, messages, user):
    keep = conversations.create(user)
    drop = conversations.create(user)
    messages.append(user, keep.id, Sender.USER, "keep me")
    messages.append(user, drop.id, Sender.USER, "drop me")

    messages.delete_for_conversation(user, drop.id)
    messages.delete_for_conversation(user, drop.id)

    assert messages.list_for_conversation(user, drop.id) == []
    assert [m.content for m in messages.list_for_conversation(user, keep.id)] == ["keep me"]


def test_messages_are_isolated_per_user(conversations, messages, user, other_user):
    conversation = conversations.create(user)
    messages.append(user, conversation.id, Sender.USER, "private")
    assert messages.list_for_conversation(other_user, conversation.id) == []


def test_append_to_unknown_conversation_raises_not_found(messages, user):
    with pytest.raises(NotFoundError) as excinfo:
        messages.append(user, "missing", Sender.USER, "hello?")
    assert excinfo.value.conversation_id == "missing"
    assert messages.list_for_conversation(user, "missing") == []


def test_append_to_deleted_conversation_raises_not_found(conversations, messages, user):
    conversation = conversations.create(user)
    conversations.delete(user, conversation.id)

    with pytest.raises(NotFoundError):
        messages.append(user, conversation.id, Sender.ASSISTANT, "too late")
    assert messages.list_for_conversation(user, conversation.id) == []


def test_append_to_foreign_conversation_raises_not_found(
    conversations, messages, user, other_user
):
    conversation = conversations.create(user)
    with pytest.raises(NotFoundError):
        messages.append(other_user, conversation.id, Sender.USER, "let me in")
    assert messages.list_for_conversation(other_user, conversation.id) == []


def test_message_content_is_stored_as_typed(conversations, messages, user):
    conversation = conversations.create(user)
    typed = "    def push(item):\n        stack.append(item)\n"
    messages.append(user, conversation.id, Sender.USER, typed)
    assert messages.list_for_conversation(user, conversation.id)[0].content == typed
