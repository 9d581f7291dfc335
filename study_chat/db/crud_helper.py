from study_chat.db import CRUDCapability
from study_chat.models.chat import Conversation, Message


class ConversationCRUD(CRUDCapability[Conversation]):
    resource_db = Conversation


class MessageCRUD(CRUDCapability[Message]):
    resource_db = Message


conversation_crud = ConversationCRUD(Conversation)
message_crud = MessageCRUD(Message)
