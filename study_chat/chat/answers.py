import logging
from abc import ABC, abstractmethod
from typing import List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_google_genai import ChatGoogleGenerativeAI

from study_chat.chat.schema import Answer, AnswerRequest, MessageRecord, Sender
from study_chat.settings import Config, config

logger = logging.getLogger(__name__)

PLACEHOLDER_SOURCES = ["Example Note.pdf (page 2)"]

SYSTEM_MESSAGE = """You are a study assistant helping a student with their course materials.

Answer the student's question clearly and concisely. Use the conversation history to
understand follow-up questions such as "explain more" or "give an example".

FORMATTING RULES:
1. Format your response in Markdown
2. Prefer short paragraphs and bullet lists for definitions and steps
3. If you are not sure about something, say so instead of guessing
"""


class AnswerGenerator(ABC):
    """Produces the assistant reply for a question asked in a conversation."""

    @abstractmethod
    async def generate(self, request: AnswerRequest) -> Answer:
        ...


class PlaceholderAnswerGenerator(AnswerGenerator):
    """Canned reply used until answers come from the uploaded notes."""

    async def generate(self, request: AnswerRequest) -> Answer:
        content = (
            "This is a placeholder answer. In the real app, I will answer using "
            f'your uploaded notes.\n\nYou asked: "{request.content}"'
        )
        return Answer(content=content, sources=list(PLACEHOLDER_SOURCES))


def to_chat_history(messages: List[MessageRecord]) -> List[BaseMessage]:
    """
    Convert stored messages to LangChain messages.

    Args:
        messages: Messages in chronological order

    Returns:
        List of LangChain message objects
    """
    history: List[BaseMessage] = []
    for msg in messages:
        if msg.sender == Sender.USER:
            history.append(HumanMessage(content=msg.content))
        elif msg.sender == Sender.ASSISTANT:
            history.append(AIMessage(content=msg.content))
    return history


class GeminiAnswerGenerator(AnswerGenerator):
    def __init__(self, settings: Config):
        if not settings.gemini_api_key:
            raise ValueError("gemini_api_key must be set to use the gemini answer backend")

        llm = ChatGoogleGenerativeAI(
            model=settings.gemini_model,
            google_api_key=settings.gemini_api_key,
            temperature=0.2,
            timeout=settings.answer_timeout,
        )
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", SYSTEM_MESSAGE),
                MessagesPlaceholder("chat_history"),
                ("human", "{input}"),
            ]
        )
        self.chain = prompt | llm

    async def generate(self, request: AnswerRequest) -> Answer:
        result = await self.chain.ainvoke(
            {"input": request.content, "chat_history": to_chat_history(request.history)}
        )
        content = result.content
        if isinstance(content, list):
            # multi-part responses carry text blocks alongside other parts
            content = "".join(
                part if isinstance(part, str) else part.get("text", "")
                for part in content
            )
        if not content:
            content = "I apologize, but I couldn't generate a proper response. Please try rephrasing your question."
        return Answer(content=content, sources=[])


def build_answer_generator(settings: Config = config) -> AnswerGenerator:
    if settings.answer_backend == "gemini":
        logger.info(f"Using Gemini answer backend ({settings.gemini_model})")
        return GeminiAnswerGenerator(settings)
    logger.info("Using placeholder answer backend")
    return PlaceholderAnswerGenerator()
