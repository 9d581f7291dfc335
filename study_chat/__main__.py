import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.cors import CORSMiddleware

from study_chat.chat.answers import build_answer_generator
from study_chat.chat.service import ChatService
from study_chat.chat.stores import SqlConversationStore, SqlMessageStore
from study_chat.db import init_db
from study_chat.routes.chat.route import router as chat_router
from study_chat.settings import config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_chat_service() -> ChatService:
    return ChatService(
        conversations=SqlConversationStore(),
        messages=SqlMessageStore(),
        answers=build_answer_generator(config),
        history_limit=config.history_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.create_tables:
        init_db(config.db_url)
        logger.info("Database tables ready")
    yield


def initialize_app(service: Optional[ChatService] = None) -> FastAPI:
    app = FastAPI(
        title="Study Chat API",
        description="Course material Q&A chat: conversations, messages and answers",
        version="1.0.0",
        docs_url="/chat/docs",
        redoc_url="/chat/redoc",
        openapi_url="/chat/openapi.json",
        lifespan=lifespan,
    )

    # injected services bring their own storage
    app.state.create_tables = service is None
    app.state.chat_service = service or build_chat_service()

    app.include_router(chat_router, prefix="/api/v1/chat", tags=["chat"])

    @app.get("/")
    async def root():
        return {"message": "Study Chat API is running"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


def add_middlewares(app: FastAPI):
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Replace with specific domains in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response


app = initialize_app()
add_middlewares(app)


if __name__ == "__main__":
    logger.info("Starting Study Chat API server...")
    import uvicorn

    uvicorn.run(
        "study_chat.__main__:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
