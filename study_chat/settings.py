from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

class Config(BaseSettings):
    db_url: str = Field(default="sqlite:///./study_chat.db")
    answer_backend: Literal["placeholder", "gemini"] = Field(default="placeholder")
    gemini_api_key: str | None = Field(default=None)
    gemini_model: str = Field(default="gemini-2.0-flash")
    answer_timeout: float = Field(default=30.0)
    history_limit: int = Field(default=10)

config = Config()
