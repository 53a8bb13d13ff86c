"""Pydantic schemas for Local Chat Assistant."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from config.settings import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    DEFAULT_WINDOW_HEIGHT,
    DEFAULT_WINDOW_WIDTH,
    DEFAULT_ZOOM,
)

Role = Literal["system", "user", "assistant"]


class Chat(BaseModel):
    """A persisted conversation thread."""
    id: str
    title: str


class Message(BaseModel):
    """Single stored turn of a chat, ordered by id."""
    id: int
    chat_id: str
    role: Role
    content: str
    timestamp: Optional[datetime] = None


class SamplingParams(BaseModel):
    """Generation parameters forwarded to the backend."""
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    max_tokens: int = DEFAULT_MAX_TOKENS


class Settings(BaseModel):
    """Global generation and window configuration (singleton row)."""
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    max_tokens: int = DEFAULT_MAX_TOKENS
    zoom: int = DEFAULT_ZOOM
    window_width: int = DEFAULT_WINDOW_WIDTH
    window_height: int = DEFAULT_WINDOW_HEIGHT
    maximized: bool = True  # always launches maximized, not exposed in the UI

    def sampling_params(self) -> SamplingParams:
        return SamplingParams(
            temperature=self.temperature,
            top_p=self.top_p,
            max_tokens=self.max_tokens,
        )


class ChatTurn(BaseModel):
    """One {role, content} entry of the request conversation."""
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Body of the non-streaming chat request."""
    model: str
    messages: List[ChatTurn]
    stream: bool = False
    parameters: SamplingParams


class ChatResponseMessage(BaseModel):
    role: str
    content: str


class ChatResponse(BaseModel):
    """Expected shape of a chat response body."""
    message: ChatResponseMessage
    done: bool = True
