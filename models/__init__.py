"""Models package."""

from .schemas import (
    Chat,
    ChatRequest,
    ChatResponse,
    ChatResponseMessage,
    ChatTurn,
    Message,
    Role,
    SamplingParams,
    Settings,
)

__all__ = [
    "Chat",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseMessage",
    "ChatTurn",
    "Message",
    "Role",
    "SamplingParams",
    "Settings",
]
