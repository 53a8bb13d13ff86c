"""Exception types for the chat assistant."""

from typing import Optional


class ChatAssistantError(Exception):
    """Base class for all chat assistant errors."""


class StorageError(ChatAssistantError):
    """A persistence operation failed. Never retried."""


class ChatNotFound(StorageError):
    def __init__(self, chat_id: str):
        super().__init__(f"Chat not found: {chat_id}")
        self.chat_id = chat_id


class InferenceError(ChatAssistantError):
    """Base class for failed exchanges with the inference backend."""


class ConnectionFailed(InferenceError):
    """Backend unreachable."""


class RequestTimedOut(ConnectionFailed):
    """Backend did not answer within the configured timeout."""


class BadStatus(InferenceError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason or ""
        super().__init__(f"Backend returned status {self.status_line}")

    @property
    def status_line(self) -> str:
        return f"{self.status_code} {self.reason}".strip()


class ParseFailed(InferenceError):
    """Response body could not be decoded into the expected shape."""
