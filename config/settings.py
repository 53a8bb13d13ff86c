"""Configuration settings for Local Chat Assistant."""

import os


def _optional_float(name: str, default=None):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
CHAT_ENDPOINT = "/api/chat"
TAGS_ENDPOINT = "/api/tags"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///chat.db")

# History limit per chat, applied on load and after every insert
MAX_HISTORY_MESSAGES = int(os.getenv("MAX_HISTORY_MESSAGES", "10000"))
MAX_TITLE_LEN = 255
MAX_MESSAGE_LEN = 1_000_000
DEFAULT_CHAT_TITLE = "New Chat"

# None waits for the backend indefinitely
REQUEST_TIMEOUT = _optional_float("OLLAMA_REQUEST_TIMEOUT")
MODEL_LIST_TIMEOUT = _optional_float("OLLAMA_MODEL_LIST_TIMEOUT", 10.0)

# Generation defaults; empty model forces an explicit choice in Settings
DEFAULT_MODEL = ""
DEFAULT_SYSTEM_PROMPT = ""
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 0.95
DEFAULT_MAX_TOKENS = 512
DEFAULT_ZOOM = 100
DEFAULT_WINDOW_WIDTH = 1024
DEFAULT_WINDOW_HEIGHT = 768

MIN_ZOOM = 50
MAX_ZOOM = 200
ZOOM_STEP = 10

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
