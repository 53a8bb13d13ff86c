"""Clamping and truncation helpers for persisted values."""

from config.settings import MAX_MESSAGE_LEN, MAX_TITLE_LEN

I32_MIN = -(2 ** 31)
I32_MAX = 2 ** 31 - 1


def clamp_to_i32(value: int) -> int:
    """Clamp an integer into the signed 32-bit range."""
    return max(I32_MIN, min(I32_MAX, int(value)))


def truncate_title(title: str, limit: int = MAX_TITLE_LEN) -> str:
    return title[:limit]


def truncate_message(text: str, limit: int = MAX_MESSAGE_LEN) -> str:
    """Cut oversized input instead of rejecting it."""
    return text[:limit]
