"""Load and apply the global generation settings."""

import logging
import math
from typing import Optional

from core.errors import StorageError
from models.schemas import Settings
from storage.chat_store import ChatStore
from utils.limits import clamp_to_i32

logger = logging.getLogger(__name__)

_INT_FIELDS = ("max_tokens", "zoom", "window_width", "window_height")
_FLOAT_FIELDS = ("temperature", "top_p")


def _finite_or_default(value: Optional[float], default: float) -> float:
    if value is None or not math.isfinite(value):
        return default
    return float(value)


class SettingsManager:
    """Owns the single settings record; the only path that mutates it."""

    def __init__(self, store: ChatStore):
        self.store = store

    def load(self) -> Settings:
        """Stored settings with per-field defaults. Always maximized."""
        stored = self.store.get_settings()
        defaults = Settings()
        if stored is None:
            logger.info("No stored settings, using defaults")
            return defaults

        values = {
            "model": stored.get("model") or defaults.model,
            "system_prompt": stored.get("system_prompt") or defaults.system_prompt,
        }
        for field in _FLOAT_FIELDS:
            values[field] = _finite_or_default(stored.get(field), getattr(defaults, field))
        for field in _INT_FIELDS:
            raw = stored.get(field)
            values[field] = clamp_to_i32(raw) if raw is not None else getattr(defaults, field)
        # Stored flag is ignored: the window always starts maximized
        values["maximized"] = True
        return Settings(**values)

    def apply(self, new_settings: Settings) -> Settings:
        """Normalize, persist and return the canonical settings snapshot."""
        defaults = Settings()
        canonical = new_settings.model_copy(update={
            "model": new_settings.model.strip(),
            "temperature": _finite_or_default(new_settings.temperature, defaults.temperature),
            "top_p": _finite_or_default(new_settings.top_p, defaults.top_p),
            **{field: clamp_to_i32(getattr(new_settings, field)) for field in _INT_FIELDS},
            "maximized": True,
        })
        self.store.set_settings(canonical)
        logger.info("Applied settings (model=%r)", canonical.model)
        return canonical

    def delete_all_history(self) -> None:
        """Remove every chat and message. Settings stay as they are."""
        try:
            self.store.delete_all()
        except StorageError:
            logger.exception("Failed to delete chat history")
            raise
        logger.info("Deleted all chat history")
