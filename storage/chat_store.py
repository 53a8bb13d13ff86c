"""SQLite-backed storage for chats, messages and settings."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, delete, event, func, literal_column, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import DATABASE_URL
from core.errors import ChatNotFound, StorageError
from models.schemas import Chat, Message, Settings
from storage.tables import Base, ChatRow, MessageRow, SettingsRow

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant")
_SETTINGS_ID = 1
_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _enable_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _to_message(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        chat_id=row.chat_id,
        role=row.role,
        content=row.content,
        timestamp=row.timestamp,
    )


class ChatStore:
    """Durable store for chats, messages and the settings singleton.

    Every call runs in its own session and commits before returning. Writes
    are serialized with a re-entrant lock so requests from several chats can
    finish concurrently without tripping over SQLite's single writer.
    """

    def __init__(self, url: str = DATABASE_URL):
        kwargs = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in _IN_MEMORY_URLS:
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_foreign_keys)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self._write_lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not initialize database: {e}") from e
        with self._write() as session:
            if session.get(SettingsRow, _SETTINGS_ID) is None:
                defaults = Settings()
                session.add(SettingsRow(id=_SETTINGS_ID, **self._settings_columns(defaults)))
                logger.info("Seeded default settings row")

    @contextmanager
    def _read(self) -> Iterator[Session]:
        try:
            with self._sessions() as session:
                yield session
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    @contextmanager
    def _write(self) -> Iterator[Session]:
        with self._write_lock:
            try:
                with self._sessions.begin() as session:
                    yield session
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e

    def close(self) -> None:
        self.engine.dispose()

    # --- Chats

    def create_chat(self, chat_id: str, title: str) -> Chat:
        with self._write() as session:
            session.add(ChatRow(id=chat_id, title=title))
        return Chat(id=chat_id, title=title)

    def list_chats(self) -> List[Chat]:
        """All chats in insertion order."""
        with self._read() as session:
            rows = session.execute(
                select(ChatRow.id, ChatRow.title).order_by(literal_column("chats.rowid"))
            ).all()
        return [Chat(id=cid, title=title) for cid, title in rows]

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        with self._read() as session:
            row = session.get(ChatRow, chat_id)
            return Chat(id=row.id, title=row.title) if row else None

    def rename_chat(self, chat_id: str, title: str) -> bool:
        """Rename a chat; a missing id is a no-op."""
        with self._write() as session:
            result = session.execute(
                update(ChatRow).where(ChatRow.id == chat_id).values(title=title)
            )
            return result.rowcount > 0

    def delete_chat(self, chat_id: str) -> bool:
        with self._write() as session:
            session.execute(delete(MessageRow).where(MessageRow.chat_id == chat_id))
            result = session.execute(delete(ChatRow).where(ChatRow.id == chat_id))
            return result.rowcount > 0

    def delete_all(self) -> None:
        """Wipe chats and messages. Settings are kept."""
        with self._write() as session:
            session.execute(delete(MessageRow))
            session.execute(delete(ChatRow))

    # --- Messages

    def append_message(self, chat_id: str, role: str, content: str) -> Message:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        with self._write() as session:
            if session.get(ChatRow, chat_id) is None:
                raise ChatNotFound(chat_id)
            row = MessageRow(chat_id=chat_id, role=role, content=content)
            session.add(row)
            session.flush()
            session.refresh(row)
            return _to_message(row)

    def load_messages(self, chat_id: str, limit: Optional[int] = None) -> List[Message]:
        """Newest `limit` messages of a chat, in chronological order."""
        if limit is not None and limit <= 0:
            return []
        stmt = select(MessageRow).where(MessageRow.chat_id == chat_id).order_by(MessageRow.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._read() as session:
            rows = session.scalars(stmt).all()
            messages = [_to_message(row) for row in rows]
        messages.reverse()
        return messages

    def count_messages(self, chat_id: str) -> int:
        with self._read() as session:
            return session.scalar(
                select(func.count()).select_from(MessageRow).where(MessageRow.chat_id == chat_id)
            )

    def enforce_cap(self, chat_id: str, cap: int) -> int:
        """Keep only the `cap` newest messages of a chat. Returns rows deleted."""
        if cap < 0:
            raise ValueError("cap must be non-negative")
        with self._write() as session:
            count = session.scalar(
                select(func.count()).select_from(MessageRow).where(MessageRow.chat_id == chat_id)
            )
            if count <= cap:
                return 0
            # (cap + 1)-th newest: it and everything older goes
            cutoff_id = session.scalar(
                select(MessageRow.id)
                .where(MessageRow.chat_id == chat_id)
                .order_by(MessageRow.id.desc())
                .offset(cap)
                .limit(1)
            )
            result = session.execute(
                delete(MessageRow).where(MessageRow.chat_id == chat_id, MessageRow.id <= cutoff_id)
            )
            deleted = result.rowcount
        logger.info("Trimmed %d old messages from chat %s (cap %d)", deleted, chat_id, cap)
        return deleted

    # --- Settings

    @staticmethod
    def _settings_columns(settings: Settings) -> dict:
        return {
            "model": settings.model,
            "system_prompt": settings.system_prompt,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "max_tokens": settings.max_tokens,
            "zoom": settings.zoom,
            "maximized": 1 if settings.maximized else 0,
            "window_width": settings.window_width,
            "window_height": settings.window_height,
        }

    def get_settings(self) -> Optional[dict]:
        """Raw stored settings columns, or None when the row is missing."""
        with self._read() as session:
            row = session.get(SettingsRow, _SETTINGS_ID)
            if row is None:
                return None
            return {
                "model": row.model,
                "system_prompt": row.system_prompt,
                "temperature": row.temperature,
                "top_p": row.top_p,
                "max_tokens": row.max_tokens,
                "zoom": row.zoom,
                "maximized": row.maximized,
                "window_width": row.window_width,
                "window_height": row.window_height,
            }

    def set_settings(self, settings: Settings) -> None:
        with self._write() as session:
            session.merge(SettingsRow(id=_SETTINGS_ID, **self._settings_columns(settings)))
