"""SQLAlchemy tables for chats, messages and the settings singleton."""

from sqlalchemy import (
    CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
)
from sqlalchemy.orm import declarative_base

from config.settings import MAX_TITLE_LEN

Base = declarative_base()


class ChatRow(Base):
    __tablename__ = "chats"
    id = Column(String(36), primary_key=True)          # uuid4 text
    title = Column(String(MAX_TITLE_LEN), nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"
    # AUTOINCREMENT keeps ids from being reused after cap deletions
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False)          # "system" | "user" | "assistant"
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, server_default=func.current_timestamp(), nullable=False)

    __table_args__ = (
        Index("ix_messages_chat_id_id", "chat_id", "id"),
        {"sqlite_autoincrement": True},
    )


class SettingsRow(Base):
    __tablename__ = "settings"
    id = Column(Integer, primary_key=True)
    model = Column(Text, nullable=False)
    system_prompt = Column(Text)
    temperature = Column(Float)
    top_p = Column(Float)
    max_tokens = Column(Integer)
    zoom = Column(Integer)
    maximized = Column(Integer)
    window_width = Column(Integer)
    window_height = Column(Integer)

    __table_args__ = (CheckConstraint("id = 1", name="ck_settings_singleton"),)
