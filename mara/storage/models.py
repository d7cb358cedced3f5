"""Relational schema for the durable continuity backend."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_naive_now() -> datetime:
    # Stored naive in UTC so SQLite and PostgreSQL compare the same way.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionRow(Base):
    __tablename__ = "sessions"

    session_id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    student_number = Column(String(50), nullable=True)
    chat_id = Column(String(50), nullable=True, index=True)
    user_type = Column(String(50))
    student_info = Column(JSON)
    created_at = Column(DateTime, default=utc_naive_now)
    last_active = Column(DateTime, default=utc_naive_now, index=True)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(255),
        ForeignKey("sessions.session_id", ondelete="CASCADE"),
        index=True,
    )
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    intent = Column(String(50), nullable=True)
    emotional_state = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utc_naive_now, index=True)


class ChatHistoryRow(Base):
    """Continuity record keyed by chat ID; identity lives on the session row."""

    __tablename__ = "chat_history"

    chat_id = Column(String(50), primary_key=True)
    session_summary = Column(Text)
    last_session_id = Column(String(255))
    created_at = Column(DateTime, default=utc_naive_now)
    updated_at = Column(DateTime, default=utc_naive_now)


Index("idx_messages_session_created", MessageRow.session_id, MessageRow.created_at)
