"""SQLAlchemy database models for masterplans, their version ledger, comments and conversations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from product_house.core.constants import CommentCategory, MasterplanFormat, MessageRole


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class MasterplanDB(Base):
    """Masterplan header row. Sections and formats live in child tables."""
    __tablename__ = "masterplans"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    owner_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<Masterplan(id={self.id}, v{self.version})>"


class MasterplanSectionDB(Base):
    """One section; ``position`` preserves document order."""
    __tablename__ = "masterplan_sections"

    masterplan_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("masterplans.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (
        Index("ix_masterplan_sections_order", "masterplan_id", "position"),
    )


class MasterplanFormatDB(Base):
    """A rendered format of the current sections."""
    __tablename__ = "masterplan_formats"

    masterplan_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("masterplans.id", ondelete="CASCADE"),
        primary_key=True,
    )
    format: Mapped[MasterplanFormat] = mapped_column(Enum(MasterplanFormat), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)


class MasterplanVersionDB(Base):
    """Append-only version ledger."""
    __tablename__ = "masterplan_versions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    masterplan_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("masterplans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    changes: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="List of {section_id, old_content, new_content, kind, title, level}",
    )
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Commit order; created_at alone can tie within one clock tick
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_masterplan_versions_sequence", "masterplan_id", "sequence", unique=True),
    )


class CommentDB(Base):
    """Section comment. Not part of the version ledger."""
    __tablename__ = "masterplan_comments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    masterplan_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("masterplans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[CommentCategory]] = mapped_column(Enum(CommentCategory), nullable=True)
    mentions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_masterplan_comments_section", "masterplan_id", "section_id"),
    )


class ConversationDB(Base):
    """Conversation header row; messages live in their own table."""
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, title={self.title})>"


class ConversationMessageDB(Base):
    """One message of a conversation."""
    __tablename__ = "conversation_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MessageRole] = mapped_column(Enum(MessageRole), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Append order; timestamps can tie when a reply is stored with its prompt
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_conversation_messages_sequence", "conversation_id", "sequence", unique=True),
    )
