import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from toron.db.base import Base


AUDIENCE_SIDES = ("user", "agent")
DEFAULT_NICKNAME = "관중"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (Index("ix_votes_conversation_id", "conversation_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id"),
        nullable=False,
    )
    side: Mapped[str] = mapped_column(String(length=16), nullable=False)  # user | agent
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="votes")


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_conversation_id", "conversation_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id"),
        nullable=False,
    )
    nickname: Mapped[str] = mapped_column(String(length=64), nullable=False, default=DEFAULT_NICKNAME)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    side: Mapped[Optional[str]] = mapped_column(String(length=16), nullable=True)
    is_tag_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    # Set once the comment has been folded into a user-vs-ai prompt.
    surfaced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="comments")
