import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from toron.db.base import Base


STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

MODE_USER_VS_AI = "user-vs-ai"
MODE_AI_VS_AI = "ai-vs-ai"

SIDE_A = "sideA"
SIDE_B = "sideB"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (Index("ix_conversations_updated_at", "updated_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(String(length=16), nullable=False, default=STATUS_IDLE)  # idle | running | completed | error
    debate_topic: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_side: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    agent_side: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    debate_mode: Mapped[str] = mapped_column(String(length=16), nullable=False, default=MODE_USER_VS_AI)
    current_side: Mapped[Optional[str]] = mapped_column(String(length=8), nullable=True)  # sideA | sideB, ai-vs-ai only
    turn_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_turns: Mapped[int] = mapped_column(Integer, nullable=False, default=5, server_default="5")

    volume_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    sandbox_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    callback_token_hash: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_verdict: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    turns: Mapped[list["DebateTurn"]] = relationship(
        "DebateTurn",
        back_populates="conversation",
        order_by="DebateTurn.turn_number",
    )
    votes: Mapped[list["Vote"]] = relationship("Vote", back_populates="conversation")
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="conversation",
        order_by="Comment.created_at",
    )

    @property
    def is_ai_vs_ai(self) -> bool:
        return self.debate_mode == MODE_AI_VS_AI


class DebateTurn(Base):
    __tablename__ = "debate_turns"
    __table_args__ = (Index("ix_debate_turns_conversation_id", "conversation_id"),)

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
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False)
    side: Mapped[str] = mapped_column(String(length=8), nullable=False)
    side_label: Mapped[str] = mapped_column(String(length=255), nullable=False)
    persona: Mapped[str] = mapped_column(String(length=64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="turns")
