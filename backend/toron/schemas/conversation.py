from datetime import datetime
from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class DebateMetadata(BaseModel):
    topic: str
    user_side: str
    agent_side: str
    debate_mode: Literal["user-vs-ai", "ai-vs-ai"] = "user-vs-ai"
    max_turns: Optional[int] = Field(default=None, ge=1, le=50)


class SendMessageRequest(BaseModel):
    conversation_id: Optional[UUID] = None
    content: str = ""
    debate_metadata: Optional[DebateMetadata] = None
    is_verdict_request: bool = False


class SendMessageResponse(BaseModel):
    conversation_id: UUID
    status: str


class StatusCallbackRequest(BaseModel):
    """Body posted by the agent harness. It sends camelCase keys."""

    status: Literal["completed", "error"]
    session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )
    error_message: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("errorMessage", "error_message"),
    )


class VerdictRequest(BaseModel):
    verdict: str = ""


class DebateTurnItem(BaseModel):
    id: UUID
    turn_number: int
    side: str
    side_label: str
    persona: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class VoteCounts(BaseModel):
    user: int = 0
    agent: int = 0


class CommentItem(BaseModel):
    id: UUID
    nickname: str
    content: str
    side: Optional[str] = None
    is_tag_in: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: UUID
    status: str
    messages: List[dict[str, Any]] = Field(default_factory=list)
    evidence: List[dict[str, Any]] = Field(default_factory=list)
    error_message: Optional[str] = None
    debate_topic: Optional[str] = None
    user_side: Optional[str] = None
    agent_side: Optional[str] = None
    debate_mode: str
    current_side: Optional[str] = None
    turn_count: int
    max_turns: int
    user_verdict: Optional[str] = None
    votes: VoteCounts
    comments: List[CommentItem] = Field(default_factory=list)
    turns: Optional[List[DebateTurnItem]] = None
