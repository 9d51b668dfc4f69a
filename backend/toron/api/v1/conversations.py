import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from toron.core.config import Settings, get_settings
from toron.core.errors import SandboxError
from toron.db.session import SessionLocal
from toron.models.audience import AUDIENCE_SIDES, DEFAULT_NICKNAME, Comment, Vote
from toron.schemas.audience import CommentCreateRequest, VoteRequest
from toron.schemas.conversation import (
    CommentItem,
    ConversationResponse,
    DebateTurnItem,
    SendMessageRequest,
    SendMessageResponse,
    StatusCallbackRequest,
    VerdictRequest,
    VoteCounts,
)
from toron.services import audience, orchestrator
from toron.services.events import log_event
from toron.services.evidence import extract_evidence
from toron.services.sandbox import SandboxProvider, build_file_tree, get_sandbox_provider
from toron.services.transcript import parse_session_jsonl, session_file_path

logger = logging.getLogger(__name__)
router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.post("", response_model=SendMessageResponse)
def send_message(
    payload: SendMessageRequest,
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
    settings: Settings = Depends(get_settings),
) -> SendMessageResponse:
    """Send a message, creating the conversation on first use, and start the agent turn."""
    conversation = orchestrator.submit_message(
        db,
        provider,
        settings,
        conversation_id=payload.conversation_id,
        content=payload.content,
        is_verdict_request=payload.is_verdict_request,
        metadata=payload.debate_metadata,
    )
    return SendMessageResponse(conversation_id=conversation.id, status="running")


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation(
    conversation_id: uuid.UUID,
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
) -> ConversationResponse:
    conversation = orchestrator.get_conversation(db, conversation_id)

    response = ConversationResponse(
        id=conversation.id,
        status=conversation.status,
        error_message=conversation.error_message,
        debate_topic=conversation.debate_topic,
        user_side=conversation.user_side,
        agent_side=conversation.agent_side,
        debate_mode=conversation.debate_mode,
        current_side=conversation.current_side,
        turn_count=conversation.turn_count,
        max_turns=conversation.max_turns,
        user_verdict=conversation.user_verdict,
        votes=VoteCounts(**audience.vote_counts(db, conversation.id)),
        comments=[CommentItem.model_validate(c) for c in conversation.comments],
    )
    if conversation.is_ai_vs_ai:
        response.turns = [DebateTurnItem.model_validate(t) for t in conversation.turns]

    if conversation.session_id and conversation.volume_id:
        try:
            content = provider.read_file(conversation.volume_id, session_file_path(conversation.session_id))
        except SandboxError as exc:
            # Not written yet, or the volume is unreachable; the client keeps polling.
            logger.info("transcript for conversation %s not readable yet: %s", conversation.id, exc)
        else:
            response.messages = parse_session_jsonl(content)
            response.evidence = extract_evidence(response.messages)

    return response


@router.post("/{conversation_id}/status")
def turn_status_callback(
    conversation_id: uuid.UUID,
    payload: StatusCallbackRequest,
    token: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Completion callback posted by the agent running in the sandbox."""
    return orchestrator.on_turn_complete(
        db,
        provider,
        settings,
        conversation_id=conversation_id,
        status=payload.status,
        token=token,
        session_id=payload.session_id,
        error_message=payload.error_message,
    )


@router.post("/{conversation_id}/vote")
def vote(
    conversation_id: uuid.UUID,
    body: VoteRequest,
    db: Session = Depends(get_db),
) -> dict[str, int]:
    if body.side not in AUDIENCE_SIDES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Side must be 'user' or 'agent'")

    conversation = orchestrator.get_conversation(db, conversation_id)
    db.add(Vote(conversation_id=conversation.id, side=body.side))
    log_event(
        db,
        event_type="vote_cast",
        payload={"conversation_id": str(conversation.id), "side": body.side},
        conversation_id=conversation.id,
        commit=False,
    )
    db.commit()

    return audience.vote_counts(db, conversation.id)


@router.get("/{conversation_id}/comments")
def list_comments(
    conversation_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> dict[str, list[CommentItem]]:
    rows = (
        db.query(Comment)
        .filter(Comment.conversation_id == conversation_id)
        .order_by(Comment.created_at.asc())
        .all()
    )
    return {"comments": [CommentItem.model_validate(c) for c in rows]}


@router.post("/{conversation_id}/comments", status_code=status.HTTP_201_CREATED, response_model=CommentItem)
def add_comment(
    conversation_id: uuid.UUID,
    body: CommentCreateRequest,
    db: Session = Depends(get_db),
) -> CommentItem:
    """Add an audience comment, or a tag-in argued on behalf of a side."""
    content = body.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content is required")
    if body.side is not None and body.side not in AUDIENCE_SIDES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Side must be 'user' or 'agent'")

    conversation = orchestrator.get_conversation(db, conversation_id)
    comment = Comment(
        conversation_id=conversation.id,
        content=content,
        nickname=(body.nickname or "").strip() or DEFAULT_NICKNAME,
        side=body.side,
        is_tag_in=body.is_tag_in,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    log_event(
        db,
        event_type="comment_created",
        payload={
            "conversation_id": str(conversation.id),
            "comment_id": str(comment.id),
            "is_tag_in": comment.is_tag_in,
        },
        conversation_id=conversation.id,
    )
    return CommentItem.model_validate(comment)


@router.post("/{conversation_id}/verdict")
def submit_verdict(
    conversation_id: uuid.UUID,
    body: VerdictRequest,
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    """The human's verdict on an ai-vs-ai debate."""
    verdict = body.verdict.strip()
    if not verdict:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verdict content is required")

    conversation = orchestrator.get_conversation(db, conversation_id)
    if not conversation.is_ai_vs_ai:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verdict is only available for AI vs AI debates",
        )

    conversation.user_verdict = verdict
    log_event(
        db,
        event_type="verdict_submitted",
        payload={"conversation_id": str(conversation.id)},
        conversation_id=conversation.id,
        commit=False,
    )
    db.commit()
    return {"success": True}


@router.get("/{conversation_id}/files")
def list_files(
    conversation_id: uuid.UUID,
    path: str = Query(default="/"),
    tree: bool = Query(default=False),
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
) -> dict[str, Any]:
    """Browse the conversation's workspace volume."""
    conversation = orchestrator.get_conversation(db, conversation_id)
    if not conversation.volume_id:
        return {"files": []}
    if tree:
        return {"files": build_file_tree(provider, conversation.volume_id, path)}
    try:
        return {"files": provider.list_files(conversation.volume_id, path)}
    except SandboxError:
        return {"files": []}


@router.get("/{conversation_id}/files/{file_path:path}", response_class=PlainTextResponse)
def read_file(
    conversation_id: uuid.UUID,
    file_path: str,
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
) -> PlainTextResponse:
    conversation = orchestrator.get_conversation(db, conversation_id)
    if not conversation.volume_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        content = provider.read_file(conversation.volume_id, file_path)
    except SandboxError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from exc
    return PlainTextResponse(content=content, media_type="text/plain; charset=utf-8")
