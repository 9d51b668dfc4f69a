"""Turn orchestration for debates.

A conversation runs at most one agent sandbox at a time. ``submit_message``
starts a turn from a human message; ``on_turn_complete`` is called by the agent
when its turn ends and either finishes the turn or, in ai-vs-ai mode, hands the
response straight to the opposing side and launches it.

Every launch mints a callback token whose hash is stored on the conversation.
A callback consumes the token with a conditional update before doing any work,
and a chained turn gets a fresh one. A replayed or concurrent delivery of the
same callback finds no active token and is answered as a duplicate.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from toron.core.config import Settings
from toron.core.errors import CallbackRejected, ConversationBusy, ConversationNotFound, InvalidRequest, SandboxError
from toron.core.security import generate_callback_token, hash_callback_token, verify_callback_token
from toron.models.audience import Comment, Vote
from toron.models.conversation import (
    MODE_AI_VS_AI,
    MODE_USER_VS_AI,
    SIDE_A,
    SIDE_B,
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_RUNNING,
    Conversation,
    DebateTurn,
)
from toron.models.event import Event
from toron.schemas.conversation import DebateMetadata
from toron.services import audience
from toron.services.events import log_event
from toron.services.launcher import DebateContext, launch_agent
from toron.services.sandbox import SandboxProvider, kill_sandbox_quietly
from toron.services.transcript import extract_last_assistant_text, parse_session_jsonl, session_file_path

logger = logging.getLogger(__name__)

PERSONAS = {SIDE_A: "알파", SIDE_B: "오메가"}
AGENT_ROLES = {SIDE_A: "agent-a", SIDE_B: "agent-b"}

LAUNCH_FAILED_MESSAGE = "Failed to start the agent sandbox"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_side(side: str) -> str:
    return SIDE_B if side == SIDE_A else SIDE_A


def side_labels(conversation: Conversation, side: str) -> tuple[str, str]:
    """(label of ``side``, label of its opponent). sideA argues the user side label, sideB the agent side."""
    label_a = conversation.user_side or "Side A"
    label_b = conversation.agent_side or "Side B"
    return (label_a, label_b) if side == SIDE_A else (label_b, label_a)


def get_conversation(db: Session, conversation_id: uuid.UUID) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if conversation is None:
        raise ConversationNotFound()
    return conversation


def _debate_context(
    conversation: Conversation,
    *,
    is_verdict_request: bool,
    intervention: Optional[str] = None,
) -> DebateContext:
    if conversation.is_ai_vs_ai:
        side = conversation.current_side or SIDE_A
        own, opponent = side_labels(conversation, side)
        return DebateContext(
            debate_topic=conversation.debate_topic,
            user_side=opponent,
            agent_side=own,
            turn_count=conversation.turn_count,
            is_verdict_request=is_verdict_request,
            agent_role=AGENT_ROLES[side],
            ai_vs_ai_mode=True,
        )
    return DebateContext(
        debate_topic=conversation.debate_topic,
        user_side=conversation.user_side,
        agent_side=conversation.agent_side,
        turn_count=conversation.turn_count,
        is_verdict_request=is_verdict_request,
        intervention_mode=intervention,
    )


def _ensure_volume(db: Session, provider: SandboxProvider, conversation: Conversation) -> str:
    if not conversation.volume_id:
        conversation.volume_id = provider.create_volume(f"hackathon-{conversation.id}")
        db.commit()
        logger.info("created volume %s for conversation %s", conversation.volume_id, conversation.id)
    return conversation.volume_id


def _mark_failed(db: Session, conversation: Conversation, message: str) -> None:
    conversation.status = STATUS_ERROR
    conversation.error_message = message
    conversation.sandbox_id = None
    conversation.callback_token_hash = None
    log_event(
        db,
        event_type="turn_failed",
        payload={"conversation_id": str(conversation.id), "error": message},
        conversation_id=conversation.id,
        commit=False,
    )
    db.commit()


def _create_conversation(
    db: Session,
    provider: SandboxProvider,
    settings: Settings,
    metadata: Optional[DebateMetadata],
) -> Conversation:
    is_ai_vs_ai = metadata is not None and metadata.debate_mode == MODE_AI_VS_AI
    conversation = Conversation(
        status=STATUS_IDLE,
        debate_topic=metadata.topic if metadata else None,
        user_side=metadata.user_side if metadata else None,
        agent_side=metadata.agent_side if metadata else None,
        debate_mode=MODE_AI_VS_AI if is_ai_vs_ai else MODE_USER_VS_AI,
        current_side=SIDE_A if is_ai_vs_ai else None,
        turn_count=0,
        max_turns=(metadata.max_turns if metadata and metadata.max_turns else settings.default_max_turns),
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)

    log_event(
        db,
        event_type="conversation_created",
        payload={
            "conversation_id": str(conversation.id),
            "debate_mode": conversation.debate_mode,
            "topic": conversation.debate_topic,
        },
        conversation_id=conversation.id,
    )

    try:
        _ensure_volume(db, provider, conversation)
    except SandboxError as exc:
        logger.error("volume creation failed for conversation %s: %s", conversation.id, exc)
        _mark_failed(db, conversation, LAUNCH_FAILED_MESSAGE)
        raise SandboxError(LAUNCH_FAILED_MESSAGE) from exc
    return conversation


def _claim_turn(db: Session, conversation: Conversation, token_hash: str) -> None:
    """Move the conversation to running and count the turn, unless a turn is already in flight."""
    claimed = (
        db.query(Conversation)
        .filter(Conversation.id == conversation.id, Conversation.status != STATUS_RUNNING)
        .update(
            {
                Conversation.status: STATUS_RUNNING,
                Conversation.turn_count: Conversation.turn_count + 1,
                Conversation.callback_token_hash: token_hash,
                Conversation.error_message: None,
                Conversation.updated_at: _utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if not claimed:
        raise ConversationBusy()
    db.refresh(conversation)


def _attach_sandbox(
    db: Session,
    provider: SandboxProvider,
    conversation_id: uuid.UUID,
    token_hash: str,
    sandbox_id: str,
) -> bool:
    """Record the sandbox handle only if the turn that launched it is still the current one."""
    attached = (
        db.query(Conversation)
        .filter(
            Conversation.id == conversation_id,
            Conversation.status == STATUS_RUNNING,
            Conversation.callback_token_hash == token_hash,
        )
        .update(
            {Conversation.sandbox_id: sandbox_id, Conversation.updated_at: _utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    if not attached:
        logger.warning(
            "conversation %s moved on before sandbox %s was recorded; killing it",
            conversation_id,
            sandbox_id,
        )
        kill_sandbox_quietly(provider, sandbox_id)
    return bool(attached)


def submit_message(
    db: Session,
    provider: SandboxProvider,
    settings: Settings,
    *,
    conversation_id: Optional[uuid.UUID],
    content: str,
    is_verdict_request: bool = False,
    metadata: Optional[DebateMetadata] = None,
) -> Conversation:
    if not (content or "").strip():
        raise InvalidRequest("Message content is required")

    if conversation_id is not None:
        conversation = get_conversation(db, conversation_id)
        created = False
    else:
        conversation = _create_conversation(db, provider, settings, metadata)
        created = True

    token = generate_callback_token()
    token_hash = hash_callback_token(token)
    _claim_turn(db, conversation, token_hash)

    surfaced: list[Comment] = []
    intervention: Optional[str] = None
    if not created and not conversation.is_ai_vs_ai:
        surfaced = audience.unsurfaced_comments(db, conversation.id)
        content = audience.append_block(content, audience.format_audience_block(conversation, surfaced))
        if conversation.turn_count > 1:
            intervention = audience.intervention_mode(db, conversation.id)

    context = _debate_context(conversation, is_verdict_request=is_verdict_request, intervention=intervention)
    # ai-vs-ai turns always start a clean agent context
    resume_session_id = None if conversation.is_ai_vs_ai else conversation.session_id

    try:
        volume_id = _ensure_volume(db, provider, conversation)
        sandbox_id = launch_agent(
            provider,
            settings,
            volume_id=volume_id,
            conversation_id=conversation.id,
            content=content,
            callback_token=token,
            session_id=resume_session_id,
            context=context,
        )
    except SandboxError as exc:
        logger.error("agent launch failed for conversation %s: %s", conversation.id, exc)
        _mark_failed(db, conversation, LAUNCH_FAILED_MESSAGE)
        raise SandboxError(LAUNCH_FAILED_MESSAGE) from exc

    if _attach_sandbox(db, provider, conversation.id, token_hash, sandbox_id) and surfaced:
        now = _utcnow()
        for comment in surfaced:
            comment.surfaced_at = now
        db.commit()

    log_event(
        db,
        event_type="turn_started",
        payload={
            "conversation_id": str(conversation.id),
            "turn": conversation.turn_count,
            "verdict_request": is_verdict_request,
            "intervention": intervention,
            "side": conversation.current_side,
        },
        conversation_id=conversation.id,
    )
    db.refresh(conversation)
    return conversation


def _consume_callback_token(db: Session, conversation: Conversation, token_hash: str) -> bool:
    """Clear the verified token so a concurrent delivery of the same callback sees no active token."""
    consumed = (
        db.query(Conversation)
        .filter(Conversation.id == conversation.id, Conversation.callback_token_hash == token_hash)
        .update(
            {Conversation.callback_token_hash: None, Conversation.updated_at: _utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(conversation)
    return bool(consumed)


def _read_last_response(
    provider: SandboxProvider,
    settings: Settings,
    conversation: Conversation,
    session_id: str,
) -> str:
    # Volume writes from the sandbox land with a delay; there is no flush acknowledgement to wait on.
    if settings.transcript_read_delay_seconds > 0:
        time.sleep(settings.transcript_read_delay_seconds)
    try:
        text = provider.read_file(conversation.volume_id, session_file_path(session_id))
    except SandboxError as exc:
        logger.warning(
            "could not read transcript for session %s of conversation %s: %s",
            session_id,
            conversation.id,
            exc,
        )
        return ""
    try:
        return extract_last_assistant_text(parse_session_jsonl(text))
    except Exception:
        logger.exception("could not extract a response from session %s of conversation %s", session_id, conversation.id)
        return ""


def _finished_turn(conversation: Conversation, content: str) -> DebateTurn:
    side = conversation.current_side or SIDE_A
    label, _ = side_labels(conversation, side)
    return DebateTurn(
        conversation_id=conversation.id,
        turn_number=conversation.turn_count,
        side=side,
        side_label=label,
        persona=PERSONAS[side],
        content=content,
    )


def _commit_chain(
    db: Session,
    conversation: Conversation,
    response: str,
    session_id: str,
    token_hash: str,
) -> list[Comment]:
    """Record the finished turn and flip to the next side in one transaction.

    Pollers never see the finished turn as ``completed``: the conversation goes
    from running (side N) straight to running (side N+1).
    """
    finished = conversation.current_side or SIDE_A
    upcoming = next_side(finished)
    try:
        db.add(_finished_turn(conversation, response))
        comments = audience.recent_comments(db, conversation.id)
        conversation.turn_count = conversation.turn_count + 1
        conversation.current_side = upcoming
        conversation.status = STATUS_RUNNING
        conversation.session_id = session_id or conversation.session_id
        conversation.sandbox_id = None
        conversation.callback_token_hash = token_hash
        log_event(
            db,
            event_type="turn_chained",
            payload={
                "conversation_id": str(conversation.id),
                "finished_side": finished,
                "next_side": upcoming,
                "turn": conversation.turn_count,
            },
            conversation_id=conversation.id,
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return comments


def _launch_next_side(
    db: Session,
    provider: SandboxProvider,
    settings: Settings,
    conversation: Conversation,
    response: str,
    comments: list[Comment],
    token: str,
    token_hash: str,
    finished_sandbox_id: Optional[str],
) -> dict[str, Any]:
    if finished_sandbox_id:
        kill_sandbox_quietly(provider, finished_sandbox_id)

    next_content = audience.append_block(response, audience.format_moderator_block(comments))
    sandbox_id = launch_agent(
        provider,
        settings,
        volume_id=conversation.volume_id,
        conversation_id=conversation.id,
        content=next_content,
        callback_token=token,
        session_id=None,
        context=_debate_context(conversation, is_verdict_request=False),
    )
    _attach_sandbox(db, provider, conversation.id, token_hash, sandbox_id)
    logger.info(
        "chained conversation %s to %s (turn %s/%s)",
        conversation.id,
        conversation.current_side,
        conversation.turn_count,
        conversation.max_turns,
    )
    return {"success": True, "ai_vs_ai_chained": True, "next_side": conversation.current_side}


def _complete_turn(
    db: Session,
    provider: SandboxProvider,
    settings: Settings,
    conversation: Conversation,
    *,
    status: str,
    session_id: Optional[str],
    error_message: Optional[str],
    final_response: str,
    finished_sandbox_id: Optional[str],
) -> dict[str, Any]:
    if final_response and conversation.is_ai_vs_ai:
        db.add(_finished_turn(conversation, final_response))

    conversation.status = status
    conversation.error_message = error_message or None
    conversation.session_id = session_id or conversation.session_id
    conversation.sandbox_id = None
    conversation.callback_token_hash = None
    log_event(
        db,
        event_type="turn_completed",
        payload={
            "conversation_id": str(conversation.id),
            "status": status,
            "turn": conversation.turn_count,
            "error": error_message,
        },
        conversation_id=conversation.id,
        commit=False,
    )
    db.commit()
    logger.info("conversation %s turn %s finished with %s", conversation.id, conversation.turn_count, status)

    if finished_sandbox_id:
        # Give the volume time to sync the agent's last writes before the sandbox goes away.
        if settings.sandbox_settle_seconds > 0:
            time.sleep(settings.sandbox_settle_seconds)
        kill_sandbox_quietly(provider, finished_sandbox_id)
    return {"success": True}


def on_turn_complete(
    db: Session,
    provider: SandboxProvider,
    settings: Settings,
    *,
    conversation_id: uuid.UUID,
    status: str,
    token: Optional[str],
    session_id: Optional[str] = None,
    error_message: Optional[str] = None,
) -> dict[str, Any]:
    if status not in (STATUS_COMPLETED, STATUS_ERROR):
        raise InvalidRequest("status must be 'completed' or 'error'")

    conversation = get_conversation(db, conversation_id)

    if conversation.callback_token_hash is None:
        logger.info("ignoring repeated completion callback for conversation %s", conversation.id)
        return {"status": "duplicate"}
    if not token or not verify_callback_token(token, conversation.callback_token_hash):
        raise CallbackRejected()
    if not _consume_callback_token(db, conversation, conversation.callback_token_hash):
        logger.info("completion callback for conversation %s already being handled", conversation.id)
        return {"status": "duplicate"}

    finished_sandbox_id = conversation.sandbox_id
    final_response = ""

    if (
        conversation.is_ai_vs_ai
        and status == STATUS_COMPLETED
        and conversation.volume_id
        and session_id
    ):
        final_response = _read_last_response(provider, settings, conversation, session_id)

        if final_response and conversation.turn_count < conversation.max_turns:
            next_token = generate_callback_token()
            next_token_hash = hash_callback_token(next_token)
            try:
                comments = _commit_chain(db, conversation, final_response, session_id, next_token_hash)
            except Exception:
                logger.exception("could not record chained turn for conversation %s", conversation.id)
                db.refresh(conversation)
            else:
                # The finished turn is stored now; do not store it again on fallback.
                chained_response, final_response = final_response, ""
                try:
                    return _launch_next_side(
                        db,
                        provider,
                        settings,
                        conversation,
                        comments=comments,
                        response=chained_response,
                        token=next_token,
                        token_hash=next_token_hash,
                        finished_sandbox_id=finished_sandbox_id,
                    )
                except Exception:
                    logger.exception("ai-vs-ai chaining failed for conversation %s; completing turn", conversation.id)
                    db.rollback()
                    db.refresh(conversation)
                    log_event(
                        db,
                        event_type="chain_failed",
                        payload={"conversation_id": str(conversation.id), "turn": conversation.turn_count},
                        conversation_id=conversation.id,
                    )
                    # _launch_next_side already killed it
                    finished_sandbox_id = None

    return _complete_turn(
        db,
        provider,
        settings,
        conversation,
        status=status,
        session_id=session_id,
        error_message=error_message,
        final_response=final_response,
        finished_sandbox_id=finished_sandbox_id,
    )


def delete_conversations(db: Session, provider: SandboxProvider, ids: list[uuid.UUID]) -> int:
    """Delete conversations and their child rows. Running sandboxes are killed first, best-effort."""
    conversations = db.query(Conversation).filter(Conversation.id.in_(ids)).all()
    for conversation in conversations:
        if conversation.sandbox_id and conversation.status == STATUS_RUNNING:
            kill_sandbox_quietly(provider, conversation.sandbox_id)

    found = [c.id for c in conversations]
    if not found:
        return 0

    # No FK cascade: children go before the conversation rows.
    for model in (Event, DebateTurn, Comment, Vote):
        db.query(model).filter(model.conversation_id.in_(found)).delete(synchronize_session=False)
    deleted = db.query(Conversation).filter(Conversation.id.in_(found)).delete(synchronize_session=False)
    db.commit()

    log_event(
        db,
        event_type="conversations_deleted",
        payload={"conversation_ids": [str(cid) for cid in found]},
    )
    logger.info("deleted %s conversations", deleted)
    return deleted
