import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from toron.api.v1.conversations import get_db
from toron.core.security import require_admin
from toron.models.audience import Comment, Vote
from toron.models.conversation import Conversation, DebateTurn
from toron.services import orchestrator
from toron.services.sandbox import SandboxProvider, get_sandbox_provider


router = APIRouter(dependencies=[Depends(require_admin)])


class BulkDeleteRequest(BaseModel):
    ids: list[uuid.UUID] = Field(default_factory=list)


def _counts(db: Session, model) -> dict[uuid.UUID, int]:
    rows = db.query(model.conversation_id, func.count(model.id)).group_by(model.conversation_id).all()
    return {conversation_id: int(count) for conversation_id, count in rows}


@router.get("/debates")
def list_all_debates(db: Session = Depends(get_db)) -> dict[str, Any]:
    vote_counts = _counts(db, Vote)
    comment_counts = _counts(db, Comment)
    turn_counts = _counts(db, DebateTurn)

    debates = []
    for d in db.query(Conversation).order_by(Conversation.updated_at.desc()).all():
        debates.append({
            "id": str(d.id),
            "status": d.status,
            "debate_topic": d.debate_topic or "(주제 없음)",
            "user_side": d.user_side or "-",
            "agent_side": d.agent_side or "-",
            "turn_count": d.turn_count,
            "max_turns": d.max_turns,
            "debate_mode": d.debate_mode,
            "volume_id": d.volume_id,
            "sandbox_id": d.sandbox_id,
            "session_id": d.session_id,
            "error_message": d.error_message,
            "vote_count": vote_counts.get(d.id, 0),
            "comment_count": comment_counts.get(d.id, 0),
            "turn_data_count": turn_counts.get(d.id, 0),
            "created_at": d.created_at.isoformat(),
            "updated_at": d.updated_at.isoformat(),
        })
    return {"debates": debates}


@router.delete("/debates")
def bulk_delete_debates(
    body: BulkDeleteRequest,
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
) -> dict[str, Any]:
    if not body.ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ids array required")

    deleted = orchestrator.delete_conversations(db, provider, body.ids)
    return {"deleted": deleted, "message": f"{deleted}개 토론 삭제됨"}


@router.delete("/debates/{conversation_id}")
def delete_debate(
    conversation_id: uuid.UUID,
    db: Session = Depends(get_db),
    provider: SandboxProvider = Depends(get_sandbox_provider),
) -> dict[str, Any]:
    orchestrator.get_conversation(db, conversation_id)
    orchestrator.delete_conversations(db, provider, [conversation_id])
    return {"deleted": True, "id": str(conversation_id)}
