from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from toron.api.v1.conversations import get_db
from toron.models.audience import Vote
from toron.models.conversation import Conversation
from toron.services.topics import DEBATE_TOPICS, get_topic


router = APIRouter()

GALLERY_LIMIT = 50


@router.get("")
def list_debates(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Public gallery: the most recently active debates with their vote tallies."""
    user_votes = func.coalesce(func.sum(case((Vote.side == "user", 1), else_=0)), 0)
    agent_votes = func.coalesce(func.sum(case((Vote.side == "agent", 1), else_=0)), 0)
    rows = (
        db.query(
            Conversation,
            user_votes.label("user_votes"),
            agent_votes.label("agent_votes"),
            func.count(Vote.id).label("total_votes"),
        )
        .outerjoin(Vote, Vote.conversation_id == Conversation.id)
        .filter(Conversation.debate_topic.is_not(None))
        .group_by(Conversation.id)
        .order_by(Conversation.updated_at.desc())
        .limit(GALLERY_LIMIT)
        .all()
    )

    debates = []
    for conversation, user_count, agent_count, total in rows:
        debates.append({
            "id": str(conversation.id),
            "status": conversation.status,
            "debate_topic": conversation.debate_topic,
            "user_side": conversation.user_side,
            "agent_side": conversation.agent_side,
            "debate_mode": conversation.debate_mode,
            "turn_count": conversation.turn_count,
            "max_turns": conversation.max_turns,
            "total_votes": int(total or 0),
            "votes": {"user": int(user_count or 0), "agent": int(agent_count or 0)},
            "created_at": conversation.created_at.isoformat(),
            "updated_at": conversation.updated_at.isoformat(),
        })
    return {"debates": debates}


@router.get("/topics")
def list_topics() -> dict[str, Any]:
    return {"topics": DEBATE_TOPICS}


@router.get("/topics/{topic_id}")
def topic_detail(topic_id: str) -> dict[str, Any]:
    topic = get_topic(topic_id)
    if topic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Topic not found")
    return topic
