import uuid
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from toron.models.audience import Comment, Vote
from toron.models.conversation import Conversation


INTERVENTION_THRESHOLD = 3
RECENT_COMMENT_LIMIT = 10
MODERATOR_COMMENT_LIMIT = 5

AUDIENCE_HEADER = "[관중석 반응 — 이 의견들을 토론에 반영하세요. 관중 응원은 판결에 영향을 줍니다!]"
MODERATOR_HEADER = "[중재자 & 관중 코멘트]"


def intervention_score(user_votes: int, agent_votes: int, user_comments: int, agent_comments: int) -> float:
    """Positive when the audience leans to the human, i.e. the AI side is behind."""
    return (user_votes - agent_votes) + 0.5 * (user_comments - agent_comments)


def classify_intervention(score: float) -> Optional[str]:
    if score >= INTERVENTION_THRESHOLD:
        return "losing"
    if score <= -INTERVENTION_THRESHOLD:
        return "winning"
    return None


def _count_by_side(db: Session, model, conversation_id: uuid.UUID) -> dict[str, int]:
    rows = (
        db.query(model.side, func.count(model.id))
        .filter(model.conversation_id == conversation_id, model.side.is_not(None))
        .group_by(model.side)
        .all()
    )
    return {side: int(count) for side, count in rows}


def vote_counts(db: Session, conversation_id: uuid.UUID) -> dict[str, int]:
    counts = _count_by_side(db, Vote, conversation_id)
    return {"user": counts.get("user", 0), "agent": counts.get("agent", 0)}


def intervention_mode(db: Session, conversation_id: uuid.UUID) -> Optional[str]:
    votes = _count_by_side(db, Vote, conversation_id)
    comments = _count_by_side(db, Comment, conversation_id)
    score = intervention_score(
        votes.get("user", 0),
        votes.get("agent", 0),
        comments.get("user", 0),
        comments.get("agent", 0),
    )
    return classify_intervention(score)


def _side_label(conversation: Conversation, comment: Comment) -> str:
    if comment.side == "user":
        return f"[{conversation.user_side or '사용자'} 응원]"
    if comment.side == "agent":
        return f"[{conversation.agent_side or 'AI'} 응원]"
    return "[중립]"


def format_audience_block(conversation: Conversation, comments: Iterable[Comment]) -> str:
    """Comments oldest first, each labelled with the side it cheers for and tag-in status."""
    lines = []
    for c in comments:
        tag = " (태그인 참전!)" if c.is_tag_in else ""
        lines.append(f'- {c.nickname} {_side_label(conversation, c)}{tag}: "{c.content}"')
    if not lines:
        return ""
    return f"{AUDIENCE_HEADER}\n" + "\n".join(lines)


def format_moderator_block(comments: Iterable[Comment]) -> str:
    lines = [f'- {c.nickname}: "{c.content}"' for c in comments]
    if not lines:
        return ""
    return f"{MODERATOR_HEADER}\n" + "\n".join(lines)


def append_block(content: str, block: str) -> str:
    return f"{content}\n\n{block}" if block else content


def unsurfaced_comments(db: Session, conversation_id: uuid.UUID, limit: int = RECENT_COMMENT_LIMIT) -> list[Comment]:
    rows = (
        db.query(Comment)
        .filter(Comment.conversation_id == conversation_id, Comment.surfaced_at.is_(None))
        .order_by(Comment.created_at.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))


def recent_comments(db: Session, conversation_id: uuid.UUID, limit: int = MODERATOR_COMMENT_LIMIT) -> list[Comment]:
    rows = (
        db.query(Comment)
        .filter(Comment.conversation_id == conversation_id)
        .order_by(Comment.created_at.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))
