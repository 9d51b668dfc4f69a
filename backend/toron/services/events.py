from datetime import datetime, timezone
from typing import Any, Optional
import uuid

from sqlalchemy.orm import Session

from toron.models.event import Event


def log_event(
    db: Session,
    *,
    event_type: str,
    payload: dict[str, Any],
    conversation_id: Optional[uuid.UUID] = None,
    commit: bool = True,
) -> Event:
    """Append an event row. Pass ``commit=False`` to ride along an open transaction."""
    now = datetime.now(timezone.utc)
    event = Event(
        type=event_type,
        payload=payload,
        conversation_id=conversation_id,
        created_at=now,
    )
    db.add(event)
    if commit:
        db.commit()
        db.refresh(event)
    return event
