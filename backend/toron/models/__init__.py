from toron.models.audience import Comment, Vote
from toron.models.conversation import Conversation, DebateTurn
from toron.models.event import Event

__all__ = ["Comment", "Conversation", "DebateTurn", "Event", "Vote"]
