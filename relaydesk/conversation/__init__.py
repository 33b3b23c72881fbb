from .base import ConversationOutcome
from .engine import ConversationEngine

__all__ = ["ConversationEngine", "ConversationOutcome"]
