"""Event types for the message bus."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class InboundMessage:
    """A stimulus waiting for the turn loop."""

    source: str  # username, peer agent name, or "system"
    content: str
    max_turns: int | None = None
    external: bool = False  # from a user or peer agent, not from the agent itself
    timestamp: datetime = field(default_factory=datetime.now)
