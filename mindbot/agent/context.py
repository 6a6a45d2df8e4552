"""Per-agent flags shared between the turn loop, the tick and world handlers."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class AgentContext:
    """
    Session-scoped flags.

    World event handlers and commands only flip these; the turn loop and
    long-running actions poll them at their own checkpoints.
    """

    name: str
    interrupt_code: bool = False
    shut_up: bool = False
    last_damage_time: float = 0.0
    last_damage_taken: float = 0.0
    output: list[str] = field(default_factory=list)

    def should_interrupt(self) -> bool:
        return self.interrupt_code

    def log(self, message: str) -> None:
        """Record action output for the result summary."""
        self.output.append(message)

    def output_text(self) -> str:
        return "\n".join(self.output)

    def clear_logs(self) -> None:
        self.output = []
        self.interrupt_code = False

    def record_damage(self, amount: float) -> None:
        self.last_damage_time = time.monotonic()
        self.last_damage_taken = amount
