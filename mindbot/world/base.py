"""The world collaborator contract."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

if TYPE_CHECKING:
    from mindbot.agent.context import AgentContext

Position = tuple[float, float, float]
Handler = Callable[..., Any]


class World(ABC):
    """
    What the agent can see and do.

    Events: spawn, chat, whisper, idle, health, death, end, kicked.
    Long-running operations take the agent context and must poll
    `ctx.should_interrupt()` between steps, returning promptly once it is set.
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._once: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def once(self, event: str, handler: Handler) -> None:
        self._once[event].append(handler)

    def emit(self, event: str, *args: Any) -> None:
        """Call the handlers for event; coroutine handlers are scheduled, not awaited."""
        handlers = list(self._handlers[event]) + self._once.pop(event, [])
        for handler in handlers:
            result = handler(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("World event handler failed: {}", task.exception())

    @property
    @abstractmethod
    def health(self) -> float: ...

    @property
    @abstractmethod
    def food(self) -> float: ...

    @property
    @abstractmethod
    def dimension(self) -> str: ...

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    def chat(self, message: str) -> None: ...

    @abstractmethod
    def whisper(self, username: str, message: str) -> None: ...

    @abstractmethod
    def players(self) -> list[str]: ...

    @abstractmethod
    def position(self) -> Position: ...

    @abstractmethod
    def inventory(self) -> dict[str, int]: ...

    @abstractmethod
    def nearby_blocks(self) -> list[str]: ...

    @abstractmethod
    def nearby_entities(self) -> list[str]: ...

    @abstractmethod
    async def go_to(self, x: float, y: float, z: float, ctx: AgentContext, closeness: float = 0) -> bool: ...

    @abstractmethod
    async def go_to_player(self, username: str, ctx: AgentContext, closeness: float = 3) -> bool: ...

    @abstractmethod
    async def follow_player(self, username: str, ctx: AgentContext, distance: float = 4) -> None: ...

    @abstractmethod
    async def move_away(self, distance: float, ctx: AgentContext) -> bool: ...

    @abstractmethod
    async def collect_blocks(self, block_type: str, num: int, ctx: AgentContext) -> int: ...

    @abstractmethod
    async def give_to_player(self, username: str, item: str, num: int, ctx: AgentContext) -> bool: ...

    @abstractmethod
    def clear_control_states(self) -> None: ...

    @abstractmethod
    def disconnect(self, reason: str = "") -> None: ...
