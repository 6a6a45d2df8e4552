"""An in-memory world for local runs and tests."""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING

from loguru import logger

from mindbot.errors import CommandExecutionError
from mindbot.world.base import Position, World

if TYPE_CHECKING:
    from mindbot.agent.context import AgentContext


def _distance(a: Position, b: Position) -> float:
    return math.dist(a, b)


class SimulatedWorld(World):
    """
    A tiny flat world: one agent, some players, and a pool of collectable blocks.

    Movement advances `speed` blocks per step and sleeps `step_delay` seconds
    between steps, polling the agent's interrupt flag each time. Everything the
    agent says is kept in `sent` for inspection.
    """

    def __init__(
        self,
        agent_name: str,
        spawn: Position = (0.0, 64.0, 0.0),
        blocks: dict[str, int] | None = None,
        players: dict[str, Position] | None = None,
        mobs: list[str] | None = None,
        step_delay: float = 0.05,
        speed: float = 4.0,
    ):
        super().__init__()
        self.agent_name = agent_name
        self.spawn_point = spawn
        self._pos: Position = spawn
        self._health = 20.0
        self._food = 20.0
        self._inventory: dict[str, int] = {}
        self.blocks: dict[str, int] = dict(blocks or {"stone": 64, "oak_log": 16, "dirt": 64})
        self.player_positions: dict[str, Position] = dict(players or {})
        self.mobs = list(mobs or [])
        self.step_delay = step_delay
        self.speed = speed
        self.sent: list[tuple[str, ...]] = []
        self.connected = False
        self.moving = False

    @property
    def health(self) -> float:
        return self._health

    @property
    def food(self) -> float:
        return self._food

    @property
    def dimension(self) -> str:
        return "overworld"

    async def connect(self) -> None:
        self.connected = True
        logger.info("{} joined the simulated world", self.agent_name)
        self.emit("login")
        self.emit("spawn")

    def chat(self, message: str) -> None:
        self.sent.append(("chat", message))
        logger.info("<{}> {}", self.agent_name, message)
        if message.startswith("/"):
            self._server_command(message)

    def whisper(self, username: str, message: str) -> None:
        self.sent.append(("whisper", username, message))
        logger.info("{} whispers to {}: {}", self.agent_name, username, message)

    def chat_lines(self) -> list[str]:
        return [entry[-1] for entry in self.sent]

    def _server_command(self, message: str) -> None:
        parts = message[1:].split()
        if not parts:
            return
        cmd, args = parts[0], parts[1:]
        if cmd == "give" and len(args) >= 2:
            count = int(args[2]) if len(args) > 2 else 1
            self._inventory[args[1]] = self._inventory.get(args[1], 0) + count
        elif cmd == "clear":
            self._inventory.clear()
        elif cmd == "tp" and len(args) == 4:
            self._pos = (float(args[1]), float(args[2]), float(args[3]))
        elif cmd == "tp" and len(args) == 2 and args[1] in self.player_positions:
            self._pos = self.player_positions[args[1]]
        elif cmd == "kick" and args:
            self.player_positions.pop(args[0], None)

    # stimuli, used by the CLI console and tests

    def receive_chat(self, username: str, message: str) -> None:
        self.emit("chat", username, message)

    def receive_whisper(self, username: str, message: str) -> None:
        self.emit("whisper", username, message)

    def damage(self, amount: float) -> None:
        self._health = max(0.0, self._health - amount)
        self.emit("health")
        if self._health == 0:
            self.emit("death")
            self._health = 20.0
            self._pos = self.spawn_point

    def kick(self, reason: str = "kicked by an operator") -> None:
        self.connected = False
        self.emit("kicked", reason)

    def disconnect(self, reason: str = "") -> None:
        if self.connected:
            self.connected = False
            self.emit("end", reason)

    # queries

    def players(self) -> list[str]:
        return list(self.player_positions.keys())

    def position(self) -> Position:
        return self._pos

    def inventory(self) -> dict[str, int]:
        return {k: v for k, v in self._inventory.items() if v > 0}

    def nearby_blocks(self) -> list[str]:
        return [name for name, count in self.blocks.items() if count > 0]

    def nearby_entities(self) -> list[str]:
        near = [name for name, pos in self.player_positions.items() if _distance(pos, self._pos) <= 16]
        return near + list(self.mobs)

    def clear_control_states(self) -> None:
        self.moving = False

    # actions

    async def _step_towards(self, target: Position, ctx: AgentContext, closeness: float) -> bool:
        self.moving = True
        try:
            while _distance(self._pos, target) > closeness:
                if ctx.should_interrupt():
                    return False
                dist = _distance(self._pos, target)
                frac = min(1.0, self.speed / dist)
                self._pos = tuple(p + (t - p) * frac for p, t in zip(self._pos, target))
                await asyncio.sleep(self.step_delay)
            return True
        finally:
            self.moving = False

    async def go_to(self, x: float, y: float, z: float, ctx: AgentContext, closeness: float = 0) -> bool:
        if await self._step_towards((float(x), float(y), float(z)), ctx, closeness):
            ctx.log(f"You have reached at {x}, {y}, {z}.")
            return True
        return False

    async def go_to_player(self, username: str, ctx: AgentContext, closeness: float = 3) -> bool:
        target = self.player_positions.get(username)
        if target is None:
            ctx.log(f"Could not find {username}.")
            return False
        if await self._step_towards(target, ctx, closeness):
            ctx.log(f"You have reached {username}.")
            return True
        return False

    async def follow_player(self, username: str, ctx: AgentContext, distance: float = 4) -> None:
        if username not in self.player_positions:
            ctx.log(f"Could not find {username}.")
            return
        ctx.log(f"You are now actively following player {username}.")
        while not ctx.should_interrupt():
            target = self.player_positions.get(username)
            if target is None:
                ctx.log(f"Lost track of {username}.")
                return
            if _distance(self._pos, target) > distance:
                await self._step_towards(target, ctx, distance)
            await asyncio.sleep(self.step_delay)

    async def move_away(self, distance: float, ctx: AgentContext) -> bool:
        x, y, z = self._pos
        if await self._step_towards((x + distance, y, z), ctx, 0):
            ctx.log(f"Moved away from nearest entity to {self._pos}.")
            return True
        return False

    async def collect_blocks(self, block_type: str, num: int, ctx: AgentContext) -> int:
        if num < 1:
            ctx.log(f"Invalid number of blocks to collect: {num}.")
            return 0
        collected = 0
        for _ in range(num):
            if ctx.should_interrupt():
                break
            if self.blocks.get(block_type, 0) <= 0:
                if collected == 0:
                    ctx.log(f"No {block_type} nearby to collect.")
                break
            self.blocks[block_type] -= 1
            self._inventory[block_type] = self._inventory.get(block_type, 0) + 1
            collected += 1
            await asyncio.sleep(self.step_delay)
        ctx.log(f"Collected {collected} {block_type}.")
        return collected

    async def give_to_player(self, username: str, item: str, num: int, ctx: AgentContext) -> bool:
        if username not in self.player_positions:
            raise CommandExecutionError(f"Could not find {username}.")
        have = self._inventory.get(item, 0)
        if have < num:
            ctx.log(f"You do not have {num} {item} to give, only {have}.")
            return False
        if not await self._step_towards(self.player_positions[username], ctx, 3):
            return False
        self._inventory[item] = have - num
        ctx.log(f"Gave {num} {item} to {username}.")
        return True
