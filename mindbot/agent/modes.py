"""Modes: background reflexes run by the periodic tick.

Modes never talk to the model. They watch the world, occasionally launch a
short action, and leave notes in the behavior log, which the turn loop hands
to the model as situational context.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

MAX_STUCK_SECONDS = 20


@dataclass
class Mode:
    name: str
    description: str
    update: Callable[["Mode", "AgentLoop"], Awaitable[None]]
    on: bool = True
    active: bool = False
    paused: bool = False
    # per-mode scratch space
    state: dict = field(default_factory=dict)


async def _self_preservation(mode: Mode, agent: AgentLoop) -> None:
    ctx = agent.context
    world = agent.world
    recently_hurt = time.monotonic() - ctx.last_damage_time < 3
    if recently_hurt and world.health < 5:
        await agent.modes.execute(mode, agent, lambda: world.move_away(20, ctx), "I'm dying! Running away.")


async def _unstuck(mode: Mode, agent: AgentLoop) -> None:
    actions = agent.actions
    # following a player means standing still most of the time
    if agent.is_idle() or actions.current_action_label == actions.resume_name:
        mode.state.clear()
        return
    pos = agent.world.position()
    last = mode.state.get("pos")
    now = time.monotonic()
    if last is None or last != pos:
        mode.state["pos"] = pos
        mode.state["since"] = now
        return
    if now - mode.state.get("since", now) > MAX_STUCK_SECONDS:
        mode.state.clear()
        logger.warning("Stuck during {}", actions.current_action_label)
        await agent.modes.execute(mode, agent, lambda: agent.world.move_away(5, agent.context), "I'm stuck!")


async def _idle_staring(mode: Mode, agent: AgentLoop) -> None:
    if not agent.is_idle():
        mode.state.pop("seen", None)
        return
    entities = agent.world.nearby_entities()
    seen = tuple(sorted(entities))
    if entities and mode.state.get("seen") != seen:
        mode.state["seen"] = seen
        agent.modes.log(f"Looking at {', '.join(entities)}.")


DEFAULT_MODES = (
    ("self_preservation", "Flee when taking damage at low health. Interrupts all actions.",
     _self_preservation),
    ("unstuck", "Attempt to get unstuck when in the same place for a while.", _unstuck),
    ("idle_staring", "Animation to look around at entities when idle.", _idle_staring),
)


class ModeController:
    """Runs the enabled modes once per tick and owns the behavior log."""

    def __init__(self, agent: AgentLoop, initial: dict[str, bool] | None = None):
        self.agent = agent
        self.modes: dict[str, Mode] = {
            name: Mode(name=name, description=desc, update=fn) for name, desc, fn in DEFAULT_MODES
        }
        self.behavior_log = ""
        if initial:
            self.load_json(initial)

    def exists(self, name: str) -> bool:
        return name in self.modes

    def is_on(self, name: str) -> bool:
        return self.modes[name].on

    def set_on(self, name: str, on: bool) -> None:
        self.modes[name].on = on

    def pause(self, name: str) -> None:
        self.modes[name].paused = True

    def unpause_all(self) -> None:
        for mode in self.modes.values():
            if mode.paused:
                logger.debug("Unpausing mode {}", mode.name)
            mode.paused = False

    def log(self, message: str) -> None:
        self.behavior_log += message + "\n"

    def flush_behavior_log(self) -> str:
        log = self.behavior_log
        self.behavior_log = ""
        return log

    async def execute(self, mode: Mode, agent: AgentLoop, fn: Callable[[], Awaitable[None]],
                      message: str | None = None) -> None:
        """Run a mode's action through the ActionManager; the mode stays active meanwhile."""
        if agent.self_prompter.on:
            agent.self_prompter.interrupt = True
        mode.active = True
        if message:
            self.log(message)
        result = await agent.actions.run_action(f"mode:{mode.name}", fn, timeout=-1)
        mode.active = False
        logger.info("Mode {} finished action: {}", mode.name, result.message)

    async def update(self) -> None:
        if self.agent.is_idle():
            self.unpause_all()
        busy_with_mode = self.agent.actions.current_action_label.startswith("mode:")
        for mode in self.modes.values():
            if mode.on and not mode.paused and not mode.active and not busy_with_mode:
                try:
                    await mode.update(mode, self.agent)
                except Exception as e:
                    logger.error("Mode {} failed: {}", mode.name, e)
            if mode.active:
                break

    def get_mini_docs(self) -> str:
        lines = ["Agent Modes:"]
        for mode in self.modes.values():
            lines.append(f"- {mode.name}({'ON' if mode.on else 'OFF'})")
        return "\n".join(lines)

    def get_docs(self) -> str:
        lines = ["Agent Modes:"]
        for mode in self.modes.values():
            lines.append(f"- {mode.name}({'ON' if mode.on else 'OFF'}): {mode.description}")
        return "\n".join(lines)

    def get_json(self) -> dict[str, bool]:
        return {name: mode.on for name, mode in self.modes.items()}

    def load_json(self, data: dict[str, bool]) -> None:
        for name, on in data.items():
            if name in self.modes:
                self.modes[name].on = bool(on)
