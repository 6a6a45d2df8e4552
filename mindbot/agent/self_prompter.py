"""Self-prompting: goal-driven turns the agent gives itself."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

LOOP_EXIT_POLL_SECONDS = 0.5


class SelfPromptState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    # session still on, loop yielded to someone else; update() restarts it
    PAUSED = "paused"
    STOPPING = "stopping"


class SelfPrompter:
    """
    Drives the agent with its own goal while nobody else is talking to it.

    The loop yields to external messages at the turn loop's checkpoints and is
    restarted by the periodic tick once the agent has been idle for `cooldown`.
    """

    def __init__(self, agent: AgentLoop, cooldown: float = 2.0, max_no_command: int = 3):
        self.agent = agent
        self.cooldown = cooldown
        self.max_no_command = max_no_command
        self.on = False
        self.loop_active = False
        self.interrupt = False
        self.prompt = ""
        self.turn_count = 0
        self.idle_time = 0.0
        self._loop_task: asyncio.Task | None = None

    @property
    def state(self) -> SelfPromptState:
        if self.interrupt and self.loop_active:
            return SelfPromptState.STOPPING
        if not self.on:
            return SelfPromptState.IDLE
        return SelfPromptState.RUNNING if self.loop_active else SelfPromptState.PAUSED

    def start(self, prompt: str) -> str | None:
        if not prompt or not prompt.strip():
            return "No prompt specified. Ignoring request."
        logger.info("Self-prompting started: {}", prompt)
        self.on = True
        self.prompt = prompt
        self.turn_count = 0
        self._start_loop_task()
        return None

    def set_prompt(self, prompt: str) -> None:
        self.prompt = prompt

    def _start_loop_task(self) -> None:
        if self.loop_active:
            logger.warning("Self-prompt loop is already active. Ignoring request.")
            return
        # claim the loop before the task gets scheduled
        self.loop_active = True
        self._loop_task = asyncio.create_task(self._run_loop())

    async def _run_loop(self) -> None:
        logger.info("Starting self-prompt loop")
        no_command_count = 0
        try:
            while not self.interrupt:
                msg = (
                    f"You are self-prompting with the goal: '{self.prompt}'. Your next response MUST "
                    f"contain a command with this syntax: !commandName. Respond:"
                )
                self.turn_count += 1
                used_command = await self.agent.handle_message("system", msg, -1)
                if self.interrupt:
                    break
                if not used_command:
                    no_command_count += 1
                    if no_command_count >= self.max_no_command:
                        out = (
                            f"Agent did not use command in the last {self.max_no_command} auto-prompts. "
                            f"Stopping auto-prompting."
                        )
                        logger.warning(out)
                        await self.agent.clean_chat(self.agent.name, out)
                        self.on = False
                        break
                    if self.agent.external_pending():
                        break
                else:
                    no_command_count = 0
                    if self.agent.external_pending():
                        break
                    await asyncio.sleep(self.cooldown)
        except Exception as e:
            logger.error("Self-prompt loop failed: {}", e)
            self.on = False
        finally:
            logger.info("Self-prompt loop stopped")
            self.loop_active = False
            self.interrupt = False
            self._loop_task = None

    async def update(self, delta: float) -> None:
        """Tick hook; restarts a paused loop after `cooldown` seconds of idleness."""
        if self.on and not self.loop_active and not self.interrupt:
            if self.agent.is_idle() and not self.agent.external_pending():
                self.idle_time += delta
            else:
                self.idle_time = 0.0
            if self.idle_time >= self.cooldown:
                logger.info("Restarting self-prompting...")
                self._start_loop_task()
                self.idle_time = 0.0
        else:
            self.idle_time = 0.0

    async def stop_loop(self) -> None:
        """Make the loop exit but keep the session; it resumes on the next idle period."""
        logger.info("Stopping self-prompt loop")
        if not self.loop_active:
            return
        self.interrupt = True
        while self.loop_active:
            await asyncio.sleep(LOOP_EXIT_POLL_SECONDS)
        self.interrupt = False

    async def stop(self, graceful: bool = False) -> None:
        """
        End the session.

        Args:
            graceful: Let the in-flight turn and action finish. Otherwise the
                running action is cancelled right away.
        """
        self.interrupt = True
        if not graceful:
            await self.agent.actions.stop()
        await self.stop_loop()
        self.interrupt = False
        self.on = False
        logger.info("Self-prompting stopped")

    def request_stop(self, graceful: bool = True) -> None:
        """Schedule `stop` without waiting; used from inside the loop's own turn."""
        self.interrupt = True
        self.on = False
        self.agent.spawn(self.stop(graceful))

    def should_interrupt(self, is_self_prompt: bool) -> bool:
        if not is_self_prompt:
            return False
        return self.interrupt or self.agent.external_pending()

    def handle_user_prompted_cmd(self, is_self_prompt: bool, is_action: bool) -> None:
        # a user turn that launched an action pauses the loop; update() brings it back
        if not is_self_prompt and is_action and self.loop_active:
            self.interrupt = True
