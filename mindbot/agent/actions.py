"""Action manager: the single long-running world action an agent may run."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

ActionFn = Callable[[], Awaitable[None]]

STOP_POLL_SECONDS = 0.3
MAX_OUTPUT = 500


@dataclass
class ActionResult:
    success: bool
    message: str | None
    interrupted: bool = False
    timed_out: bool = False


class ActionManager:
    """
    Runs at most one action at a time.

    Cancellation is cooperative: `stop()` raises the interrupt flag on the agent
    context and waits for the running action to notice it.
    """

    def __init__(self, agent: AgentLoop):
        self.agent = agent
        self.executing = False
        self.current_action_label = ""
        self.current_action_fn: ActionFn | None = None
        self.timed_out = False
        self.resume_func: ActionFn | None = None
        self.resume_name = ""
        self._timeout_task: asyncio.Task | None = None

    async def resume_action(self, label: str | None = None, fn: ActionFn | None = None,
                            timeout: float = 10) -> ActionResult:
        return await self._execute_resume(label, fn, timeout)

    async def run_action(self, label: str, fn: ActionFn, timeout: float = -1,
                         resume: bool = False) -> ActionResult:
        """
        Run an action, stopping whatever was running first.

        Args:
            label: Name of the action, usually the command name.
            fn: Coroutine function performing the action.
            timeout: Minutes before the action is force-stopped; -1 for none.
            resume: Remember the action and re-run it whenever the agent goes idle.
        """
        if resume:
            return await self._execute_resume(label, fn, timeout)
        return await self._execute_action(label, fn, timeout)

    async def stop(self) -> None:
        if not self.executing:
            return
        waited = 0.0
        while self.executing:
            self.agent.request_interrupt()
            if waited >= self.agent.settings.action_stop_timeout:
                self.agent.clean_kill(
                    f"Action refused stop after {self.agent.settings.action_stop_timeout} seconds. Killing process."
                )
            await asyncio.sleep(STOP_POLL_SECONDS)
            waited += STOP_POLL_SECONDS

    def cancel_resume(self) -> None:
        self.resume_func = None
        self.resume_name = ""

    async def _execute_resume(self, label: str | None = None, fn: ActionFn | None = None,
                              timeout: float = 10) -> ActionResult:
        new_resume = fn is not None
        if new_resume:
            self.resume_func = fn
            self.resume_name = label or ""
        if (
            self.resume_func is not None
            and self.agent.is_idle()
            and (not self.agent.self_prompter.on or new_resume)
        ):
            self.current_action_label = self.resume_name
            result = await self._execute_action(self.resume_name, self.resume_func, timeout)
            self.current_action_label = ""
            if not result.interrupted:
                # finished on its own, so there is nothing left to resume
                logger.info("Resumable action {} ended, not resuming it", self.resume_name)
                self.cancel_resume()
            return result
        return ActionResult(success=False, message=None)

    def _reset(self) -> None:
        self.executing = False
        self.current_action_label = ""
        self.current_action_fn = None
        self._cancel_timeout()

    async def _execute_action(self, label: str, fn: ActionFn, timeout: float = -1) -> ActionResult:
        ctx = self.agent.context
        try:
            if self.executing:
                logger.info('Action "{}" trying to interrupt current action "{}"', label, self.current_action_label)
            await self.stop()
            ctx.clear_logs()

            self.executing = True
            self.current_action_label = label
            self.current_action_fn = fn
            self.timed_out = False
            if timeout > 0:
                self._start_timeout(timeout)
            logger.info("Executing action {}", label)
            await fn()
            self._reset()

            output = self._output_summary()
            interrupted = ctx.interrupt_code
            timed_out = self.timed_out
            ctx.clear_logs()
            if not interrupted:
                self.agent.world.emit("idle")
            return ActionResult(success=True, message=output, interrupted=interrupted, timed_out=timed_out)
        except Exception as e:
            self._reset()
            self.cancel_resume()
            logger.error("Action {} failed: {}", label, e)
            message = self._output_summary() + f"!!Action threw exception!!\nError: {e}\n"
            interrupted = ctx.interrupt_code
            ctx.clear_logs()
            if not interrupted:
                self.agent.world.emit("idle")
            return ActionResult(success=False, message=message, interrupted=interrupted)
        except BaseException:
            self._reset()
            raise

    def _output_summary(self) -> str:
        ctx = self.agent.context
        if ctx.interrupt_code and not self.timed_out:
            return ""
        output = ctx.output_text()
        if len(output) > MAX_OUTPUT:
            half = MAX_OUTPUT // 2
            return (
                f"Action output is very long ({len(output)} chars) and has been shortened.\n"
                f"  First outputs:\n{output[:half]}\n...skipping many lines.\n"
                f"Final outputs:\n {output[-half:]}"
            )
        return "Action output:\n" + output

    def _start_timeout(self, minutes: float) -> None:
        async def _timeout() -> None:
            await asyncio.sleep(minutes * 60)
            message = f"Action timed out after {minutes} minutes. Attempting force stop."
            logger.warning(message)
            self.timed_out = True
            await self.agent.history.add("system", message)
            await self.stop()

        self._timeout_task = asyncio.create_task(_timeout())

    def _cancel_timeout(self) -> None:
        if self._timeout_task is not None and self._timeout_task is not asyncio.current_task():
            self._timeout_task.cancel()
        self._timeout_task = None
