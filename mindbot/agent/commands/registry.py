"""Command registry for dynamic command management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from mindbot.agent.commands.base import (
    CommandDef,
    contains_command,
    parse_command_args,
    truncate_command_message,
)
from mindbot.errors import CommandExecutionError, InvalidArgumentsError

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

DOCS_HEADER = (
    "\n*COMMAND DOCS\n"
    " You can use the following commands to perform actions and get information about the world. \n"
    "    Use the commands with the syntax: !commandName or !commandName(\"arg1\", 1.2, ...) if the "
    "command takes arguments.\n\n"
    "    Do not use codeblocks. Use double quotes for strings. Only use one command in each response, "
    "trailing commands and comments will be ignored.\n"
)


class CommandRegistry:
    """
    Registry for agent commands.

    Built once at startup; lookups never import or resolve anything at call time.
    """

    def __init__(self):
        self._commands: dict[str, CommandDef] = {}

    def register(self, command: CommandDef) -> None:
        if command.name in self._commands:
            raise ValueError(f"Command {command.name} is already registered")
        self._commands[command.name] = command

    def get(self, name: str) -> CommandDef | None:
        return self._commands.get(name)

    def exists(self, name: str) -> bool:
        return name in self._commands

    def is_action(self, name: str) -> bool:
        command = self._commands.get(name)
        return command is not None and command.is_action

    @property
    def names(self) -> list[str]:
        return list(self._commands.keys())

    def contains_command(self, text: str) -> str | None:
        return contains_command(text)

    def truncate(self, text: str) -> str:
        return truncate_command_message(text)

    def parse(self, text: str) -> tuple[CommandDef, list[Any]]:
        """Resolve and type-check the first command in text.

        Raises:
            InvalidArgumentsError: unknown command or arguments that do not fit.
        """
        name = contains_command(text)
        if name is None:
            raise InvalidArgumentsError("Command is incorrectly formatted.")
        command = self._commands.get(name)
        if command is None:
            raise InvalidArgumentsError(f"Command {name} does not exist.")
        return command, parse_command_args(command, text)

    async def execute(self, agent: AgentLoop, text: str) -> str | None:
        """
        Execute the first command found in text.

        Argument and world errors come back as text for the model to read.
        None means there is nothing to report: the action was interrupted or
        only launched.
        """
        try:
            command, args = self.parse(text)
        except InvalidArgumentsError as e:
            return str(e)

        if command.name in agent.blocked_actions:
            return f"Command {command.name} is blocked. Cannot use it."

        if command.is_action and command.managed:
            return await self._run_managed(agent, command, args)

        try:
            return await command.perform(agent, *args)
        except CommandExecutionError as e:
            return f"Command {command.name} failed: {e}"
        except Exception as e:
            logger.exception("Command {} raised", command.name)
            return f"Command {command.name} failed: {e}"

    async def _run_managed(self, agent: AgentLoop, command: CommandDef, args: list[Any]) -> str | None:
        async def action() -> None:
            await command.perform(agent, *args)

        result = await agent.actions.run_action(
            command.name, action, timeout=command.timeout, resume=command.resume
        )
        if result.interrupted and not result.timed_out:
            return None
        return result.message

    def get_docs(self, blocked: list[str] | tuple[str, ...] = ()) -> str:
        docs = [DOCS_HEADER]
        for command in self._commands.values():
            if command.name in blocked:
                continue
            docs.append(command.docs())
        return "\n".join(docs) + "\n*\n"
