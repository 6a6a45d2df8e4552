"""Agent commands: grammar, registry and the built-in command set."""

from mindbot.agent.commands.actions import ACTION_COMMANDS
from mindbot.agent.commands.base import CommandDef, CommandKind, Param, ParamType, contains_command
from mindbot.agent.commands.queries import QUERY_COMMANDS
from mindbot.agent.commands.registry import CommandRegistry


def build_registry() -> CommandRegistry:
    """Register the built-in actions and queries."""
    registry = CommandRegistry()
    for command in ACTION_COMMANDS + QUERY_COMMANDS:
        registry.register(command)
    return registry


__all__ = [
    "CommandDef",
    "CommandKind",
    "CommandRegistry",
    "Param",
    "ParamType",
    "build_registry",
    "contains_command",
]
