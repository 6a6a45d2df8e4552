"""Command definitions and the command grammar.

A command is `!name` or `!name(arg, "arg", 3)` inside free text. Only the
first command in a message is honored; everything after its argument list is
discarded.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from mindbot.errors import InvalidArgumentsError

# A marker glued to a word ("wow!great") or doubled ("!!") is prose, not a command.
COMMAND_RE = re.compile(
    r"(?<![\w!])!([A-Za-z_]\w*)(?:\(((?:[^)(\"']|\"[^\"]*\"|'[^']*')*)\))?"
)
ARG_RE = re.compile(r"(?:\"[^\"]*\"|'[^']*'|[^,])+")


class CommandKind(Enum):
    ACTION = "action"
    QUERY = "query"


class ParamType(Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    ENUM = "enum"


@dataclass(frozen=True)
class Param:
    name: str
    type: ParamType
    description: str
    choices: tuple[str, ...] = ()
    domain: tuple[float, float] | None = None


@dataclass(frozen=True)
class CommandDef:
    """A registered command.

    ACTION commands with `managed=True` run inside the ActionManager and are
    cancellable; unmanaged actions are control commands (stop, goal, ...) that
    act on the agent itself.
    """

    name: str
    description: str
    kind: CommandKind
    perform: Callable[..., Awaitable[str | None]]
    params: tuple[Param, ...] = ()
    managed: bool = True
    resume: bool = False
    timeout: float = -1  # minutes, -1 for none

    @property
    def is_action(self) -> bool:
        return self.kind is CommandKind.ACTION

    def docs(self) -> str:
        lines = [f"{self.name}: {self.description}"]
        if self.params:
            lines.append("Params:")
            for p in self.params:
                type_name = p.type.value
                if p.choices:
                    type_name += " " + "|".join(p.choices)
                lines.append(f"{p.name}: ({type_name}) {p.description}")
        return "\n".join(lines)


def contains_command(text: str) -> str | None:
    """Return the first command marker in text (e.g. '!goTo'), or None."""
    m = COMMAND_RE.search(text)
    return "!" + m.group(1) if m else None


def command_start(text: str) -> int:
    """Offset of the first command marker in text, or -1."""
    m = COMMAND_RE.search(text)
    return m.start() if m else -1


def truncate_command_message(text: str) -> str:
    """Cut text right after the first command's argument list."""
    m = COMMAND_RE.search(text)
    if not m:
        return text
    return text[: m.end()]


def split_args(raw: str | None) -> list[str]:
    if raw is None or not raw.strip():
        return []
    return [a.strip() for a in ARG_RE.findall(raw)]


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _convert(param: Param, value: str) -> Any:
    value = value.strip()
    if param.type is ParamType.INT:
        try:
            number = float(value)
        except ValueError:
            raise InvalidArgumentsError(f"Error: Param '{param.name}' must be of type int.") from None
        if not number.is_integer():
            raise InvalidArgumentsError(f"Error: Param '{param.name}' must be of type int.")
        return int(number)
    if param.type is ParamType.FLOAT:
        try:
            number = float(value)
        except ValueError:
            raise InvalidArgumentsError(f"Error: Param '{param.name}' must be of type float.") from None
        if math.isnan(number):
            raise InvalidArgumentsError(f"Error: Param '{param.name}' must be of type float.")
        return number
    if param.type is ParamType.BOOLEAN:
        lowered = _strip_quotes(value).lower()
        if lowered in ("true", "on"):
            return True
        if lowered in ("false", "off"):
            return False
        raise InvalidArgumentsError(f"Error: Param '{param.name}' must be of type boolean.")
    text = _strip_quotes(value)
    if param.type is ParamType.ENUM and text not in param.choices:
        raise InvalidArgumentsError(
            f"Error: Param '{param.name}' must be one of {', '.join(param.choices)}."
        )
    return text


def parse_command_args(command: CommandDef, text: str) -> list[Any]:
    """Parse and type-check the arguments of the first command in text."""
    m = COMMAND_RE.search(text)
    if not m:
        raise InvalidArgumentsError("Command is incorrectly formatted.")
    args = split_args(m.group(2))
    if len(args) != len(command.params):
        raise InvalidArgumentsError(
            f"Command {command.name} was given {len(args)} args, but requires {len(command.params)} args."
        )
    values = []
    for param, raw in zip(command.params, args):
        value = _convert(param, raw)
        if param.domain is not None and isinstance(value, (int, float)):
            low, high = param.domain
            if not low <= value <= high:
                raise InvalidArgumentsError(
                    f"Error: Param '{param.name}' must be an element of [{low}, {high}]."
                )
        values.append(value)
    return values
