"""Exceptions raised across the mindbot package."""


class MindbotError(Exception):
    """Base class for recoverable mindbot errors."""


class InvalidArgumentsError(MindbotError):
    """Command arguments do not match the declared parameters."""


class CommandExecutionError(MindbotError):
    """The world operation behind a command failed."""


class AgentExit(SystemExit):
    """Hard stop of the agent process; `code` is the exit status."""

    def __init__(self, code: int, reason: str = ""):
        super().__init__(code)
        self.reason = reason


class MemorySavingError(MindbotError):
    """The model gave no usable summary for compaction."""
