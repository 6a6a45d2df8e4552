"""Task validators: decide whether a task's success condition holds."""

from __future__ import annotations

from abc import ABC, abstractmethod

from loguru import logger

from mindbot.tasks.task import Task
from mindbot.world.base import World


class TaskValidator(ABC):
    @abstractmethod
    def validate(self) -> bool:
        """Return True once the task is complete."""


class TechTreeHarvestValidator(TaskValidator):
    """Complete when the agent holds `number_of_target` of the target item."""

    def __init__(self, task: Task, world: World):
        self.task = task
        self.world = world

    def validate(self) -> bool:
        if not self.task.target:
            return False
        try:
            have = self.world.inventory().get(self.task.target, 0)
        except Exception as e:
            logger.error("Error validating task: {}", e)
            return False
        return have >= self.task.number_of_target


def make_validator(task: Task | None, world: World) -> TaskValidator | None:
    """Build the validator for a task once; tasks without a target get none."""
    if task is None or not task.target:
        return None
    return TechTreeHarvestValidator(task, world)
