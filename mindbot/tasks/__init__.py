from mindbot.tasks.task import Task, load_task
from mindbot.tasks.validator import TaskValidator, TechTreeHarvestValidator, make_validator

__all__ = ["Task", "TaskValidator", "TechTreeHarvestValidator", "load_task", "make_validator"]
