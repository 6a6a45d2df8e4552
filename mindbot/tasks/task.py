"""Task files: what the agent is asked to achieve and how it starts."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field


class Task(BaseModel):
    type: str = "debug"
    goal: str | None = None
    target: str | None = None
    number_of_target: int = 1
    agent_number: int = 1
    agent_names: list[str] = Field(default_factory=list)
    # keyed by agent name when agent_number > 1
    initial_inventory: dict[str, int] | dict[str, dict[str, int]] = Field(default_factory=dict)
    blocked_actions: list[str] | dict[str, list[str]] = Field(default_factory=list)

    @property
    def is_multi_agent(self) -> bool:
        return self.agent_number > 1

    def initial_inventory_for(self, agent_name: str) -> dict[str, int]:
        if self.is_multi_agent:
            return dict(self.initial_inventory.get(agent_name, {}))
        return dict(self.initial_inventory)

    def blocked_actions_for(self, agent_name: str) -> list[str]:
        if isinstance(self.blocked_actions, dict):
            return list(self.blocked_actions.get(agent_name, []))
        return list(self.blocked_actions)


def load_task(path: str | Path, task_id: str | None = None) -> Task:
    """Load a task from a JSON file holding one task, or many keyed by id."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if task_id is not None:
        if task_id not in data:
            raise KeyError(f"Task {task_id} not found in {path}")
        data = data[task_id]
    task = Task.model_validate(data)
    logger.info("Loaded task: type={} target={} x{}", task.type, task.target, task.number_of_target)
    return task
