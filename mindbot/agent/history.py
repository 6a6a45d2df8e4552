"""Conversation history: ordered turns, persistence, and compaction."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

import json_repair
from loguru import logger
from pydantic import BaseModel, Field

SYSTEM = "system"

Summarizer = Callable[[str | None, list["Turn"]], Awaitable[str]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    """One recorded utterance."""

    speaker: str
    content: str
    timestamp: datetime = Field(default_factory=_now)
    # True for the system turns that hold a compaction summary
    memory: bool = False

    def to_message(self, agent_name: str) -> dict[str, str]:
        """Render the turn the way chat-completion backends expect it."""
        if self.speaker == SYSTEM:
            return {"role": "system", "content": self.content}
        if self.speaker == agent_name:
            return {"role": "assistant", "content": self.content}
        return {"role": "user", "content": f"{self.speaker}: {self.content}"}


def stringify_turns(turns: list[Turn]) -> str:
    lines = []
    for turn in turns:
        if turn.speaker == SYSTEM:
            lines.append(f"System output: {turn.content}")
        else:
            lines.append(f"{turn.speaker}: {turn.content}")
    return "\n".join(lines).strip()


class History:
    """
    Append-only turn log owned by a single agent.

    The only mutations are `add` and `compact`. Once the serialized size passes
    `max_chars`, the oldest run of ordinary turns is folded into a memorize
    anchor produced by the summarizer callback. Anchors are rewritten as the
    summary grows but never removed.
    """

    def __init__(
        self,
        name: str,
        bots_dir: str | Path,
        summarize: Summarizer | None = None,
        max_chars: int = 12000,
        memory_max_chars: int = 500,
    ):
        self.name = name
        self.summarize = summarize
        self.max_chars = max_chars
        self.memory_max_chars = memory_max_chars
        self.turns: list[Turn] = []
        self.memory: str = ""

        self.dir = Path(bots_dir) / name
        self.memory_fp = self.dir / "memory.json"
        self.archive_fp = self.dir / "histories" / f"{_now().strftime('%Y-%m-%dT%H-%M-%S')}.jsonl"
        self._compacting = False

    def get_history(self) -> list[Turn]:
        return list(self.turns)

    def serialized_size(self) -> int:
        return len(json.dumps([t.model_dump(mode="json") for t in self.turns]))

    async def add(self, speaker: str, content: str) -> Turn:
        turn = Turn(speaker=speaker, content=content)
        self.turns.append(turn)
        if self.serialized_size() > self.max_chars:
            await self.compact()
        return turn

    def record(self, speaker: str, content: str) -> Turn:
        """Append without compacting; used for the last entry before the process exits."""
        turn = Turn(speaker=speaker, content=content)
        self.turns.append(turn)
        return turn

    def _oldest_run(self) -> tuple[int, int, int] | None:
        """Locate the oldest run of ordinary turns.

        Returns (anchor_start, start, end): the run is turns[start:end], and
        anchor_start points at the memorize anchor directly before it, or equals
        start when there is none.
        """
        # the newest turn is the live stimulus and always stays verbatim
        last = len(self.turns) - 1
        start = None
        for i in range(last):
            if not self.turns[i].memory:
                start = i
                break
        if start is None:
            return None
        end = start
        while end < last and not self.turns[end].memory:
            end += 1
        anchor_start = start - 1 if start > 0 and self.turns[start - 1].memory else start
        return anchor_start, start, end

    async def compact(self) -> bool:
        """Fold old turns into memorize anchors until the log fits again.

        A run that follows an anchor is merged into it, and the anchor is
        rewritten with the new cumulative summary.
        """
        if self._compacting or self.summarize is None:
            return False
        self._compacting = True
        changed = False
        try:
            while self.serialized_size() > self.max_chars:
                run = self._oldest_run()
                if run is None:
                    logger.warning("History for {} is over budget but nothing is left to compact", self.name)
                    break
                anchor_start, start, end = run
                chunk = self.turns[start:end]
                try:
                    summary = (await self.summarize(self.memory or None, chunk)).strip()
                except Exception as e:
                    logger.error("Memory saving failed for {}, keeping turns: {}", self.name, e)
                    break
                if len(summary) > self.memory_max_chars:
                    summary = summary[: self.memory_max_chars]
                if self.turns[start:end] != chunk:
                    logger.warning("History changed during compaction, retrying")
                    continue
                anchor = Turn(speaker=SYSTEM, content=f"Summarized memory: {summary}", memory=True)
                self.turns[anchor_start:end] = [anchor]
                self.memory = summary
                self._archive(chunk)
                changed = True
                logger.info("Compacted {} turns into memory ({} chars)", len(chunk), len(summary))
        finally:
            self._compacting = False
        return changed

    def _archive(self, turns: list[Turn]) -> None:
        self.archive_fp.parent.mkdir(parents=True, exist_ok=True)
        with open(self.archive_fp, "a", encoding="utf-8") as f:
            for t in turns:
                f.write(t.model_dump_json() + "\n")

    def clear(self) -> None:
        self.turns = []
        self.memory = ""

    def save(self, self_prompt: str | None = None, modes: dict[str, Any] | None = None) -> None:
        self.dir.mkdir(parents=True, exist_ok=True)
        data = {
            "name": self.name,
            "memory": self.memory,
            "turns": [t.model_dump(mode="json") for t in self.turns],
            "self_prompt": self_prompt,
            "modes": modes,
        }
        self.memory_fp.write_text(json.dumps(data, indent=4), encoding="utf-8")

    def load(self) -> dict | None:
        """Restore a saved session; returns the raw save data."""
        if not self.memory_fp.exists():
            logger.info("No memory file for {}, starting fresh", self.name)
            return None
        try:
            data = json_repair.loads(self.memory_fp.read_text(encoding="utf-8"))
        except Exception as e:
            logger.error("Failed to load memory for {}: {}", self.name, e)
            return None
        if not isinstance(data, dict):
            logger.error("Memory file for {} is not an object, ignoring", self.name)
            return None
        self.memory = data.get("memory") or ""
        self.turns = [Turn.model_validate(t) for t in data.get("turns") or []]
        logger.info("Loaded memory for {}: {} turns", self.name, len(self.turns))
        return data
