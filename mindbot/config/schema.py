"""Configuration schema for mindbot."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONVERSING = (
    "You are a playful Minecraft bot named $NAME that can converse with players, see, move, "
    "mine, build, and interact with the world by using commands. Act human-like as if you were "
    "a typical Minecraft player, rather than an AI. Be very brief in your responses, don't "
    "apologize constantly, don't give instructions or make lists unless asked, and don't refuse "
    "requests. Don't pretend to act, use commands immediately when requested. Do NOT say this: "
    "'Sure, I've stopped.', instead say this: 'Sure, I'll stop. !stop'. Respond only as $NAME, "
    "never output '(FROM OTHER BOT)' or pretend to be someone else. This is extremely important "
    "to me, take a deep breath and have fun :)\n"
    "Summarized memory:'$MEMORY'\n$SELF_PROMPT\n$STATS\n$INVENTORY\n$COMMAND_DOCS\n"
    "Conversation Begin:"
)

DEFAULT_SAVING_MEMORY = (
    "You are a minecraft bot named $NAME that has been talking and playing minecraft by using "
    "commands. Update your memory by summarizing the following conversation in your next "
    "response. Store information that will help you improve as a Minecraft bot. Include "
    "detailed reflections on your mistakes and what you can do better next time. Do not "
    "include command syntax or things that you got right, only focus on things to improve. "
    "Compress useful information and remove redundancies. Your output must not exceed 500 "
    "characters, so be extremely brief and minimize words.\n"
    "Old Memory: '$MEMORY'\nRecent conversation: \n$TO_SUMMARIZE\n"
    "Summarize your old memory and recent conversation into a new memory, and respond only "
    "with the memory text: "
)


class ModelConfig(BaseModel):
    """Which backend and model a profile talks to."""

    model: str
    api: str | None = None
    url: str | None = None

    def resolved_api(self) -> str:
        if self.api:
            return self.api
        name = self.model
        if "gemini" in name:
            return "google"
        if "gpt" in name:
            return "openai"
        if "claude" in name:
            return "anthropic"
        if "meta/" in name or "mistralai/" in name or "replicate/" in name:
            return "replicate"
        return "ollama"


class Profile(BaseModel):
    """An agent profile: its name, model and prompt templates."""

    name: str
    model: ModelConfig
    conversing: str = DEFAULT_CONVERSING
    saving_memory: str = DEFAULT_SAVING_MEMORY
    modes: dict[str, bool] = Field(default_factory=dict)

    @field_validator("model", mode="before")
    @classmethod
    def _coerce_model(cls, value):
        if isinstance(value, str):
            return {"model": value}
        return value


class Settings(BaseModel):
    """Process-wide knobs for the control loop."""

    # -1 means no limit on commands per message
    max_commands: int = -1
    verbose_commands: bool = True
    peer_agents: list[str] = Field(default_factory=list)
    bots_dir: str = "./bots"

    history_max_chars: int = 12000
    memory_max_chars: int = 500
    max_hallucinations: int = 3

    self_prompt_cooldown: float = 2.0
    max_no_command: int = 3

    tick_interval: float = 0.3
    # pause after spawning before touching inventory; halved between setup steps
    spawn_delay: float = 1.0
    behavior_log_max: int = 500
    action_stop_timeout: float = 10.0

    database_url: str | None = None
