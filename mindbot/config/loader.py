"""Load settings and profiles from disk and the environment."""

from __future__ import annotations

import json
import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from mindbot.config.schema import Profile, Settings

ENV_PREFIX = "MINDBOT_"


def _env_overrides() -> dict:
    overrides = {}
    for field_name, field in Settings.model_fields.items():
        raw = os.getenv(ENV_PREFIX + field_name.upper())
        if raw is None:
            continue
        if field.annotation in ("bool", bool):
            overrides[field_name] = raw.strip().lower() in ("1", "true", "yes", "on")
        elif field_name == "peer_agents":
            overrides[field_name] = [p.strip() for p in raw.split(",") if p.strip()]
        else:
            overrides[field_name] = raw.strip()
    return overrides


def load_settings(path: str | Path | None = None) -> Settings:
    """Build settings from an optional JSON file plus MINDBOT_* environment variables."""
    load_dotenv()
    data: dict = {}
    if path:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    data.update(_env_overrides())
    return Settings.model_validate(data)


def load_profile(path: str | Path) -> Profile:
    profile = Profile.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))
    logger.info("Using chat settings: api={} model={}", profile.model.resolved_api(), profile.model.model)
    return profile


def save_last_profile(profile: Profile, bots_dir: str | Path) -> Path:
    """Copy the resolved profile next to the agent's other state."""
    out_dir = Path(bots_dir) / profile.name
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / "last_profile.json"
    out.write_text(profile.model_dump_json(indent=4), encoding="utf-8")
    return out
