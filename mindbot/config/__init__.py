from mindbot.config.loader import load_profile, load_settings
from mindbot.config.schema import ModelConfig, Profile, Settings

__all__ = ["ModelConfig", "Profile", "Settings", "load_profile", "load_settings"]
