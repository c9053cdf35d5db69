"""Configuration: pydantic-settings environment layer plus YAML defaults."""

from tamdata.config.loader import load_config
from tamdata.config.settings import Settings

__all__ = ["Settings", "load_config"]
