"""Configuration module -- exports Settings and load_config."""

from storylens.config.loader import load_config
from storylens.config.settings import Settings

__all__ = ["Settings", "load_config"]
