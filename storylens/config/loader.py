"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides
  3. environment variables  -- deploy-time values

:func:`load_config` reads the YAML file, then deep-merges the values
resolved by :class:`Settings` on top.
"""

from pathlib import Path

import yaml

from storylens.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is used when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "providers": {
            "embedding_backend": settings.embedding_backend,
            "analysis_backend": settings.analysis_backend,
            "ollama_base_url": settings.ollama_base_url,
        },
        "chunking": {
            "target_words": settings.chunk_target_words,
            "overlap": settings.chunk_overlap,
            "tolerance": settings.chunk_tolerance,
        },
        "cache": {
            "max_size": settings.cache_max_size,
            "ttl": {
                "embeddings": settings.embeddings_ttl_seconds,
                "metadata": settings.metadata_ttl_seconds,
                "analytics": settings.analytics_ttl_seconds,
                "context": settings.context_ttl_seconds,
                "search": settings.search_ttl_seconds,
            },
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
