"""
Configuration components for tmplstack.
"""
from .configuration import (
    Delimiters,
    EngineConfiguration,
    ensure_engine_config,
    load_config_file,
    merge_configs,
)
from .loader import load_config

__all__ = [
    "Delimiters",
    "EngineConfiguration",
    "ensure_engine_config",
    "load_config_file",
    "merge_configs",
    "load_config",
]
