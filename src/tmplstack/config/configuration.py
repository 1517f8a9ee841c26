"""
Configuration for the template engine with validation.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..error.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ["tmplstack.yaml", "tmplstack.yml", "tmplstack.json"]


class Delimiters(BaseModel):
    """Template delimiters. Empty strings stand for the defaults."""

    left: str = Field(default="{{", description="Left action delimiter")
    right: str = Field(default="}}", description="Right action delimiter")
    block_left: Optional[str] = Field(default=None, description="Left block tag delimiter")
    block_right: Optional[str] = Field(default=None, description="Right block tag delimiter")

    @field_validator("left", "right", mode="before")
    @classmethod
    def default_when_empty(cls, value: Any, info) -> str:
        if not value:
            return "{{" if info.field_name == "left" else "}}"
        return value


class EngineConfiguration(BaseModel):
    """Configuration for a template manager."""

    template_dir: Optional[Path] = Field(default=None, description="Template root directory")
    bundle_path: Optional[Path] = Field(default=None, description="JSON template bundle used instead of template_dir")
    extensions: List[str] = Field(default_factory=lambda: [".html", ".tmpl"], description="Template file extensions")
    auto_reload: bool = Field(default=False, description="Rebuild templates when files change")
    delimiters: Delimiters = Field(default_factory=Delimiters)
    encoding: str = Field(default="utf-8", description="Template file encoding")
    trim_blocks: bool = True
    lstrip_blocks: bool = True
    autoescape_extensions: List[str] = Field(default_factory=lambda: ["html", "xml"])
    strict_ancestors: bool = Field(default=False, description="Treat a missing layout as an error")
    log_level: str = Field(default="WARNING", description="Log level applied by the command line")

    @field_validator("extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, value: Any) -> List[str]:
        """Accept a comma separated string and ensure a leading dot."""
        if isinstance(value, str):
            value = [v for v in value.split(",")]
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("extensions must be a list of strings")
        normalized = []
        for ext in value:
            ext = str(ext).strip()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        if not normalized:
            raise ValueError("at least one template extension is required")
        return normalized

    @field_validator("autoescape_extensions", mode="before")
    @classmethod
    def strip_autoescape_dots(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(",")
        return [str(v).strip().lstrip(".") for v in value if str(v).strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        value_upper = value.upper()
        if value_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{value}'. Must be one of: {valid_levels}")
        return value_upper

    @field_validator("template_dir", "bundle_path", mode="before")
    @classmethod
    def convert_single_path(cls, value: Any) -> Optional[Path]:
        """Convert path strings to Path objects."""
        if value is None or value == "":
            return None
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        raise ValueError(f"Invalid path value: {value}")

    @model_validator(mode="after")
    def warn_on_static_reload(self) -> 'EngineConfiguration':
        if self.bundle_path and self.auto_reload:
            logger.warning("auto_reload has no effect when templates come from a bundle")
        return self


def ensure_engine_config(config: Optional[Any] = None) -> EngineConfiguration:
    """Build a validated configuration from a mapping (or pass one through)."""
    if isinstance(config, EngineConfiguration):
        return config
    try:
        return EngineConfiguration(**(config or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config_file(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from a file (YAML or JSON).

    Args:
        file_path: Path to the configuration file

    Returns:
        Dictionary with configuration

    Raises:
        ConfigurationError: If the file is not found or cannot be parsed
    """
    path = Path(file_path).expanduser()

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {file_path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Error reading config file {file_path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            loaded_config = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            loaded_config = json.loads(content) or {}
        else:
            raise ConfigurationError(f"Unsupported config file format: {file_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML format in {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON format in {file_path}: {e}") from e

    if not isinstance(loaded_config, dict):
        raise ConfigurationError(f"Configuration file {file_path} must contain a mapping")

    logger.debug(f"Loaded configuration from {file_path}")
    return loaded_config


def find_default_config(search_dir: Optional[Path] = None) -> Optional[Path]:
    """Return the first default configuration file found in ``search_dir`` (CWD by default)."""
    base = Path(search_dir) if search_dir else Path.cwd()
    for filename in DEFAULT_CONFIG_FILES:
        candidate = base / filename
        if candidate.exists():
            return candidate
    return None


def load_configuration_from_env(env_prefix: str = "TMPLSTACK_") -> Dict[str, Any]:
    """
    Collect configuration values from environment variables.

    ``TMPLSTACK_TEMPLATE_DIR=templates`` sets ``template_dir``;
    ``TMPLSTACK_DELIMITERS__LEFT=[[`` sets ``delimiters.left``.
    """
    config: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(env_prefix):
            continue
        path = key[len(env_prefix):].lower().split("__")
        target = config
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = _coerce_env_value(value)
    return config


def _coerce_env_value(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    return value


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in result and isinstance(result[key], dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result
