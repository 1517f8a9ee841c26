"""
Centralized configuration loading from files and environment variables.
"""
import logging
from typing import Any, Dict, Optional

from .configuration import (
    EngineConfiguration,
    ensure_engine_config,
    find_default_config,
    load_config_file,
    load_configuration_from_env,
    merge_configs,
)

logger = logging.getLogger(__name__)


def load_config(
    config_path: Optional[str] = None,
    env_prefix: str = "TMPLSTACK_",
    defaults: Optional[Dict[str, Any]] = None,
) -> EngineConfiguration:
    """
    Load engine configuration.

    Precedence, lowest first: ``defaults``, the configuration file (``config_path``
    or a ``tmplstack.yaml``/``.yml``/``.json`` in the current directory), then
    environment variables starting with ``env_prefix``.

    Args:
        config_path: Path to the configuration file (optional)
        env_prefix: Prefix for environment variables to consider
        defaults: Default configuration values

    Returns:
        Validated EngineConfiguration
    """
    config = dict(defaults or {})

    path = config_path or find_default_config()
    if path:
        logger.info(f"Loading configuration from {path}")
        config = merge_configs(config, load_config_file(str(path)))
    else:
        logger.debug("No configuration file found, using defaults and environment variables")

    config = merge_configs(config, load_configuration_from_env(env_prefix))
    return ensure_engine_config(config)
