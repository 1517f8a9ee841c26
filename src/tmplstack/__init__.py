"""
tmplstack: layout inheritance and live reloading for Jinja2 template sets.
"""
import logging

from .config import EngineConfiguration, load_config
from .error import TemplateError, TemplateNotFoundError
from .templates import BundleSource, DirectorySource, TemplateManager

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "TemplateManager",
    "DirectorySource",
    "BundleSource",
    "EngineConfiguration",
    "load_config",
    "TemplateError",
    "TemplateNotFoundError",
    "__version__",
]
