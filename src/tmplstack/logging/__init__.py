"""
Logging configuration helpers.
"""
from .config import JsonFormatter, LogConfig

__all__ = ["JsonFormatter", "LogConfig"]
