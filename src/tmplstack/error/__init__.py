"""
Error handling utilities and exceptions.
"""
from .exceptions import (
    ErrorContext,
    TmplstackError,
    ConfigurationError,
    TemplateError,
    TemplateSourceError,
    TemplateConfigError,
    TemplateParseError,
    TemplateNotFoundError,
    ArgumentShapeError,
    CyclicInheritanceError,
    MissingAncestorError,
    TemplateBuildError,
)

__all__ = [
    'ErrorContext',
    'TmplstackError',
    'ConfigurationError',
    'TemplateError',
    'TemplateSourceError',
    'TemplateConfigError',
    'TemplateParseError',
    'TemplateNotFoundError',
    'ArgumentShapeError',
    'CyclicInheritanceError',
    'MissingAncestorError',
    'TemplateBuildError',
]
