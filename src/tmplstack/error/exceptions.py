"""
Centralized exception definitions for tmplstack.
"""
from typing import Dict, List, Optional


class ErrorContext:
    """Context information for errors."""

    def __init__(self, component: str = None, operation: str = None, **kwargs):
        self.component = component
        self.operation = operation
        self.details = kwargs


class TmplstackError(Exception):
    """Base class for all tmplstack errors."""

    def __init__(self, message: str, context: ErrorContext = None, details: dict = None):
        super().__init__(message)
        self.context = context or ErrorContext()
        self.details = details or {}

    def __str__(self):
        base_str = super().__str__()
        if self.context.component and self.context.operation:
            return f"{base_str} [in {self.context.component}.{self.context.operation}]"
        return base_str


class ConfigurationError(TmplstackError):
    """Error in configuration."""
    pass


class TemplateError(TmplstackError):
    """Error in template handling."""
    pass


class TemplateSourceError(TemplateError):
    """Error scanning or reading the backing template files."""
    pass


class TemplateConfigError(TemplateError):
    """Engine option changed after templates were parsed."""
    pass


class TemplateParseError(TemplateError):
    """A template body could not be parsed."""

    def __init__(self, message: str, name: str, lineno: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name
        self.lineno = lineno


class TemplateNotFoundError(TemplateError, LookupError):
    """No compiled template exists under the requested name."""

    def __init__(self, name: str, **kwargs):
        super().__init__(f"no template {name!r}", **kwargs)
        self.name = name


class ArgumentShapeError(TemplateError, ValueError):
    """Variadic execution data could not be bound to a context."""
    pass


class CyclicInheritanceError(TemplateError):
    """A layout chain refers back to one of its own members."""

    def __init__(self, chain: List[str], **kwargs):
        super().__init__(f"cyclic inheritance: {' -> '.join(chain)}", **kwargs)
        self.chain = chain


class MissingAncestorError(TemplateError):
    """A layout chain names a parent that is not in the file set."""

    def __init__(self, name: str, missing: str, **kwargs):
        super().__init__(f"template {name!r} extends missing template {missing!r}", **kwargs)
        self.name = name
        self.missing = missing


class TemplateBuildError(TemplateError):
    """One or more extending templates failed to compile during a build."""

    def __init__(self, failures: Dict[str, TemplateError], **kwargs):
        listing = "; ".join(f"{name}: {error}" for name, error in sorted(failures.items()))
        super().__init__(f"{len(failures)} template(s) failed to compile: {listing}", **kwargs)
        self.failures = dict(failures)
