"""
Inheritance resolution: composes every template against its layout chain.
"""
import logging
from typing import Dict, List, Mapping, Tuple

from jinja2 import Template

from ..error.exceptions import (
    CyclicInheritanceError,
    ErrorContext,
    MissingAncestorError,
    TemplateError,
)
from .namespace import TemplateNamespace, decode_body
from .sources import TemplateFile

logger = logging.getLogger(__name__)


def resolve_chain(
    file: TemplateFile,
    files: Mapping[str, TemplateFile],
    strict: bool = False,
) -> List[TemplateFile]:
    """
    Walk the layout chain of ``file``.

    Args:
        file: Template to resolve
        files: All template files by name
        strict: Raise on a missing parent instead of ending the chain there

    Returns:
        ``[file, parent, grandparent, ...]``

    Raises:
        CyclicInheritanceError: If the chain revisits a template
        MissingAncestorError: If ``strict`` and a parent is not in ``files``
    """
    chain = [file]
    seen = {file.name}
    current = file
    while current.layout:
        parent = files.get(current.layout)
        if parent is None:
            if strict:
                raise MissingAncestorError(
                    file.name,
                    current.layout,
                    context=ErrorContext("InheritanceResolver", "resolve_chain", template=file.name),
                )
            logger.warning(f"Template {current.name} extends unknown template {current.layout}; treating it as a root")
            break
        if parent.name in seen:
            raise CyclicInheritanceError(
                [f.name for f in chain] + [parent.name],
                context=ErrorContext("InheritanceResolver", "resolve_chain", template=file.name),
            )
        chain.append(parent)
        seen.add(parent.name)
        current = parent
    return chain


class InheritanceResolver:
    """Compiles one independent template per file from a shared namespace."""

    def __init__(
        self,
        shared: TemplateNamespace,
        files: Mapping[str, TemplateFile],
        encoding: str = "utf-8",
        strict_ancestors: bool = False,
    ):
        self.shared = shared
        self.files = files
        self.encoding = encoding
        self.strict_ancestors = strict_ancestors

    def compile(self, file: TemplateFile) -> Template:
        """
        Compile a single template.

        Root templates are served straight from the shared namespace. Extending
        templates get a private clone into which the chain is parsed outermost
        ancestor first and the template's own body last.
        """
        if file.is_root:
            return self.shared.lookup(file.name)

        chain = resolve_chain(file, self.files, self.strict_ancestors)
        working = self.shared.clone()
        template = None
        for ancestor in reversed(chain):
            template = working.parse(
                file.name,
                decode_body(ancestor, self.encoding),
                origin=ancestor.name,
                line_offset=ancestor.line_offset,
            )
        return template

    def compile_all(self) -> Tuple[Dict[str, Template], Dict[str, TemplateError]]:
        """
        Compile every file.

        Returns:
            Tuple of (compiled templates by name, errors by name). A failing
            template never prevents the others from compiling.
        """
        compiled: Dict[str, Template] = {}
        failures: Dict[str, TemplateError] = {}
        for name in sorted(self.files):
            try:
                compiled[name] = self.compile(self.files[name])
            except TemplateError as e:
                logger.warning(f"Failed to compile template {name}: {e}")
                failures[name] = e
        return compiled, failures
