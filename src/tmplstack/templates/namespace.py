"""
Named-template collections built on Jinja2.

A :class:`TemplateNamespace` is one Jinja2 environment plus a private
``name -> source`` mapping. Cloning copies the mapping and overlays the
environment, so anything registered in a clone stays in that clone.

Parsing into a name that already exists layers the new body on top of the
previous definition: the old source moves to a private layer name and the new
one extends it. Jinja2's block rules then make the last parsed body win for
identically named blocks, and ``super()`` reaches the previous layer.
"""
import json
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from jinja2 import DictLoader, Environment, Template, TemplateSyntaxError, select_autoescape

from ..error.exceptions import ErrorContext, TemplateParseError
from .sources import TemplateFile

logger = logging.getLogger(__name__)

# NUL cannot occur in a file path, so layers never collide with real templates.
LAYER_PREFIX = "\x00layers"
CACHE_SIZE = 400


class TemplateNamespace:
    """A cloneable collection of named Jinja2 templates."""

    def __init__(self, environment: Environment, sources: Dict[str, str], layer_count: int = 0):
        # ``sources`` is the very dict behind ``environment.loader``.
        self.environment = environment
        self.sources = sources
        self._layer_count = layer_count

    @classmethod
    def create(
        cls,
        variable_start: str = "{{",
        variable_end: str = "}}",
        block_start: Optional[str] = None,
        block_end: Optional[str] = None,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
        trim_blocks: bool = True,
        lstrip_blocks: bool = True,
        autoescape_extensions: Iterable[str] = ("html", "xml"),
    ) -> 'TemplateNamespace':
        """
        Create an empty namespace with the shared engine configuration.

        Args:
            variable_start: Left action delimiter
            variable_end: Right action delimiter
            block_start: Left block tag delimiter (Jinja2 default if omitted)
            block_end: Right block tag delimiter (Jinja2 default if omitted)
            functions: Callables exposed to every template as globals and filters
            trim_blocks: Jinja2 ``trim_blocks``
            lstrip_blocks: Jinja2 ``lstrip_blocks``
            autoescape_extensions: Template name extensions rendered with autoescaping

        Returns:
            Namespace without any templates
        """
        sources: Dict[str, str] = {}
        options = {}
        if block_start:
            options["block_start_string"] = block_start
        if block_end:
            options["block_end_string"] = block_end

        env = Environment(
            loader=DictLoader(sources),
            variable_start_string=variable_start or "{{",
            variable_end_string=variable_end or "}}",
            trim_blocks=trim_blocks,
            lstrip_blocks=lstrip_blocks,
            autoescape=select_autoescape(list(autoescape_extensions)),
            cache_size=CACHE_SIZE,
            **options
        )

        if functions:
            env.globals.update(functions)
            env.filters.update(functions)

        return cls(env, sources)

    def __contains__(self, name: str) -> bool:
        return name in self.sources

    def names(self):
        return sorted(n for n in self.sources if not n.startswith(LAYER_PREFIX + "/"))

    def clone(self) -> 'TemplateNamespace':
        """Return an independent working copy of this namespace."""
        sources = dict(self.sources)
        env = self.environment.overlay(loader=DictLoader(sources), cache_size=CACHE_SIZE)
        return TemplateNamespace(env, sources, self._layer_count)

    def _extends_tag(self, parent: str) -> str:
        env = self.environment
        return f"{env.block_start_string} extends {json.dumps(parent)} {env.block_end_string}"

    def parse(self, name: str, body: str, origin: Optional[str] = None, line_offset: int = 0) -> Template:
        """
        Parse ``body`` into the template called ``name``.

        Args:
            name: Template name to (re)define
            body: Template source
            origin: File the body came from, used in error messages
            line_offset: Added to reported line numbers

        Returns:
            The compiled template registered under ``name``

        Raises:
            TemplateParseError: If the body does not parse; the namespace is left unchanged
        """
        previous = self.sources.get(name)
        layer = None
        if previous is None:
            source = body
        else:
            layer = f"{LAYER_PREFIX}/{self._layer_count}/{name}"
            # The extends tag takes the place of the stripped directive line.
            source = self._extends_tag(layer) + "\n" + body
            self.sources[layer] = previous
            line_offset -= 1

        self.sources[name] = source
        try:
            template = self.environment.get_template(name)
        except TemplateSyntaxError as e:
            if previous is None:
                del self.sources[name]
            else:
                self.sources[name] = previous
                del self.sources[layer]
            lineno = e.lineno + line_offset if e.lineno else None
            where = f"{origin or name}:{lineno}" if lineno else (origin or name)
            raise TemplateParseError(
                f"{where}: {e.message}",
                name=origin or name,
                lineno=lineno,
                context=ErrorContext("TemplateNamespace", "parse", template=name),
            ) from e

        if layer is not None:
            self._layer_count += 1
        return template

    def lookup(self, name: str) -> Optional[Template]:
        if name not in self.sources:
            return None
        return self.environment.get_template(name)


def decode_body(file: TemplateFile, encoding: str = "utf-8") -> str:
    """Decode a template body, reporting undecodable files as parse errors."""
    try:
        return file.body.decode(encoding)
    except UnicodeDecodeError as e:
        raise TemplateParseError(
            f"{file.name}: cannot decode as {encoding}: {e}",
            name=file.name,
            context=ErrorContext("TemplateNamespace", "decode", template=file.name),
        ) from e


def build_shared_namespace(
    pristine: TemplateNamespace,
    files: Mapping[str, TemplateFile],
    encoding: str = "utf-8",
) -> TemplateNamespace:
    """
    Parse every root template into a fresh copy of ``pristine``.

    Extending templates are skipped here; they are composed afterwards from
    clones of the namespace returned. Any parse error aborts the build and
    ``pristine`` is never touched.
    """
    shared = pristine.clone()
    roots = 0
    for name in sorted(files):
        file = files[name]
        if not file.is_root:
            continue
        shared.parse(name, decode_body(file, encoding), origin=name)
        roots += 1

    logger.debug(f"Built shared namespace with {roots} root templates")
    return shared
