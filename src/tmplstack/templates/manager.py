"""
Template manager with layout inheritance, bundles and automatic reloading.
"""
import io
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, TextIO, Tuple, Union

from jinja2 import Template

from ..config.configuration import Delimiters, EngineConfiguration
from ..error.exceptions import (
    ArgumentShapeError,
    ErrorContext,
    TemplateBuildError,
    TemplateConfigError,
    TemplateError,
    TemplateNotFoundError,
    TemplateSourceError,
)
from .directive import DirectiveParser
from .namespace import TemplateNamespace, build_shared_namespace
from .resolver import InheritanceResolver
from .sources import (
    BundleSource,
    DirectorySource,
    FileSource,
    TemplateFile,
    TraversableSource,
    load_template_files,
    read_bundle,
)

logger = logging.getLogger(__name__)

# Name under which the execution data is always available.
DATA_VARIABLE = "data"


@dataclass(frozen=True)
class CompiledSet:
    """An immutable, published generation of compiled templates."""
    templates: Mapping[str, Template] = field(default_factory=lambda: MappingProxyType({}))
    failures: Mapping[str, TemplateError] = field(default_factory=lambda: MappingProxyType({}))
    files: Mapping[str, TemplateFile] = field(default_factory=lambda: MappingProxyType({}))


def bind_data(data: Tuple[Any, ...]) -> Dict[str, Any]:
    """
    Turn variadic execution arguments into a template context.

    No argument binds ``None``; one argument is bound as is; an even number of
    arguments is read as alternating string keys and values.

    Raises:
        ArgumentShapeError: For an odd number of arguments above one, or a non-string key
    """
    if not data:
        value = None
    elif len(data) == 1:
        value = data[0]
    elif len(data) % 2:
        raise ArgumentShapeError(
            f"unbalanced key/value arguments: got {len(data)} values",
            context=ErrorContext("TemplateManager", "execute"),
        )
    else:
        value = {}
        for index in range(0, len(data), 2):
            key = data[index]
            if not isinstance(key, str):
                raise ArgumentShapeError(
                    f"key/value argument {index} must be a string key, got {type(key).__name__}",
                    context=ErrorContext("TemplateManager", "execute"),
                )
            value[key] = data[index + 1]

    context: Dict[str, Any] = {}
    if isinstance(value, Mapping):
        context.update((k, v) for k, v in value.items() if isinstance(k, str))
    context.setdefault(DATA_VARIABLE, value)
    return context


class TemplateManager:
    """
    Owns one template set: its shared namespace, the pristine copy it is
    rebuilt from, the published compiled templates and their fingerprint.
    """

    def __init__(
        self,
        delimiters: Optional[Delimiters] = None,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
        auto_reload: bool = False,
        encoding: str = "utf-8",
        trim_blocks: bool = True,
        lstrip_blocks: bool = True,
        autoescape_extensions: Tuple[str, ...] = ("html", "xml"),
        strict_ancestors: bool = False,
    ):
        """
        Initialize template manager.

        Args:
            delimiters: Action (and optionally block) delimiters
            functions: Callables available to every template
            auto_reload: Rebuild on execution when the template files changed
            encoding: Template file encoding
            trim_blocks: Jinja2 ``trim_blocks``
            lstrip_blocks: Jinja2 ``lstrip_blocks``
            autoescape_extensions: Extensions rendered with autoescaping
            strict_ancestors: Fail templates whose layout is missing
        """
        self.delimiters = delimiters or Delimiters()
        self.functions: Dict[str, Callable[..., Any]] = dict(functions or {})
        self.auto_reload = auto_reload
        self.encoding = encoding
        self.trim_blocks = trim_blocks
        self.lstrip_blocks = lstrip_blocks
        self.autoescape_extensions = tuple(autoescape_extensions)
        self.strict_ancestors = strict_ancestors

        self._parser = DirectiveParser(self.delimiters.left, self.delimiters.right)
        self._lock = threading.RLock()
        self._pristine: Optional[TemplateNamespace] = None
        self._shared: Optional[TemplateNamespace] = None
        self._compiled = CompiledSet()
        self._source: Optional[FileSource] = None
        self._bundle: Optional[BundleSource] = None
        self._fingerprint: Optional[str] = None
        self._failed_fingerprint: Optional[str] = None
        self._scan_failed = False

    @classmethod
    def from_config(
        cls,
        config: EngineConfiguration,
        functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> 'TemplateManager':
        """
        Create a manager from configuration and load its templates, if any are configured.

        Templates that fail to compile are logged and left out; executing one
        of them raises its own error. Source and root template errors still raise.
        """
        manager = cls(
            delimiters=config.delimiters,
            functions=functions,
            auto_reload=config.auto_reload,
            encoding=config.encoding,
            trim_blocks=config.trim_blocks,
            lstrip_blocks=config.lstrip_blocks,
            autoescape_extensions=tuple(config.autoescape_extensions),
            strict_ancestors=config.strict_ancestors,
        )
        if config.bundle_path:
            manager.use_bundle(read_bundle(config.bundle_path))
        try:
            if config.bundle_path or config.template_dir:
                manager.parse_dir(config.template_dir or ".", config.extensions)
        except TemplateBuildError as e:
            logger.warning(
                f"{len(e.failures)} template(s) unavailable: {', '.join(sorted(e.failures))}"
            )
        return manager

    # Configuration

    def _check_unparsed(self, option: str) -> None:
        if self._pristine is not None:
            raise TemplateConfigError(
                f"{option} must be set before templates are parsed",
                context=ErrorContext("TemplateManager", option),
            )

    def delims(self, left: str = "", right: str = "") -> 'TemplateManager':
        """
        Set the action delimiters used for directives and template bodies.
        An empty delimiter stands for the default. Returns the manager for chaining.
        """
        self._check_unparsed("delims")
        self.delimiters = self.delimiters.model_copy(update={"left": left or "{{", "right": right or "}}"})
        self._parser = DirectiveParser(self.delimiters.left, self.delimiters.right)
        return self

    def funcs(self, functions: Mapping[str, Callable[..., Any]]) -> 'TemplateManager':
        """Add callables to the function table. Returns the manager for chaining."""
        self._check_unparsed("funcs")
        self.functions.update(functions)
        return self

    def use_bundle(self, bundle: Union[BundleSource, Mapping[str, bytes]]) -> 'TemplateManager':
        """Serve templates from ``bundle``; subsequent ``parse_dir`` calls no longer scan directories."""
        self._bundle = bundle if isinstance(bundle, BundleSource) else BundleSource(bundle)
        return self

    def _pristine_namespace(self) -> TemplateNamespace:
        # Captured once, before any template body is parsed.
        if self._pristine is None:
            self._pristine = TemplateNamespace.create(
                variable_start=self.delimiters.left,
                variable_end=self.delimiters.right,
                block_start=self.delimiters.block_left,
                block_end=self.delimiters.block_right,
                functions=self.functions,
                trim_blocks=self.trim_blocks,
                lstrip_blocks=self.lstrip_blocks,
                autoescape_extensions=self.autoescape_extensions,
            )
        return self._pristine

    # Building

    def _build(self, source: FileSource) -> Tuple[CompiledSet, TemplateNamespace]:
        files = load_template_files(source, self._parser)
        shared = build_shared_namespace(self._pristine_namespace(), files, self.encoding)
        resolver = InheritanceResolver(shared, files, self.encoding, self.strict_ancestors)
        templates, failures = resolver.compile_all()
        compiled = CompiledSet(
            templates=MappingProxyType(templates),
            failures=MappingProxyType(failures),
            files=MappingProxyType(files),
        )
        return compiled, shared

    def _publish(self, source: FileSource, fingerprint: str, compiled: CompiledSet, shared: TemplateNamespace) -> None:
        self._shared = shared
        self._compiled = compiled
        self._source = source
        self._fingerprint = fingerprint
        self._failed_fingerprint = None
        self._scan_failed = False
        logger.info(
            f"Loaded {len(compiled.templates)} templates from {source!r}"
            + (f" ({len(compiled.failures)} failed)" if compiled.failures else "")
        )

    def load(self, source: FileSource) -> 'TemplateManager':
        """
        Build and publish the complete template set from ``source``.

        Raises:
            TemplateSourceError: If the files cannot be scanned or read
            TemplateParseError: If a root template does not parse
            TemplateBuildError: If some extending templates failed; the others are published
        """
        with self._lock:
            fingerprint = source.fingerprint()
            compiled, shared = self._build(source)
            self._publish(source, fingerprint, compiled, shared)
        if compiled.failures:
            raise TemplateBuildError(
                dict(compiled.failures),
                context=ErrorContext("TemplateManager", "load"),
            )
        return self

    def parse_dir(self, root: Union[str, Path], extensions: Optional[List[str]] = None) -> 'TemplateManager':
        """
        Parse every template under ``root`` with one of ``extensions``
        (default ``.html`` and ``.tmpl``). Templates are named by their path
        relative to ``root``. A bundle set with ``use_bundle`` takes precedence.
        """
        if self._bundle is not None:
            logger.debug(f"Using template bundle instead of scanning {root}")
            return self.load(self._bundle)
        return self.load(DirectorySource(root, extensions))

    def parse_bundle(self, bundle: Union[BundleSource, Mapping[str, bytes]]) -> 'TemplateManager':
        """Parse templates from an in-memory bundle."""
        self.use_bundle(bundle)
        return self.load(self._bundle)

    def parse_package(
        self,
        package: str,
        subdir: str = "",
        extensions: Optional[List[str]] = None,
    ) -> 'TemplateManager':
        """
        Parse templates shipped inside an importable package.

        Args:
            package: Dotted package name
            subdir: Directory within the package holding the templates
            extensions: Allowed file suffixes (defaults to .html and .tmpl)
        """
        return self.load(TraversableSource.from_package(package, subdir, extensions))

    def reload_templates(self) -> None:
        """Rebuild everything from the current source, changed or not."""
        if self._source is None:
            raise TemplateError(
                "No templates have been loaded",
                context=ErrorContext("TemplateManager", "reload_templates"),
            )
        self.load(self._source)

    def check_reload(self) -> bool:
        """
        Rebuild if auto-reload is enabled and the backing files changed.

        On failure the previous templates stay published and the error is
        raised; the same file state is not retried until it changes again.
        A failing scan is raised once and then ignored until a scan succeeds.

        Returns:
            True if a rebuild was published
        """
        source = self._source
        if not self.auto_reload or source is None or source.is_static:
            return False

        with self._lock:
            try:
                current = source.fingerprint()
            except TemplateSourceError as e:
                if self._scan_failed:
                    return False
                self._scan_failed = True
                logger.error(f"Template scan failed, keeping previous templates: {e}")
                raise
            self._scan_failed = False

            if current == self._fingerprint or current == self._failed_fingerprint:
                return False

            logger.info("Template files changed, rebuilding")
            try:
                compiled, shared = self._build(source)
            except TemplateError as e:
                self._failed_fingerprint = current
                logger.error(f"Template rebuild failed, keeping previous templates: {e}")
                raise

            self._publish(source, current, compiled, shared)
            return True

    # Lookup and execution

    @property
    def fingerprint(self) -> Optional[str]:
        return self._fingerprint

    def lookup(self, name: str) -> Optional[Template]:
        """Return the compiled template called ``name``, or None."""
        return self._compiled.templates.get(name)

    def names(self) -> List[str]:
        return sorted(self._compiled.templates)

    def template_files(self) -> Mapping[str, TemplateFile]:
        return self._compiled.files

    def failures(self) -> Mapping[str, TemplateError]:
        """Compilation errors of the published set, by template name."""
        return self._compiled.failures

    def __contains__(self, name: str) -> bool:
        return name in self._compiled.templates

    def execute(self, sink: TextIO, name: str, *data: Any) -> None:
        """
        Apply the template ``name`` to ``data`` and write the output to ``sink``.

        Output is written as it is produced, so a failing template may already
        have written part of its output.

        Raises:
            TemplateNotFoundError: If there is no template called ``name``
            ArgumentShapeError: If ``data`` cannot be bound
        """
        if self.auto_reload:
            self.check_reload()

        compiled = self._compiled
        template = compiled.templates.get(name)
        if template is None:
            if name in compiled.failures:
                raise compiled.failures[name]
            raise TemplateNotFoundError(name, context=ErrorContext("TemplateManager", "execute"))

        context = bind_data(data)
        for chunk in template.generate(context):
            sink.write(chunk)

    def render(self, name: str, *data: Any) -> str:
        """Execute ``name`` and return its output as a string."""
        buffer = io.StringIO()
        self.execute(buffer, name, *data)
        return buffer.getvalue()
