"""
Template file sources: live directories, package data and static bundles.

A source supplies ``name -> raw bytes`` plus a fingerprint used to decide
whether the compiled set is stale.
"""
import base64
import binascii
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..error.exceptions import ErrorContext, TemplateSourceError
from .directive import DEFAULT_PARSER, DirectiveParser, normalize_name

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".html", ".tmpl")


@dataclass(frozen=True)
class TemplateFile:
    """A discovered template file with its directive already split off."""
    name: str
    raw: bytes
    layout: str
    body: bytes
    #: Lines removed from the top of the file along with the directive.
    line_offset: int = 0

    @property
    def is_root(self) -> bool:
        return not self.layout

    @classmethod
    def from_bytes(cls, name: str, raw: bytes, parser: Optional[DirectiveParser] = None) -> 'TemplateFile':
        layout, body, line_offset = (parser or DEFAULT_PARSER).split(raw)
        return cls(name=name, raw=raw, layout=layout, body=body, line_offset=line_offset)


def normalize_extensions(extensions: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Return extensions with a leading dot; the defaults when none are given."""
    if not extensions:
        return DEFAULT_EXTENSIONS
    return tuple(sorted({e if e.startswith(".") else f".{e}" for e in extensions if e}))


class FileSource:
    """Base class for template file sources."""

    #: Static sources have no file timeline; auto-reload never fires for them.
    is_static = False

    def fingerprint(self) -> str:
        raise NotImplementedError

    def read(self) -> Dict[str, bytes]:
        raise NotImplementedError


class DirectorySource(FileSource):
    """Templates found by walking a directory tree."""

    def __init__(self, root: Union[str, Path], extensions: Optional[Iterable[str]] = None):
        """
        Initialize a directory source.

        Args:
            root: Template root directory; names are relative to it
            extensions: Allowed file suffixes (defaults to .html and .tmpl)
        """
        self.root = Path(root)
        self.extensions = normalize_extensions(extensions)

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.root)!r}, extensions={list(self.extensions)!r})"

    def _walk(self) -> List[Tuple[str, Path]]:
        if not self.root.is_dir():
            raise TemplateSourceError(
                f"Template directory not found: {self.root}",
                context=ErrorContext("DirectorySource", "scan", root=str(self.root)),
            )

        found = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if path.suffix not in self.extensions:
                    continue
                name = normalize_name(path.relative_to(self.root).as_posix())
                found.append((name, path))
        return found

    def fingerprint(self) -> str:
        """Digest of the (name, mtime, size) triples of every template file."""
        digest = hashlib.md5()
        try:
            for name, path in self._walk():
                stat = path.stat()
                digest.update(f"{name}\0{stat.st_mtime_ns}\0{stat.st_size}\n".encode("utf-8"))
        except OSError as e:
            raise TemplateSourceError(
                f"Error scanning template directory {self.root}: {e}",
                context=ErrorContext("DirectorySource", "fingerprint", root=str(self.root)),
            ) from e
        return digest.hexdigest()

    def read(self) -> Dict[str, bytes]:
        files = {}
        for name, path in self._walk():
            try:
                files[name] = path.read_bytes()
            except OSError as e:
                raise TemplateSourceError(
                    f"Error reading template {path}: {e}",
                    context=ErrorContext("DirectorySource", "read", name=name),
                ) from e
        logger.debug(f"Read {len(files)} template files from {self.root}")
        return files


class BundleSource(FileSource):
    """Templates held in memory, typically loaded from a bundle file."""

    is_static = True

    def __init__(self, files: Mapping[str, bytes]):
        self.files = {}
        for name, raw in files.items():
            if "\0" in name:
                raise TemplateSourceError(
                    f"Invalid template name {name!r}",
                    context=ErrorContext("BundleSource", "init", name=name),
                )
            self.files[normalize_name(name)] = bytes(raw)

    def __repr__(self) -> str:
        return f"BundleSource({len(self.files)} files)"

    def fingerprint(self) -> str:
        digest = hashlib.md5()
        for name in sorted(self.files):
            digest.update(name.encode("utf-8") + b"\0")
            digest.update(hashlib.md5(self.files[name]).digest())
        return digest.hexdigest()

    def read(self) -> Dict[str, bytes]:
        return dict(self.files)


class TraversableSource(FileSource):
    """
    Templates read through an ``importlib.resources`` Traversable, typically
    the data files of an installed package. Traversables expose no
    modification times, so the fingerprint digests file contents.
    """

    def __init__(self, root, extensions: Optional[Iterable[str]] = None, label: Optional[str] = None):
        """
        Initialize a traversable source.

        Args:
            root: Traversable directory; names are relative to it
            extensions: Allowed file suffixes (defaults to .html and .tmpl)
            label: Description used in messages
        """
        self.root = root
        self.extensions = normalize_extensions(extensions)
        self.label = label or str(root)

    @classmethod
    def from_package(
        cls,
        package: str,
        subdir: str = "",
        extensions: Optional[Iterable[str]] = None,
    ) -> 'TraversableSource':
        """Locate ``subdir`` inside the importable ``package``."""
        try:
            root = resources.files(package)
        except (ImportError, TypeError) as e:
            raise TemplateSourceError(
                f"Cannot load templates from package {package}: {e}",
                context=ErrorContext("TraversableSource", "from_package", package=package),
            ) from e
        for part in normalize_name(subdir).split("/"):
            if part:
                root = root.joinpath(part)
        label = f"{package}:{normalize_name(subdir)}" if subdir else package
        return cls(root, extensions, label=label)

    def __repr__(self) -> str:
        return f"TraversableSource({self.label!r}, extensions={list(self.extensions)!r})"

    def _walk(self) -> List[Tuple[str, object]]:
        if not self.root.is_dir():
            raise TemplateSourceError(
                f"Template directory not found: {self.label}",
                context=ErrorContext("TraversableSource", "scan", root=self.label),
            )

        found = []
        pending = [("", self.root)]
        while pending:
            prefix, directory = pending.pop()
            for entry in directory.iterdir():
                name = prefix + entry.name
                if entry.is_dir():
                    pending.append((name + "/", entry))
                elif os.path.splitext(entry.name)[1] in self.extensions:
                    found.append((name, entry))
        return sorted(found, key=lambda item: item[0])

    def read(self) -> Dict[str, bytes]:
        files = {}
        try:
            for name, entry in self._walk():
                files[name] = entry.read_bytes()
        except OSError as e:
            raise TemplateSourceError(
                f"Error reading templates from {self.label}: {e}",
                context=ErrorContext("TraversableSource", "read", root=self.label),
            ) from e
        logger.debug(f"Read {len(files)} template files from {self.label}")
        return files

    def fingerprint(self) -> str:
        digest = hashlib.md5()
        for name, raw in sorted(self.read().items()):
            digest.update(name.encode("utf-8") + b"\0")
            digest.update(hashlib.md5(raw).digest())
        return digest.hexdigest()


def load_template_files(source: FileSource, parser: Optional[DirectiveParser] = None) -> Dict[str, TemplateFile]:
    """Read every file from ``source`` and split off its extends directive."""
    return {
        name: TemplateFile.from_bytes(name, raw, parser)
        for name, raw in sorted(source.read().items())
    }


def dump_bundle(files: Mapping[str, bytes]) -> str:
    """Serialize ``name -> bytes`` as a JSON object of base64 strings."""
    return json.dumps(
        {name: base64.b64encode(raw).decode("ascii") for name, raw in sorted(files.items())},
        indent=2,
    )


def load_bundle(text: Union[str, bytes]) -> BundleSource:
    """Parse a JSON bundle produced by :func:`dump_bundle`."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateSourceError(f"Invalid template bundle: {e}") from e
    if not isinstance(data, dict):
        raise TemplateSourceError("Invalid template bundle: expected a JSON object")

    files = {}
    for name, encoded in data.items():
        if not isinstance(encoded, str):
            raise TemplateSourceError(f"Invalid template bundle entry {name!r}: expected a base64 string")
        try:
            files[name] = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TemplateSourceError(f"Invalid template bundle entry {name!r}: {e}") from e
    return BundleSource(files)


def scan_bundle(root: Union[str, Path], extensions: Optional[Iterable[str]] = None) -> Dict[str, bytes]:
    """Read all template files under ``root`` for bundling."""
    files = DirectorySource(root, extensions).read()
    if not files:
        raise TemplateSourceError(f"No template files found in {root}")
    return files


def write_bundle(path: Union[str, Path], files: Mapping[str, bytes]) -> Path:
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_bundle(files), encoding="utf-8")
    logger.info(f"Wrote bundle of {len(files)} templates to {path}")
    return path


def read_bundle(path: Union[str, Path]) -> BundleSource:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateSourceError(f"Error reading template bundle {path}: {e}") from e
    return load_bundle(text)
