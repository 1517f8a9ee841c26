"""
Template system with first-line layout inheritance, bundles and automatic reloading.
"""

from .directive import DirectiveParser, parse_directive
from .manager import TemplateManager, CompiledSet, bind_data
from .namespace import TemplateNamespace, build_shared_namespace
from .resolver import InheritanceResolver, resolve_chain
from .sources import (
    BundleSource,
    DirectorySource,
    FileSource,
    TemplateFile,
    TraversableSource,
    dump_bundle,
    load_bundle,
    read_bundle,
    scan_bundle,
    write_bundle,
)

__all__ = [
    'TemplateManager',
    'CompiledSet',
    'bind_data',
    'DirectiveParser',
    'parse_directive',
    'TemplateNamespace',
    'build_shared_namespace',
    'InheritanceResolver',
    'resolve_chain',
    'FileSource',
    'DirectorySource',
    'BundleSource',
    'TemplateFile',
    'TraversableSource',
    'dump_bundle',
    'load_bundle',
    'read_bundle',
    'scan_bundle',
    'write_bundle',
]
