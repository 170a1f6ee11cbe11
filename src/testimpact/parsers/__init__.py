"""Source parsing, import resolution and reference queries."""

from .tree_sitter_parser import LANGUAGE_MAP, TreeSitterParser
from .parse_cache import ParseCache, ParsedFile
from .import_resolver import ImportResolver
from .source_project import Declaration, Reference, SourceProject, TestDeclaration

__all__ = [
    "LANGUAGE_MAP", "TreeSitterParser",
    "ParseCache", "ParsedFile",
    "ImportResolver",
    "Declaration", "Reference", "SourceProject", "TestDeclaration",
]
