"""Per-run cache of source text and parse trees."""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from tree_sitter import Tree


@dataclass
class ParsedFile:
    """A source file parsed into a tree-sitter tree."""
    path: str
    language: str
    source: bytes
    tree: Tree

    @property
    def root(self):
        return self.tree.root_node


def cache_key(path: str) -> str:
    """Files are keyed by their resolved absolute path."""
    return os.path.realpath(path)


class ParseCache:
    """Holds raw sources and parsed files for the duration of one analysis.

    The cache is populated file by file as files are first referenced and is
    never shared between analyses.
    """

    def __init__(self):
        self._parsed: Dict[str, ParsedFile] = {}
        self._sources: Dict[str, bytes] = {}

    def get(self, path: str) -> Optional[ParsedFile]:
        return self._parsed.get(cache_key(path))

    def put(self, parsed: ParsedFile):
        key = cache_key(parsed.path)
        self._parsed[key] = parsed
        self._sources[key] = parsed.source

    def source(self, path: str) -> bytes:
        """Raw bytes of a file, read once and remembered."""
        key = cache_key(path)
        if key not in self._sources:
            with open(key, 'rb') as f:
                self._sources[key] = f.read()
        return self._sources[key]

    def invalidate(self, path: str):
        key = cache_key(path)
        self._parsed.pop(key, None)
        self._sources.pop(key, None)

    def reset(self):
        self._parsed.clear()
        self._sources.clear()

    def __contains__(self, path: str) -> bool:
        return cache_key(path) in self._parsed

    def __len__(self) -> int:
        return len(self._parsed)
