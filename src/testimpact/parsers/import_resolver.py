"""Resolution of import specifiers to project files."""

import os
from typing import Dict, Optional, Sequence, Tuple


class ImportResolver:
    """Maps an import specifier written in one file to the file it loads.

    Relative specifiers resolve against the importing file's directory, bare
    specifiers against the repository root. Package imports that do not land
    inside the repository resolve to None.
    """

    # ESM-style TypeScript imports name the compiled extension
    COMPILED_EXTENSIONS = {'.js': ('.ts', '.tsx'), '.mjs': ('.mts',), '.cjs': ('.cts',), '.jsx': ('.tsx',)}

    def __init__(self, root: str, extensions: Sequence[str]):
        self.root = os.path.realpath(root)
        self.extensions = tuple(extensions)
        self._cache: Dict[Tuple[str, str], Optional[str]] = {}

    def resolve(self, importer_path: str, specifier: str) -> Optional[str]:
        """Return the resolved absolute path of ``specifier`` as imported from ``importer_path``."""
        importer_dir = os.path.dirname(os.path.realpath(importer_path))
        key = (importer_dir, specifier)
        if key not in self._cache:
            self._cache[key] = self._resolve(importer_dir, specifier)
        return self._cache[key]

    def _resolve(self, importer_dir: str, specifier: str) -> Optional[str]:
        if not specifier:
            return None

        if specifier.startswith('.'):
            base = os.path.join(importer_dir, specifier)
        elif specifier.startswith('/'):
            base = specifier
        else:
            base = os.path.join(self.root, specifier)

        base = os.path.normpath(base)
        resolved = self._probe(base)
        if resolved and self._inside_root(resolved):
            return resolved
        return None

    def _probe(self, base: str) -> Optional[str]:
        """Try the path as written, with each extension, then as a directory index."""
        stem, ext = os.path.splitext(base)
        candidates = []
        if ext.lower() in self.extensions:
            candidates.append(base)
        for compiled_ext in self.COMPILED_EXTENSIONS.get(ext.lower(), ()):
            candidates.append(stem + compiled_ext)
        candidates.extend(base + extension for extension in self.extensions)
        candidates.extend(os.path.join(base, 'index' + extension) for extension in self.extensions)

        for candidate in candidates:
            if os.path.isfile(candidate):
                return os.path.realpath(candidate)
        return None

    def _inside_root(self, path: str) -> bool:
        return path == self.root or path.startswith(self.root + os.sep)
