"""Tree-sitter based source parsing."""

import logging
import os
from typing import Any, Dict, Optional

from tree_sitter import Tree  # Only need Tree for type hints
from tree_sitter_languages import get_parser

logger = logging.getLogger(__name__)

# File extension -> tree-sitter grammar
LANGUAGE_MAP = {
    '.ts': 'typescript',
    '.mts': 'typescript',
    '.cts': 'typescript',
    '.tsx': 'tsx',
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
}


class TreeSitterParser:
    """Parser using Tree-sitter for TypeScript and JavaScript sources."""

    def __init__(self):
        """Initialize parsers for every grammar in LANGUAGE_MAP."""
        self.parsers: Dict[str, Any] = {}

        for lang in sorted(set(LANGUAGE_MAP.values())):
            try:
                self.parsers[lang] = get_parser(lang)
            except (ValueError, TypeError, RuntimeError, OSError) as e:
                logger.warning("Failed to initialize %s support: %s", lang, e)

    def language_for(self, file_path: str) -> Optional[str]:
        """Grammar name for a file, or None when the extension is not supported."""
        language = LANGUAGE_MAP.get(os.path.splitext(file_path)[1].lower())
        if language in self.parsers:
            return language
        return None

    def parse(self, content: bytes, language: str) -> Tree:
        """Parse source bytes with the given grammar."""
        if language not in self.parsers:
            raise ValueError(f"Language {language} not supported")
        return self.parsers[language].parse(content)
