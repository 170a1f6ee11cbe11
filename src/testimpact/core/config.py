"""Analysis configuration."""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple

from .errors import ConfigurationError

CONFIG_FILE_NAME = '.testimpact.json'


@dataclass(frozen=True)
class AnalysisConfiguration:
    """Configuration for impact analysis."""
    test_file_suffixes: Tuple[str, ...] = (
        '.spec.ts', '.spec.tsx', '.test.ts', '.test.tsx', '.spec.js', '.test.js',
    )
    source_extensions: Tuple[str, ...] = (
        '.ts', '.tsx', '.mts', '.cts', '.js', '.jsx', '.mjs', '.cjs',
    )
    # Changing any of these invalidates the whole suite
    global_config_files: Tuple[str, ...] = (
        'playwright.config.ts', 'package.json', 'global-setup.ts',
    )
    test_keywords: Tuple[str, ...] = ('test', 'it', 'describe')
    max_depth: int = 5
    ignored_directories: Tuple[str, ...] = (
        'node_modules', '.git', 'dist', 'build', 'coverage',
        'playwright-report', 'test-results',
    )

    def is_test_file(self, file_path: str) -> bool:
        return file_path.endswith(self.test_file_suffixes)

    def is_source_file(self, file_path: str) -> bool:
        return os.path.splitext(file_path)[1].lower() in self.source_extensions

    def is_global_file(self, file_path: str) -> bool:
        return file_path.endswith(self.global_config_files)

    def with_overrides(self, **overrides) -> 'AnalysisConfiguration':
        """Return a copy with the given fields replaced; ``None`` values are ignored."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values) if values else self

    @classmethod
    def load(cls, repo_path: str, config_path: Optional[str] = None) -> 'AnalysisConfiguration':
        """Load overrides from ``.testimpact.json`` in the repository, or from an explicit file.

        A missing default file yields the defaults. An explicit path must exist.
        """
        path = config_path or os.path.join(repo_path, CONFIG_FILE_NAME)
        if not os.path.isfile(path):
            if config_path:
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {path} must be a JSON object")

        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")

        values = {}
        for key, value in data.items():
            if key == 'max_depth':
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ConfigurationError(f"max_depth must be a non-negative integer, got {value!r}")
                values[key] = value
            else:
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ConfigurationError(f"{key} must be a list of strings")
                values[key] = tuple(value)

        return cls(**values)
