"""Diff model, diff retrieval, configuration and errors."""

from .config import AnalysisConfiguration
from .diff_parser import ChangedLine, ChangeType, DiffParser, FileDiff, Hunk
from .errors import (
    ConfigurationError, DiffRetrievalError, ImpactAnalysisError,
    ReferenceResolutionError, RepositoryNotFoundError, SourceLoadError
)
from .git_diff import GitDiffProvider

__all__ = [
    "AnalysisConfiguration",
    "ChangedLine", "ChangeType", "DiffParser", "FileDiff", "Hunk",
    "ConfigurationError", "DiffRetrievalError", "ImpactAnalysisError",
    "ReferenceResolutionError", "RepositoryNotFoundError", "SourceLoadError",
    "GitDiffProvider",
]
