"""Error taxonomy for impact analysis."""


class ImpactAnalysisError(Exception):
    """Base class for every error raised by testimpact."""


class RepositoryNotFoundError(ImpactAnalysisError):
    """The repository path does not exist or is not a git repository."""


class DiffRetrievalError(ImpactAnalysisError):
    """The diff for a commit could not be produced (unknown SHA, root commit, git failure)."""


class ConfigurationError(ImpactAnalysisError):
    """A configuration file is malformed or names unknown settings."""


class SourceLoadError(ImpactAnalysisError):
    """A single source file could not be read or parsed."""


class ReferenceResolutionError(ImpactAnalysisError):
    """References for a declaration could not be resolved."""
