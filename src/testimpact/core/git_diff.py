"""Diff retrieval from a git repository."""

import logging
from typing import List

from git import Repo
from git.exc import (
    AmbiguousObjectName, BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
)

from .diff_parser import DiffParser, FileDiff
from .errors import DiffRetrievalError, RepositoryNotFoundError

logger = logging.getLogger(__name__)


class GitDiffProvider:
    """Produces zero-context diffs between a commit and its first parent."""

    def __init__(self, repo_path: str):
        try:
            self.repo = Repo(repo_path, search_parent_directories=False)
        except (NoSuchPathError, InvalidGitRepositoryError) as e:
            raise RepositoryNotFoundError(f"Not a git repository: {repo_path}") from e
        self.parser = DiffParser()

    @property
    def root(self) -> str:
        return self.repo.working_tree_dir

    def get_diff_text(self, commit_sha: str) -> str:
        """Return ``git diff -U0 <parent> <commit>`` for the given commit."""
        try:
            commit = self.repo.commit(commit_sha)
        except AmbiguousObjectName as e:
            raise DiffRetrievalError(f"Ambiguous commit {commit_sha}") from e
        except (BadName, BadObject, ValueError) as e:
            raise DiffRetrievalError(f"Unknown commit {commit_sha}") from e

        if not commit.parents:
            raise DiffRetrievalError(f"Commit {commit_sha} has no parent to diff against")

        parent = commit.parents[0]
        logger.debug("Diffing %s against parent %s", commit.hexsha, parent.hexsha)
        try:
            return self.repo.git.diff(
                '-U0', '--no-color', '--no-ext-diff', parent.hexsha, commit.hexsha
            )
        except GitCommandError as e:
            raise DiffRetrievalError(f"git diff failed for {commit_sha}: {e}") from e

    def get_diff(self, commit_sha: str) -> List[FileDiff]:
        """Return the parsed per-file changes of a commit."""
        return self.parser.parse(self.get_diff_text(commit_sha))
