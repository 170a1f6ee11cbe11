"""Shared fixtures for testimpact tests."""

import textwrap
from pathlib import Path
from typing import Dict, Iterable

import pytest
from git import Repo

from testimpact.core import DiffParser


def write_files(root: Path, files: Dict[str, str]):
    """Write dedented sources under ``root``; line 1 is the first non-blank line."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")


@pytest.fixture
def make_project(tmp_path: Path):
    """Factory writing a small source tree into ``tmp_path``."""

    def _make(files: Dict[str, str]) -> Path:
        write_files(tmp_path, files)
        return tmp_path

    return _make


@pytest.fixture
def git_repo(tmp_path: Path) -> Repo:
    """An empty git repository with a committer identity."""
    repo = Repo.init(tmp_path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
    return repo


@pytest.fixture
def commit_files(git_repo: Repo):
    """Factory committing file writes and deletions; returns the new commit SHA."""

    def _commit(files: Dict[str, str], message: str = "update", delete: Iterable[str] = ()) -> str:
        root = Path(git_repo.working_tree_dir)
        write_files(root, files)
        if files:
            git_repo.index.add(list(files))
        delete = list(delete)
        if delete:
            git_repo.index.remove(delete, working_tree=True)
        return git_repo.index.commit(message).hexsha

    return _commit


class FakeDiffProvider:
    """Stands in for GitDiffProvider with a fixed diff text."""

    def __init__(self, diff_text: str):
        self.diff_text = diff_text
        self.requested = []

    def get_diff(self, commit_sha: str):
        self.requested.append(commit_sha)
        return DiffParser().parse(self.diff_text)


@pytest.fixture
def fake_provider():
    """Factory for a diff provider returning dedented diff text."""

    def _make(diff_text: str) -> FakeDiffProvider:
        return FakeDiffProvider(textwrap.dedent(diff_text).lstrip("\n"))

    return _make
