"""Test impact analysis for commits to TypeScript and JavaScript projects."""

__version__ = "0.1.0"
