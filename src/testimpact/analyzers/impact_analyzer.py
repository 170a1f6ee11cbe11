"""Commit-level impact analysis."""

import logging
import os
import time
from typing import List, Optional, Sequence

from ..core.config import AnalysisConfiguration
from ..core.diff_parser import ChangeType, FileDiff
from ..core.git_diff import GitDiffProvider
from ..parsers.parse_cache import ParseCache
from ..parsers.source_project import SourceProject
from ..parsers.tree_sitter_parser import TreeSitterParser
from .dependency_tracer import DependencyTracer
from .direct_impact import DirectImpactClassifier
from .impact_types import ImpactedTest, ImpactType, merge_impacts
from .removed_tests import RemovedTestDetector

logger = logging.getLogger(__name__)

GLOBAL_CHANGE = ImpactedTest(
    test_name='ALL TESTS',
    file_path='ALL',
    impact_type=ImpactType.IMPACTED_BY_DEPENDENCY,
    related_file='Global Config Change'
)


class ImpactAnalyzer:
    """Finds the tests added, modified, removed or indirectly affected by a commit."""

    def __init__(self, diff_provider: GitDiffProvider, repo_path: str,
                 configuration: Optional[AnalysisConfiguration] = None):
        self.diff_provider = diff_provider
        self.repo_path = os.path.realpath(repo_path)
        self.config = configuration or AnalysisConfiguration()
        self.parser = TreeSitterParser()
        self.classifier = DirectImpactClassifier()
        self.removed_detector = RemovedTestDetector(self.config.test_keywords)
        self._tracer: Optional[DependencyTracer] = None

    def analyze(self, commit: str) -> List[ImpactedTest]:
        """Analyze one commit against its first parent."""
        start_time = time.time()
        file_diffs = self.diff_provider.get_diff(commit)
        logger.debug("Commit %s touches %d files", commit, len(file_diffs))

        impacts = self.analyze_diffs(file_diffs)
        logger.debug("Analysis of %s finished in %.2fs", commit, time.time() - start_time)
        return impacts

    def analyze_diffs(self, file_diffs: Sequence[FileDiff]) -> List[ImpactedTest]:
        """Analyze already parsed file diffs."""
        for file_diff in file_diffs:
            if self.config.is_global_file(file_diff.file_path):
                logger.info("Global configuration changed: %s", file_diff.file_path)
                self._tracer = None
                return [GLOBAL_CHANGE]

        # Fresh parse state for every run
        project = SourceProject(self.repo_path, self.config, cache=ParseCache(), parser=self.parser)
        tracer = DependencyTracer(project, self.config)
        self._tracer = tracer

        records: List[ImpactedTest] = []
        for file_diff in file_diffs:
            absolute_path = os.path.join(self.repo_path, file_diff.file_path)

            if file_diff.change_type is ChangeType.DEL:
                # deleted files of any role may have held tests
                records.extend(self.removed_detector.detect(file_diff))

            elif self.config.is_test_file(file_diff.file_path):
                declarations = project.get_test_declarations(absolute_path)
                records.extend(self.classifier.classify(file_diff, declarations))
                records.extend(self.removed_detector.detect(file_diff))

            elif self.config.is_source_file(file_diff.file_path):
                records.extend(tracer.trace(file_diff, absolute_path))

            else:
                logger.debug("Skipping %s", file_diff.file_path)

        return merge_impacts(self._normalize(record) for record in records)

    def _normalize(self, record: ImpactedTest) -> ImpactedTest:
        """Repository-relative POSIX path for a record."""
        path = record.file_path
        if os.path.isabs(path):
            path = os.path.relpath(path, self.repo_path)
        path = path.replace(os.sep, '/')
        if path == record.file_path:
            return record
        return ImpactedTest(
            test_name=record.test_name,
            file_path=path,
            impact_type=record.impact_type,
            related_file=record.related_file
        )

    def dependency_chain(self, impacted_test: ImpactedTest) -> List[str]:
        """Symbol chain behind an indirect impact from the last run."""
        if self._tracer is None or impacted_test.impact_type is not ImpactType.IMPACTED_BY_DEPENDENCY:
            return []
        absolute_path = os.path.realpath(os.path.join(self.repo_path, impacted_test.file_path))
        return self._tracer.dependency_chain(absolute_path, impacted_test.test_name)
