"""Classification of tests changed inside their own file."""

import logging
from typing import List, Sequence

from ..core.diff_parser import FileDiff
from ..parsers.source_project import TestDeclaration
from .impact_types import ImpactedTest, ImpactType, merge_impacts

logger = logging.getLogger(__name__)


class DirectImpactClassifier:
    """Maps the hunks of a test file onto its test declarations.

    A declaration touched by a hunk is MODIFIED. One lying within a hunk's
    new range is ADDED, which takes precedence over MODIFIED.
    """

    def classify(self, file_diff: FileDiff,
                 test_declarations: Sequence[TestDeclaration]) -> List[ImpactedTest]:
        records = []

        for declaration in test_declarations:
            start, end = declaration.start_line, declaration.end_line

            if any(hunk.overlaps(start, end) for hunk in file_diff.hunks):
                records.append(self._record(file_diff, declaration, ImpactType.MODIFIED))

            if any(hunk.contains(start, end) for hunk in file_diff.hunks):
                records.append(self._record(file_diff, declaration, ImpactType.ADDED))

        impacts = merge_impacts(records)
        logger.debug("%s: %d directly impacted tests", file_diff.file_path, len(impacts))
        return impacts

    def _record(self, file_diff: FileDiff, declaration: TestDeclaration,
                impact_type: ImpactType) -> ImpactedTest:
        return ImpactedTest(
            test_name=declaration.test_name,
            file_path=file_diff.file_path,
            impact_type=impact_type
        )
