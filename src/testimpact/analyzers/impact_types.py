"""Impacted-test records and priority merging."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class ImpactType(Enum):
    """Why a test is reported."""
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    REMOVED = "REMOVED"
    IMPACTED_BY_DEPENDENCY = "IMPACTED_BY_DEPENDENCY"


# Higher wins when two records share a key
IMPACT_PRIORITY = {
    ImpactType.ADDED: 3,
    ImpactType.MODIFIED: 2,
    ImpactType.IMPACTED_BY_DEPENDENCY: 1,
    ImpactType.REMOVED: 0,
}


@dataclass(frozen=True)
class ImpactedTest:
    """A test affected by a commit."""
    test_name: str
    file_path: str
    impact_type: ImpactType
    related_file: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return self.file_path, self.test_name

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'testName': self.test_name,
            'filePath': self.file_path,
            'impactType': self.impact_type.value,
        }
        if self.related_file is not None:
            data['relatedFile'] = self.related_file
        return data


def merge_impacts(records: Iterable[ImpactedTest]) -> List[ImpactedTest]:
    """Deduplicate by ``(file_path, test_name)`` keeping the highest-priority record.

    Keys keep the order in which they were first seen.
    """
    merged: Dict[Tuple[str, str], ImpactedTest] = {}
    for record in records:
        current = merged.get(record.key)
        if current is None or IMPACT_PRIORITY[record.impact_type] > IMPACT_PRIORITY[current.impact_type]:
            merged[record.key] = record
    return list(merged.values())
