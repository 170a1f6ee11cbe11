"""Indirect impact tracing through cross-file symbol references."""

import logging
import os
from typing import Dict, List, Optional, Set, Tuple

import networkx as nx

from ..core.config import AnalysisConfiguration
from ..core.diff_parser import FileDiff
from ..core.errors import ReferenceResolutionError
from ..parsers.source_project import Declaration, Reference, SourceProject, TestDeclaration
from .impact_types import ImpactedTest, ImpactType, merge_impacts

logger = logging.getLogger(__name__)


def _symbol_id(declaration: Declaration) -> str:
    return f"{declaration.file_path}::{declaration.name}@{declaration.start_byte}"


def _test_id(file_path: str, test_name: str) -> str:
    return f"{file_path}::test:{test_name}"


class DependencyTracer:
    """Walks symbol references from changed source files out to the tests that use them.

    The walk is depth first over an explicit stack of ``(symbol, depth)``
    pairs. Every hop is also recorded in ``graph`` so the chain that led to a
    test can be explained afterwards. One tracer serves a whole analysis run;
    the shallowest depth each symbol was reached at is kept per changed
    file, and a symbol is walked again only when reached at a smaller depth.
    """

    def __init__(self, project: SourceProject, configuration: Optional[AnalysisConfiguration] = None):
        self.project = project
        self.config = configuration or project.config
        self.graph = nx.DiGraph()
        # test node -> changed-symbol nodes that reached it
        self._origins: Dict[str, List[str]] = {}

    def trace(self, file_diff: FileDiff, absolute_path: str) -> List[ImpactedTest]:
        """Tests reachable from the symbols changed in one non-test source file."""
        seeds = self._changed_symbols(file_diff, absolute_path)
        if not seeds:
            logger.debug("%s: no externally visible symbol changed", file_diff.file_path)
            return []

        best_depth: Dict[Tuple[str, int], int] = {}
        records: List[ImpactedTest] = []

        for seed in seeds:
            origin = self._add_symbol(seed)
            stack = [(seed, 0)]

            while stack:
                symbol, depth = stack.pop()
                if depth >= best_depth.get(symbol.key, depth + 1):
                    continue
                best_depth[symbol.key] = depth
                logger.debug("Tracing %s (%s) at depth %d", symbol.name, symbol.file_path, depth)

                for reference in self._uses(symbol):
                    if self.config.is_test_file(reference.file_path):
                        test = self.project.find_enclosing_test(reference)
                        if test is not None:
                            self._record_test(symbol, test, origin)
                            records.append(ImpactedTest(
                                test_name=test.test_name,
                                file_path=test.file_path,
                                impact_type=ImpactType.IMPACTED_BY_DEPENDENCY,
                                related_file=file_diff.file_path
                            ))
                            continue
                        # helpers local to a spec file are followed even when not exported
                        next_symbol = self.project.find_enclosing_declaration(reference, exported_only=False)
                    else:
                        next_symbol = self.project.find_enclosing_declaration(reference)

                    if next_symbol is None or depth + 1 >= best_depth.get(next_symbol.key, depth + 2):
                        continue
                    if depth + 1 > self.config.max_depth:
                        logger.debug("Depth limit reached at %s", next_symbol.name)
                        continue

                    self.graph.add_edge(self._add_symbol(symbol), self._add_symbol(next_symbol))
                    stack.append((next_symbol, depth + 1))

        return merge_impacts(records)

    def _changed_symbols(self, file_diff: FileDiff, absolute_path: str) -> List[Declaration]:
        symbols: List[Declaration] = []
        seen: Set[Tuple[str, int]] = set()
        for line in file_diff.added_lines:
            symbol = self.project.find_changed_symbol(absolute_path, line.line_number)
            if symbol is not None and symbol.key not in seen:
                seen.add(symbol.key)
                symbols.append(symbol)
        return symbols

    def _uses(self, symbol: Declaration) -> List[Reference]:
        """References to a symbol with import bindings expanded to their local uses."""
        try:
            references = self.project.find_references(symbol)
        except ReferenceResolutionError as e:
            logger.warning("%s", e)
            return []

        uses = []
        for reference in references:
            if reference.is_import:
                uses.extend(self.project.find_local_references(reference.file_path, reference.local_name))
            else:
                uses.append(reference)
        return uses

    def _relative(self, path: str) -> str:
        return os.path.relpath(path, self.project.root).replace(os.sep, '/')

    def _add_symbol(self, declaration: Declaration) -> str:
        node = _symbol_id(declaration)
        if node not in self.graph:
            self.graph.add_node(node, label=f"{declaration.name} ({self._relative(declaration.file_path)})")
        return node

    def _record_test(self, symbol: Declaration, test: TestDeclaration, origin: str):
        node = _test_id(test.file_path, test.test_name)
        if node not in self.graph:
            self.graph.add_node(node, label=f"{test.test_name} ({self._relative(test.file_path)})")
        self.graph.add_edge(self._add_symbol(symbol), node)
        origins = self._origins.setdefault(node, [])
        if origin not in origins:
            origins.append(origin)

    def dependency_chain(self, file_path: str, test_name: str) -> List[str]:
        """Shortest chain of labels from a changed symbol to a test; empty when unknown."""
        target = _test_id(file_path, test_name)
        best: Optional[List[str]] = None
        for origin in self._origins.get(target, []):
            try:
                path = nx.shortest_path(self.graph, origin, target)
            except nx.NetworkXNoPath:
                continue
            if best is None or len(path) < len(best):
                best = path
        if best is None:
            return []
        return [self.graph.nodes[node]['label'] for node in best]
