"""Source-tree service: test declarations, enclosing declarations and references.

References are resolved by name. Imports and re-exports are followed to the
file that declares a symbol, lexical scopes are not, so a local that shadows an
imported name still counts as a use of it.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Set, Tuple

from ..core.config import AnalysisConfiguration
from ..core.errors import ReferenceResolutionError, SourceLoadError
from .import_resolver import ImportResolver
from .parse_cache import ParseCache, ParsedFile, cache_key
from .tree_sitter_parser import TreeSitterParser

logger = logging.getLogger(__name__)

# Named declarations that can enclose a changed line
DECLARATION_KINDS = {
    'function_declaration': 'function',
    'generator_function_declaration': 'function',
    'class_declaration': 'class',
    'abstract_class_declaration': 'class',
    'method_definition': 'method',
    'public_field_definition': 'field',
    'field_definition': 'field',
    'variable_declarator': 'variable',
}
MEMBER_KINDS = frozenset({'method', 'field'})
CLASS_NODE_TYPES = frozenset({'class_declaration', 'abstract_class_declaration'})
NAME_NODE_TYPES = frozenset({
    'identifier', 'type_identifier', 'property_identifier', 'private_property_identifier',
})
IDENTIFIER_TYPES = frozenset({'identifier', 'type_identifier', 'shorthand_property_identifier'})
PARAMETER_TYPES = frozenset({'required_parameter', 'optional_parameter', 'formal_parameters'})

# test.<modifier> calls that do not declare a test or suite
NON_DECLARING_MODIFIERS = frozenset({
    'step', 'extend', 'use', 'info', 'expect',
    'beforeAll', 'beforeEach', 'afterAll', 'afterEach',
})

# Escape sequences of a quoted string literal
ESCAPE_PATTERN = re.compile(r'\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])')
SIMPLE_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', 'v': '\v', '0': '\0'}
LINE_CONTINUATIONS = frozenset({'\n', '\r', '\r\n', '\u2028', '\u2029'})


@dataclass(frozen=True)
class TestDeclaration:
    """A test or suite declaration; lines are 1-based and inclusive."""
    __test__ = False

    test_name: str
    start_line: int
    end_line: int
    file_path: str


@dataclass(frozen=True)
class Declaration:
    """A named function, class, method, field or variable."""
    name: str
    kind: str
    file_path: str
    start_line: int
    end_line: int
    start_byte: int
    node: Any = field(default=None, compare=False, hash=False, repr=False)

    @property
    def key(self) -> Tuple[str, int]:
        return self.file_path, self.start_byte


@dataclass(frozen=True)
class Reference:
    """A place where a declaration is used or imported."""
    file_path: str
    line: int
    is_import: bool = False
    local_name: Optional[str] = None
    node: Any = field(default=None, compare=False, hash=False, repr=False)


def _text(node) -> str:
    return node.text.decode('utf8')


def _start_line(node) -> int:
    return node.start_point[0] + 1


def _end_line(node) -> int:
    return node.end_point[0] + 1


def _unescape(match) -> str:
    sequence = match.group(1)
    if len(sequence) > 1 and sequence[0] in 'ux':
        return chr(int(sequence.strip('ux{}'), 16))
    if sequence in LINE_CONTINUATIONS:
        return ''
    return SIMPLE_ESCAPES.get(sequence, sequence)


def _string_value(node) -> str:
    """Contents of a string or template literal without its delimiters.

    Escapes are decoded for quoted strings; template literals stay raw.
    """
    value = _text(node)[1:-1]
    if node.type == 'string':
        return ESCAPE_PATTERN.sub(_unescape, value)
    return value


def _walk(node) -> Iterator:
    """Pre-order traversal."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _ancestors(node) -> Iterator:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def _same_node(a, b) -> bool:
    return a is not None and b is not None and (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def _is_binding(node) -> bool:
    """Whether an identifier names a declaration or parameter rather than using one."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type in PARAMETER_TYPES:
        return True
    if parent.type == 'arrow_function':
        return _same_node(parent.child_by_field_name('parameter'), node)
    if parent.type in DECLARATION_KINDS or parent.type == 'function_signature':
        return _same_node(parent.child_by_field_name('name'), node)
    return False


def _has_default(export_statement) -> bool:
    return any(child.type == 'default' for child in export_statement.children)


class SourceProject:
    """Parsed view of a repository, loaded lazily file by file."""

    def __init__(self, root: str, configuration: Optional[AnalysisConfiguration] = None,
                 cache: Optional[ParseCache] = None, parser: Optional[TreeSitterParser] = None):
        self.root = os.path.realpath(root)
        self.config = configuration or AnalysisConfiguration()
        self.cache = cache if cache is not None else ParseCache()
        self.parser = parser or TreeSitterParser()
        self.resolver = ImportResolver(self.root, self.config.source_extensions)
        self._project_files: Optional[List[str]] = None

    # ------------------------------------------------------------------
    # Loading

    def load_file(self, path: str) -> Optional[ParsedFile]:
        """Parse a file into the cache; missing or unreadable files are skipped with a warning."""
        key = cache_key(path)
        parsed = self.cache.get(key)
        if parsed is not None:
            return parsed

        try:
            parsed = self._parse(key)
        except SourceLoadError as e:
            logger.warning("Could not load %s: %s", path, e)
            return None

        if parsed.root.has_error:
            logger.debug("Syntax errors in %s, using partial tree", path)
        self.cache.put(parsed)
        return parsed

    def _parse(self, path: str) -> ParsedFile:
        language = self.parser.language_for(path)
        if language is None:
            raise SourceLoadError("unsupported file type")
        try:
            source = self.cache.source(path)
        except OSError as e:
            raise SourceLoadError(e.strerror or str(e)) from e
        try:
            tree = self.parser.parse(source, language)
        except ValueError as e:
            raise SourceLoadError(str(e)) from e
        return ParsedFile(path=path, language=language, source=source, tree=tree)

    def project_files(self) -> List[str]:
        """All source files under the root, outside ignored directories."""
        if self._project_files is None:
            ignored = set(self.config.ignored_directories)
            files = []
            for dirpath, dirnames, filenames in os.walk(self.root):
                dirnames[:] = sorted(d for d in dirnames if d not in ignored)
                for filename in sorted(filenames):
                    if self.config.is_source_file(filename) and not filename.endswith('.d.ts'):
                        files.append(os.path.realpath(os.path.join(dirpath, filename)))
            self._project_files = files
        return self._project_files

    def _files_mentioning_module(self, module_path: str) -> Iterator[ParsedFile]:
        """Parsed project files whose text could contain an import of ``module_path``."""
        stem = os.path.splitext(os.path.basename(module_path))[0]
        if stem == 'index':
            stem = os.path.basename(os.path.dirname(module_path))
        needle = stem.encode('utf8')

        for path in self.project_files():
            if path == module_path:
                continue
            try:
                source = self.cache.source(path)
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                continue
            if needle in source:
                parsed = self.load_file(path)
                if parsed is not None:
                    yield parsed

    # ------------------------------------------------------------------
    # Tests

    def get_test_declarations(self, path: str) -> List[TestDeclaration]:
        """Test and suite declarations in document order."""
        parsed = self.load_file(path)
        if parsed is None:
            return []

        tests = []
        for node in _walk(parsed.root):
            if node.type == 'call_expression':
                test = self._test_from_call(node, parsed.path)
                if test is not None:
                    tests.append(test)
        return tests

    def find_enclosing_test(self, reference: Reference) -> Optional[TestDeclaration]:
        """Innermost test or suite whose call contains the reference."""
        for ancestor in _ancestors(reference.node):
            if ancestor.type == 'call_expression':
                test = self._test_from_call(ancestor, reference.file_path)
                if test is not None:
                    return test
        return None

    def _test_from_call(self, node, path: str) -> Optional[TestDeclaration]:
        if not self._is_test_call(node):
            return None

        arguments = node.child_by_field_name('arguments')
        if arguments is None or arguments.type != 'arguments':
            return None
        values = [child for child in arguments.named_children if child.type != 'comment']
        if not values or values[0].type not in ('string', 'template_string'):
            return None

        return TestDeclaration(
            test_name=_string_value(values[0]),
            start_line=_start_line(node),
            end_line=_end_line(node),
            file_path=path
        )

    def _is_test_call(self, node) -> bool:
        """``test(...)`` or a modifier chain rooted at a test keyword, e.g. ``test.describe.parallel(...)``."""
        callee = node.child_by_field_name('function')
        modifiers = []
        while callee is not None and callee.type == 'member_expression':
            prop = callee.child_by_field_name('property')
            if prop is not None:
                modifiers.append(_text(prop))
            callee = callee.child_by_field_name('object')

        if callee is None or callee.type != 'identifier':
            return False
        if _text(callee) not in self.config.test_keywords:
            return False
        return not any(modifier in NON_DECLARING_MODIFIERS for modifier in modifiers)

    # ------------------------------------------------------------------
    # Declarations

    def find_enclosing_named_declaration(self, path: str, line: int) -> Optional[Declaration]:
        """Smallest named declaration whose range contains ``line``."""
        parsed = self.load_file(path)
        if parsed is None:
            return None

        row = line - 1
        found = None
        found_size = None
        stack = [parsed.root]
        while stack:
            node = stack.pop()
            for child in node.children:
                if not child.start_point[0] <= row <= child.end_point[0]:
                    continue
                declaration = self._declaration_from_node(child, parsed.path)
                if declaration is not None:
                    size = child.end_byte - child.start_byte
                    if found_size is None or size < found_size:
                        found, found_size = declaration, size
                stack.append(child)
        return found

    def find_changed_symbol(self, path: str, line: int) -> Optional[Declaration]:
        """Enclosing declaration at ``line`` widened to the nearest externally visible one."""
        declaration = self.find_enclosing_named_declaration(path, line)
        while declaration is not None and not self.is_externally_visible(declaration):
            declaration = self._next_enclosing_declaration(declaration.node, declaration.file_path)
        return declaration

    def find_enclosing_declaration(self, reference: Reference,
                                   exported_only: bool = True) -> Optional[Declaration]:
        """Declaration containing a reference, optionally the nearest visible one."""
        for ancestor in _ancestors(reference.node):
            declaration = self._declaration_from_node(ancestor, reference.file_path)
            if declaration is None:
                continue
            if not exported_only or self.is_externally_visible(declaration):
                return declaration
        return None

    def _next_enclosing_declaration(self, node, path: str) -> Optional[Declaration]:
        for ancestor in _ancestors(node):
            declaration = self._declaration_from_node(ancestor, path)
            if declaration is not None:
                return declaration
        return None

    def _declaration_from_node(self, node, path: str) -> Optional[Declaration]:
        kind = DECLARATION_KINDS.get(node.type)
        if kind is None:
            return None

        name_node = node.child_by_field_name('name')
        if name_node is None:
            # JavaScript class fields
            name_node = node.child_by_field_name('property')
        if name_node is None or name_node.type not in NAME_NODE_TYPES:
            return None

        return Declaration(
            name=_text(name_node),
            kind=kind,
            file_path=path,
            start_line=_start_line(node),
            end_line=_end_line(node),
            start_byte=node.start_byte,
            node=node
        )

    def _enclosing_class(self, node, path: str) -> Optional[Declaration]:
        for ancestor in _ancestors(node):
            if ancestor.type in CLASS_NODE_TYPES:
                return self._declaration_from_node(ancestor, path)
        return None

    # ------------------------------------------------------------------
    # Visibility

    def is_externally_visible(self, declaration: Declaration) -> bool:
        """Exported top-level declarations and non-private members of exported classes."""
        if declaration.kind in MEMBER_KINDS:
            if self._is_private_member(declaration.node):
                return False
            owner = self._enclosing_class(declaration.node, declaration.file_path)
            return owner is not None and self.is_externally_visible(owner)
        return bool(self._export_names(declaration))

    def _is_private_member(self, node) -> bool:
        for child in node.children:
            if child.type == 'accessibility_modifier' and _text(child) == 'private':
                return True
            if child.type == 'private_property_identifier':
                return True
        return False

    def _export_names(self, declaration: Declaration) -> Set[str]:
        """Names under which a top-level declaration is exported from its module."""
        statement = declaration.node
        if declaration.kind == 'variable':
            # variable_declarator -> lexical_declaration / variable_declaration
            statement = statement.parent
        if statement is None or statement.parent is None:
            return set()

        container = statement.parent
        if container.type == 'export_statement':
            return {'default' if _has_default(container) else declaration.name}
        if container.type != 'program':
            return set()

        names = set()
        for export in container.named_children:
            if export.type != 'export_statement' or export.child_by_field_name('source') is not None:
                continue
            for child in export.named_children:
                if child.type == 'export_clause':
                    for name, alias in self._export_specifiers(child):
                        if name == declaration.name:
                            names.add(alias)
            if _has_default(export):
                value = export.child_by_field_name('value')
                if value is not None and value.type == 'identifier' and _text(value) == declaration.name:
                    names.add('default')
        return names

    def _export_specifiers(self, export_clause) -> Iterator[Tuple[str, str]]:
        """(local name, exported name) pairs of an ``export { ... }`` clause."""
        for spec in export_clause.named_children:
            if spec.type != 'export_specifier':
                continue
            name = spec.child_by_field_name('name')
            if name is None:
                continue
            alias = spec.child_by_field_name('alias')
            yield _text(name), _text(alias if alias is not None else name)

    # ------------------------------------------------------------------
    # References

    def find_references(self, declaration: Declaration) -> List[Reference]:
        """Every use of a declaration across the project, import bindings included."""
        try:
            if declaration.kind in MEMBER_KINDS:
                return self._member_references(declaration)
            return self._symbol_references(declaration)
        except (OSError, UnicodeDecodeError, ValueError, RecursionError) as e:
            raise ReferenceResolutionError(
                f"Could not resolve references to {declaration.name} in {declaration.file_path}: {e}"
            ) from e

    def find_local_references(self, path: str, local_name: str) -> List[Reference]:
        """Uses of a name inside one file, import statements excluded."""
        parsed = self.load_file(path)
        if parsed is None:
            return []
        return [
            Reference(file_path=parsed.path, line=_start_line(node), node=node)
            for node in self._identifier_uses(parsed, local_name)
        ]

    def _symbol_references(self, declaration: Declaration) -> List[Reference]:
        references = self.find_local_references(declaration.file_path, declaration.name)

        for module_path, exported_name in sorted(self._export_aliases(declaration)):
            references.extend(self._importer_references(module_path, exported_name))
        return references

    def _member_references(self, declaration: Declaration) -> List[Reference]:
        """``obj.member`` accesses in the declaring file and in files that see the class."""
        candidates = [declaration.file_path]
        owner = self._enclosing_class(declaration.node, declaration.file_path)
        if owner is not None:
            binders = []
            for module_path, exported_name in sorted(self._export_aliases(owner)):
                for reference in self._importer_references(module_path, exported_name):
                    if reference.file_path not in binders:
                        binders.append(reference.file_path)
            candidates.extend(binders)

            # Fixture modules hand instances to tests that never import the class
            for binder in binders:
                if self.config.is_test_file(binder):
                    continue
                for parsed in self._files_mentioning_module(binder):
                    if parsed.path not in candidates and self._imports_module(parsed, binder):
                        candidates.append(parsed.path)

        references = []
        for path in candidates:
            parsed = self.load_file(path)
            if parsed is None:
                continue
            for node in self._member_accesses(parsed, declaration.name):
                references.append(Reference(file_path=parsed.path, line=_start_line(node), node=node))
        return references

    def _export_aliases(self, declaration: Declaration) -> Set[Tuple[str, str]]:
        """(module, exported name) pairs through which a declaration can be imported.

        Starts from the declaring module and follows ``export ... from`` barrels.
        """
        aliases = {(declaration.file_path, name) for name in self._export_names(declaration)}
        frontier = list(aliases)
        while frontier:
            module_path, exported_name = frontier.pop()
            for parsed in self._files_mentioning_module(module_path):
                for export in parsed.root.named_children:
                    if export.type != 'export_statement':
                        continue
                    source = export.child_by_field_name('source')
                    if source is None:
                        continue
                    if self.resolver.resolve(parsed.path, _string_value(source)) != module_path:
                        continue
                    for alias in self._reexported_names(export, exported_name):
                        entry = (parsed.path, alias)
                        if entry not in aliases:
                            aliases.add(entry)
                            frontier.append(entry)
        return aliases

    def _reexported_names(self, export, exported_name: str) -> List[str]:
        clause = None
        for child in export.named_children:
            if child.type == 'export_clause':
                clause = child
            elif child.type == 'namespace_export':
                # export * as ns from '...' is not followed
                return []
        if clause is None:
            # export * from '...' forwards everything except the default export
            return [] if exported_name == 'default' else [exported_name]
        return [alias for name, alias in self._export_specifiers(clause) if name == exported_name]

    def _import_statements(self, parsed: ParsedFile, module_path: str) -> Iterator:
        """Top-level import statements of ``parsed`` that load ``module_path``."""
        for statement in parsed.root.named_children:
            if statement.type != 'import_statement':
                continue
            source = statement.child_by_field_name('source')
            if source is None:
                continue
            if self.resolver.resolve(parsed.path, _string_value(source)) == module_path:
                yield statement

    def _imports_module(self, parsed: ParsedFile, module_path: str) -> bool:
        return any(True for _ in self._import_statements(parsed, module_path))

    def _importer_references(self, module_path: str, exported_name: str) -> List[Reference]:
        """Import bindings of ``exported_name`` from ``module_path`` and namespace member uses."""
        references = []
        for parsed in self._files_mentioning_module(module_path):
            for statement in self._import_statements(parsed, module_path):
                clause = next((c for c in statement.named_children if c.type == 'import_clause'), None)
                if clause is None:
                    continue
                for child in clause.named_children:
                    if child.type == 'identifier':
                        if exported_name == 'default':
                            references.append(self._import_reference(parsed, child, child))
                    elif child.type == 'named_imports':
                        for spec in child.named_children:
                            if spec.type != 'import_specifier':
                                continue
                            name = spec.child_by_field_name('name')
                            if name is None or _text(name) != exported_name:
                                continue
                            alias = spec.child_by_field_name('alias')
                            references.append(self._import_reference(parsed, spec, alias if alias is not None else name))
                    elif child.type == 'namespace_import':
                        namespace = next((c for c in child.named_children if c.type == 'identifier'), None)
                        if namespace is not None and exported_name != 'default':
                            for node in self._namespace_accesses(parsed, _text(namespace), exported_name):
                                references.append(Reference(file_path=parsed.path, line=_start_line(node), node=node))
        return references

    def _import_reference(self, parsed: ParsedFile, node, local) -> Reference:
        return Reference(
            file_path=parsed.path,
            line=_start_line(node),
            is_import=True,
            local_name=_text(local),
            node=local
        )

    def _identifier_uses(self, parsed: ParsedFile, name: str) -> List:
        needle = name.encode('utf8')
        if needle not in parsed.source:
            return []

        uses = []
        stack = [parsed.root]
        while stack:
            node = stack.pop()
            if node.type in ('import_statement', 'comment'):
                continue
            if node.type in IDENTIFIER_TYPES:
                if node.text == needle and not _is_binding(node):
                    uses.append(node)
                continue
            stack.extend(reversed(node.children))
        return uses

    def _member_accesses(self, parsed: ParsedFile, member: str) -> List:
        """Property nodes of ``<anything>.member`` expressions."""
        needle = member.encode('utf8')
        if needle not in parsed.source:
            return []
        nodes = []
        for node in _walk(parsed.root):
            if node.type == 'member_expression':
                prop = node.child_by_field_name('property')
                if prop is not None and prop.text == needle:
                    nodes.append(prop)
        return nodes

    def _namespace_accesses(self, parsed: ParsedFile, namespace: str, member: str) -> List:
        """Property nodes of ``namespace.member`` expressions."""
        nodes = []
        for prop in self._member_accesses(parsed, member):
            obj = prop.parent.child_by_field_name('object')
            if obj is not None and obj.type == 'identifier' and _text(obj) == namespace:
                nodes.append(prop)
        return nodes
