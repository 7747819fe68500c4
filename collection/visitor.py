"""
AST traversal and test/fixture classification logic.

This module walks a parsed Python module and classifies its definitions:
test functions, methods of test classes, and fixtures registered through a
fixture decorator. Classification is purely syntactic; nothing is imported
or executed.

Every visit function returns an ordered list of items (tests, fixtures and
diagnostics) which ``fold_items`` turns into one ``TestFileContents``.
Unknown constructs and malformed definitions become diagnostics instead of
aborting the file.
"""

import ast
import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from tree_sitter import Node

from collection.config import (
    ALIASED_IMPORT,
    ATTRIBUTE_NODE,
    CALL_NODE,
    CLASS_DEFINITION,
    COMMENT_NODE,
    DECORATED_DEFINITION,
    DECORATOR_NODE,
    DOTTED_NAME,
    FUNCTION_DEFINITION,
    IDENTIFIER_NODE,
    IMPORT_FROM_STATEMENT,
    IMPORT_STATEMENT,
    INTERPOLATION_NODE,
    KEYWORD_ARGUMENT,
    MODULE_NODE,
    NAMED_PARAMETER_TYPES,
    NOOP_NODE_TYPES,
    SKIPPED_PARAMETER_TYPES,
    STRING_NODE,
    TYPED_PARAMETER,
    WILDCARD_IMPORT,
    CollectionConfig,
)
from collection.errors import StructuralError
from collection.models import (
    Diagnostic,
    DiagnosticKind,
    Fixture,
    FixtureScope,
    TestDefinition,
    TestFileContents,
)
from collection.parser import ParsedSource

logger = logging.getLogger(__name__)

VisitItem = Union[TestDefinition, Fixture, Diagnostic]

# Local name -> fully-qualified dotted path it was imported as
ImportAliases = Mapping[str, Tuple[str, ...]]


@dataclass(frozen=True)
class VisitContext:
    """Immutable state threaded through the recursive visit.

    Attributes:
        source: The file being visited.
        config: Naming conventions.
        imports: Import aliases of the module, used to resolve decorators.
        wildcard_modules: Modules star-imported by the module.
        class_name: Enclosing test class, or None outside of one.
    """

    source: ParsedSource
    config: CollectionConfig
    imports: ImportAliases
    wildcard_modules: Tuple[Tuple[str, ...], ...] = ()
    class_name: Optional[str] = None

    @property
    def path(self) -> str:
        return self.source.path

    def in_class(self, class_name: str) -> "VisitContext":
        return replace(self, class_name=class_name)


@dataclass(frozen=True)
class FixtureMarker:
    """Keyword arguments read from a matched fixture decorator."""

    scope: Optional[str] = None
    name: Optional[str] = None


def node_line(node: Node) -> int:
    return node.start_point.row + 1


def read_identifier(node: Optional[Node], source: ParsedSource) -> str:
    """Read the text of an identifier node.

    Args:
        node: Node expected to be an ``identifier``.
        source: The source the node belongs to.

    Returns:
        The identifier text.

    Raises:
        StructuralError: If the node is missing or is not an identifier.
    """
    if node is None:
        raise StructuralError("Expected an identifier, found nothing", path=source.path)
    if node.type != IDENTIFIER_NODE:
        raise StructuralError(
            f"Expected an identifier at line {node_line(node)}, found {node.type}",
            path=source.path,
        )
    return source.text(node)


def _required_field(node: Node, field_name: str, source: ParsedSource) -> Node:
    child = node.child_by_field_name(field_name)
    if child is None:
        raise StructuralError(
            f"{node.type} at line {node_line(node)} has no '{field_name}'",
            path=source.path,
        )
    return child


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def _dotted_path(node: Node, source: ParsedSource) -> Tuple[str, ...]:
    if node.type != DOTTED_NAME:
        raise StructuralError(
            f"Expected a dotted name at line {node_line(node)}, found {node.type}",
            path=source.path,
        )
    return tuple(
        read_identifier(part, source)
        for part in node.named_children
        if part.type != COMMENT_NODE
    )


def _register_import(
    aliases: Dict[str, Tuple[str, ...]],
    node: Node,
    module_path: Tuple[str, ...],
    source: ParsedSource,
) -> None:
    if node.type == ALIASED_IMPORT:
        target = _dotted_path(_required_field(node, "name", source), source)
        alias = read_identifier(_required_field(node, "alias", source), source)
        aliases[alias] = module_path + target
    elif node.type == DOTTED_NAME:
        target = _dotted_path(node, source)
        if module_path:
            # from pkg import name
            aliases[target[-1]] = module_path + target
        else:
            # import pkg.sub binds only "pkg"
            aliases[target[0]] = target[:1]


def collect_import_aliases(
    root: Node,
    source: ParsedSource,
) -> Tuple[ImportAliases, List[Diagnostic]]:
    """Build the alias table from the module's top-level imports.

    ``import pytest as pt`` maps ``pt`` to ``("pytest",)`` and
    ``from pytest import fixture as fx`` maps ``fx`` to
    ``("pytest", "fixture")``. Relative imports are ignored and wildcard
    imports are left to ``collect_wildcard_modules``.

    Returns:
        The read-only alias table and diagnostics for malformed imports.
    """
    aliases: Dict[str, Tuple[str, ...]] = {}
    diagnostics: List[Diagnostic] = []

    for child in root.named_children:
        try:
            if child.type == IMPORT_STATEMENT:
                for name_node in child.children_by_field_name("name"):
                    _register_import(aliases, name_node, (), source)
            elif child.type == IMPORT_FROM_STATEMENT:
                module_node = child.child_by_field_name("module_name")
                if module_node is None or module_node.type != DOTTED_NAME:
                    continue
                module_path = _dotted_path(module_node, source)
                for name_node in child.children_by_field_name("name"):
                    _register_import(aliases, name_node, module_path, source)
        except StructuralError as e:
            diagnostics.append(
                Diagnostic(DiagnosticKind.STRUCTURAL_ERROR, str(e), node_line(child))
            )

    return MappingProxyType(aliases), diagnostics


def collect_wildcard_modules(root: Node, source: ParsedSource) -> Tuple[Tuple[str, ...], ...]:
    """Return the modules star-imported at top level, in source order.

    ``from pytest import *`` yields ``(("pytest",),)``. Malformed module
    names are skipped here; ``collect_import_aliases`` reports them.
    """
    modules = []
    for child in root.named_children:
        if child.type != IMPORT_FROM_STATEMENT:
            continue
        if not any(part.type == WILDCARD_IMPORT for part in child.named_children):
            continue
        module_node = child.child_by_field_name("module_name")
        if module_node is None or module_node.type != DOTTED_NAME:
            continue
        try:
            modules.append(_dotted_path(module_node, source))
        except StructuralError:
            continue
    return tuple(modules)


# ---------------------------------------------------------------------------
# Decorators
# ---------------------------------------------------------------------------


def attribute_chain(node: Node, source: ParsedSource) -> Optional[Tuple[str, ...]]:
    """Flatten ``a.b.c`` into ``("a", "b", "c")``.

    Returns None for anything that is not a pure identifier/attribute chain
    (subscripts, calls in the middle, literals).
    """
    if node.type == IDENTIFIER_NODE:
        return (source.text(node),)
    if node.type != ATTRIBUTE_NODE:
        return None
    head_node = node.child_by_field_name("object")
    if head_node is None:
        return None
    head = attribute_chain(head_node, source)
    if head is None:
        return None
    return head + (read_identifier(node.child_by_field_name("attribute"), source),)


def resolve_chain(chain: Tuple[str, ...], imports: ImportAliases) -> Tuple[str, ...]:
    """Replace the head of a chain with the path it was imported as."""
    return imports.get(chain[0], chain[:1]) + chain[1:]


def is_fixture_marker(chain: Tuple[str, ...], ctx: VisitContext) -> bool:
    """Check a decorator's attribute chain against the configured markers.

    Explicitly imported names win; an unbound head is looked up in the
    star-imported modules.
    """
    markers = ctx.config.fixture_markers
    if resolve_chain(chain, ctx.imports) in markers:
        return True
    if chain[0] in ctx.imports:
        return False
    return any(module + chain in markers for module in ctx.wildcard_modules)


def _string_literal(node: Node, source: ParsedSource) -> Optional[str]:
    """Return the decoded value of a plain str literal, or None.

    Interpolated, byte and otherwise non-constant strings give None.
    """
    if node.type != STRING_NODE:
        return None
    if any(child.type == INTERPOLATION_NODE for child in node.children):
        return None
    try:
        # Evaluates literals only; escapes and prefixes decode as Python would
        value = ast.literal_eval(source.text(node))
    except (ValueError, SyntaxError):
        return None
    return value if isinstance(value, str) else None


def _read_marker_arguments(arguments: Optional[Node], source: ParsedSource) -> FixtureMarker:
    scope = None
    name = None
    if arguments is None:
        return FixtureMarker()
    for argument in arguments.named_children:
        if argument.type != KEYWORD_ARGUMENT:
            continue
        keyword = read_identifier(argument.child_by_field_name("name"), source)
        value_node = _required_field(argument, "value", source)
        if keyword == "scope":
            literal = _string_literal(value_node, source)
            scope = literal if literal is not None else source.text(value_node)
        elif keyword == "name":
            name = _string_literal(value_node, source)
    return FixtureMarker(scope=scope, name=name)


def match_fixture_marker(decorator: Node, ctx: VisitContext) -> Optional[FixtureMarker]:
    """Check whether a decorator registers a fixture.

    Matches ``@pytest.fixture``, ``@pytest.fixture(...)`` and any aliased
    spelling of them, comparing the resolved attribute chain against the
    configured marker paths.

    Returns:
        The marker's keyword arguments when it matches, otherwise None.
    """
    expression = next(
        (child for child in decorator.named_children if child.type != COMMENT_NODE),
        None,
    )
    if expression is None:
        raise StructuralError(
            f"Decorator at line {node_line(decorator)} has no expression",
            path=ctx.path,
        )

    arguments = None
    if expression.type == CALL_NODE:
        arguments = expression.child_by_field_name("arguments")
        expression = _required_field(expression, "function", ctx.source)

    chain = attribute_chain(expression, ctx.source)
    if chain is None:
        return None
    if not is_fixture_marker(chain, ctx):
        return None
    return _read_marker_arguments(arguments, ctx.source)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


def extract_fixture_names(parameters: Node, ctx: VisitContext) -> List[str]:
    """Read fixture dependencies from a parameter list, in declaration order.

    A leading instance parameter (``self``) is dropped. ``*args``,
    ``**kwargs`` and the bare ``*`` and ``/`` separators contribute nothing.
    """
    names = []
    position = 0
    for param in parameters.named_children:
        kind = param.type
        if kind in SKIPPED_PARAMETER_TYPES:
            if kind != COMMENT_NODE:
                position += 1
            continue
        if kind == IDENTIFIER_NODE:
            name_node = param
        elif kind == TYPED_PARAMETER:
            name_node = param.named_children[0] if param.named_children else None
            if name_node is not None and name_node.type in SKIPPED_PARAMETER_TYPES:
                position += 1
                continue
        elif kind in NAMED_PARAMETER_TYPES:
            name_node = _required_field(param, "name", ctx.source)
        else:
            raise StructuralError(
                f"Unexpected parameter {kind} at line {node_line(param)}",
                path=ctx.path,
            )

        name = read_identifier(name_node, ctx.source)
        if not (position == 0 and name == ctx.config.instance_parameter):
            names.append(name)
        position += 1
    return names


def visit_function_definition(node: Node, ctx: VisitContext) -> List[VisitItem]:
    name = read_identifier(_required_field(node, "name", ctx.source), ctx.source)
    if not name.startswith(ctx.config.test_function_prefix):
        logger.debug("Skipping non-test function %s at %s:%d", name, ctx.path, node_line(node))
        return []

    parameters = _required_field(node, "parameters", ctx.source)
    test = TestDefinition(
        path=ctx.path,
        class_name=ctx.class_name,
        name=name,
        fixture_names=tuple(extract_fixture_names(parameters, ctx)),
        line=node_line(node),
    )
    logger.debug("Collected test %s at %s:%d", name, ctx.path, test.line)
    return [test]


def visit_class_definition(node: Node, ctx: VisitContext) -> List[VisitItem]:
    name = read_identifier(_required_field(node, "name", ctx.source), ctx.source)
    if not name.startswith(ctx.config.test_class_prefix):
        logger.debug("Skipping non-test class %s at %s:%d", name, ctx.path, node_line(node))
        return []

    if ctx.class_name is not None:
        return [
            Diagnostic(
                DiagnosticKind.NESTED_CLASS,
                f"Nested class {name} inside {ctx.class_name} is not collected",
                node_line(node),
            )
        ]

    body = _required_field(node, "body", ctx.source)
    class_ctx = ctx.in_class(name)
    items: List[VisitItem] = []
    for child in body.named_children:
        items.extend(visit_node(child, class_ctx))
    return items


def _fixture_items(
    definition: Node,
    marker: FixtureMarker,
    ctx: VisitContext,
) -> List[VisitItem]:
    if definition.type != FUNCTION_DEFINITION:
        raise StructuralError(
            f"Fixture decorator applied to {definition.type} at line "
            f"{node_line(definition)}",
            path=ctx.path,
        )

    function_name = read_identifier(
        _required_field(definition, "name", ctx.source), ctx.source
    )
    name = marker.name or function_name
    line = node_line(definition)
    items: List[VisitItem] = [Fixture(name=name, scope=FixtureScope.FUNCTION, line=line)]

    if marker.scope is not None and FixtureScope.from_keyword(marker.scope) is None:
        items.append(
            Diagnostic(
                DiagnosticKind.UNSUPPORTED_FIXTURE_SCOPE,
                f"Fixture {name} declares scope {marker.scope!r}; "
                f"registered with {FixtureScope.FUNCTION.value} scope",
                line,
            )
        )
    logger.debug("Collected fixture %s at %s:%d", name, ctx.path, line)
    return items


def visit_decorated_definition(node: Node, ctx: VisitContext) -> List[VisitItem]:
    """Classify a decorated definition.

    A fixture decorator takes precedence over the name of the function: a
    ``@pytest.fixture`` named ``test_x`` is a fixture, never a test.
    """
    definition = _required_field(node, "definition", ctx.source)
    for decorator in node.named_children:
        if decorator.type != DECORATOR_NODE:
            continue
        marker = match_fixture_marker(decorator, ctx)
        if marker is not None:
            return _fixture_items(definition, marker, ctx)
    return visit_node(definition, ctx)


def visit_node(node: Node, ctx: VisitContext) -> List[VisitItem]:
    """Dispatch a statement node to its classification rule.

    Structural errors are confined to the node that raised them.
    """
    kind = node.type
    try:
        if kind == DECORATED_DEFINITION:
            return visit_decorated_definition(node, ctx)
        if kind == CLASS_DEFINITION:
            return visit_class_definition(node, ctx)
        if kind == FUNCTION_DEFINITION:
            return visit_function_definition(node, ctx)
    except StructuralError as e:
        logger.warning("Structural error in %s: %s", ctx.path, e)
        return [Diagnostic(DiagnosticKind.STRUCTURAL_ERROR, str(e), node_line(node))]

    if kind in NOOP_NODE_TYPES:
        return []

    logger.debug("No rule for %s at %s:%d", kind, ctx.path, node_line(node))
    return [
        Diagnostic(
            DiagnosticKind.UNRECOGNIZED_CONSTRUCT,
            f"No classification rule for {kind}",
            node_line(node),
        )
    ]


def fold_items(path: str, items: Sequence[VisitItem]) -> TestFileContents:
    """Sort visit items into one file's contents, preserving source order.

    Repeated fixture names are kept and reported as diagnostics.
    """
    tests = []
    fixtures = []
    diagnostics = []
    seen_fixtures = set()

    for item in items:
        if isinstance(item, TestDefinition):
            tests.append(item)
        elif isinstance(item, Fixture):
            if item.name in seen_fixtures:
                diagnostics.append(
                    Diagnostic(
                        DiagnosticKind.DUPLICATE_FIXTURE,
                        f"Fixture {item.name} is registered more than once",
                        item.line,
                    )
                )
            seen_fixtures.add(item.name)
            fixtures.append(item)
        else:
            diagnostics.append(item)

    return TestFileContents(
        path=path,
        tests=tuple(tests),
        fixtures=tuple(fixtures),
        diagnostics=tuple(diagnostics),
    )


def visit_source(
    source: ParsedSource,
    config: Optional[CollectionConfig] = None,
) -> TestFileContents:
    """Collect all tests and fixtures from a parsed module.

    This is the main entry point for single-file classification.

    Args:
        source: The parsed file.
        config: Naming conventions; defaults to pytest's.

    Returns:
        The file's tests, fixtures and diagnostics.

    Raises:
        StructuralError: If the tree root is not a module.
    """
    config = config or CollectionConfig()
    root = source.root_node
    if root.type != MODULE_NODE:
        raise StructuralError(
            f"Expected a {MODULE_NODE} root, found {root.type}", path=source.path
        )

    imports, items = collect_import_aliases(root, source)
    ctx = VisitContext(
        source=source,
        config=config,
        imports=imports,
        wildcard_modules=collect_wildcard_modules(root, source),
    )
    visit_items: List[VisitItem] = list(items)
    for child in root.named_children:
        visit_items.extend(visit_node(child, ctx))

    contents = fold_items(source.path, visit_items)
    logger.debug(
        "Visited %s: %d tests, %d fixtures, %d diagnostics",
        source.path,
        len(contents.tests),
        len(contents.fixtures),
        len(contents.diagnostics),
    )
    return contents
