"""Structural extraction: walk a tree-sitter PHP tree into an ordered list of code constructs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tree_sitter import Node as TSNode
    from tree_sitter import Tree

logger = logging.getLogger(__name__)

CONSTRUCT_KINDS: frozenset[str] = frozenset(
    {
        "function_call",
        "method_call",
        "static_call",
        "instantiation",
        "instanceof",
        "const_access",
        "type_hint",
        "catch_type",
        "extends",
        "implements",
        "use_trait",
    }
)

# Scope node types whose class name is statically known.
_STATIC_SCOPE_TYPES: frozenset[str] = frozenset({"name", "qualified_name", "relative_scope"})
_NAME_TYPES: frozenset[str] = frozenset({"name", "qualified_name"})
_PARAMETER_TYPES: frozenset[str] = frozenset(
    {"simple_parameter", "variadic_parameter", "property_promotion_parameter"}
)


@dataclass(frozen=True)
class CodeConstruct:
    """One call or class usage found in a parsed file."""

    name: str  # "mysql_connect", "DateTime", "Foo::bar"
    kind: str  # one of CONSTRUCT_KINDS
    line: int  # 1-based
    file: str


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

# None means "tried and failed".
_LANGUAGE_CACHE: dict[str, Language | None] = {}


def get_php_language() -> Language | None:
    """Load the tree-sitter PHP grammar, or ``None`` if it is not installed."""
    if "php" in _LANGUAGE_CACHE:
        return _LANGUAGE_CACHE["php"]

    try:
        import tree_sitter_php as tsphp
    except ImportError:
        logger.warning("tree-sitter-php is not installed; structural detection disabled")
        _LANGUAGE_CACHE["php"] = None
        return None

    language = Language(tsphp.language_php())
    _LANGUAGE_CACHE["php"] = language
    return language


def clear_cache() -> None:
    """Clear the grammar cache (useful for testing)."""
    _LANGUAGE_CACHE.clear()


def parse_source(content: bytes) -> Tree | None:
    """Parse PHP source into a tree-sitter tree.

    Returns ``None`` when the grammar is unavailable or the content is blank.
    tree-sitter recovers from syntax errors, so a file with errors still
    yields a (partial) tree.
    """
    if not content.strip():
        return None
    language = get_php_language()
    if language is None:
        return None
    # Parser objects are not thread-safe: one per call.
    parser = Parser(language)
    tree = parser.parse(content)
    if tree.root_node.has_error:
        logger.debug("Syntax errors in parsed source; extraction continues on partial tree")
    return tree


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------


def _text(node: TSNode) -> str:
    return node.text.decode("utf-8", errors="replace") if node.text else ""


def _name(node: TSNode) -> str:
    """Name text without the fully-qualified leading backslash."""
    return _text(node).lstrip("\\")


def _line(node: TSNode) -> int:
    # tree-sitter uses 0-based rows; we want 1-based lines.
    return node.start_point.row + 1


def _class_names(node: TSNode) -> Iterator[str]:
    """Yield class names listed under a clause node (extends/implements/catch/type)."""
    if node.type in _NAME_TYPES:
        yield _name(node)
        return
    if node.type == "use_list":
        # Trait conflict resolution block: not a usage.
        return
    for child in node.named_children:
        yield from _class_names(child)


def _first_named(node: TSNode, types: frozenset[str]) -> TSNode | None:
    for child in node.named_children:
        if child.type in types:
            return child
    return None


# ---------------------------------------------------------------------------
# Per-node-type emitters
# ---------------------------------------------------------------------------


def _constructs_for(node: TSNode) -> Iterator[tuple[str, str]]:
    """Yield ``(name, kind)`` pairs for a single node, in source order."""
    kind = node.type

    if kind == "function_call_expression":
        fn = node.child_by_field_name("function")
        if fn is not None and fn.type in _NAME_TYPES:
            yield _name(fn), "function_call"

    elif kind in ("member_call_expression", "nullsafe_member_call_expression"):
        method = node.child_by_field_name("name")
        if method is not None and method.type == "name":
            yield _text(method), "method_call"

    elif kind == "scoped_call_expression":
        method = node.child_by_field_name("name")
        if method is not None and method.type == "name":
            scope = node.child_by_field_name("scope")
            if scope is not None and scope.type in _STATIC_SCOPE_TYPES:
                yield f"{_name(scope)}::{_text(method)}", "static_call"
            else:
                yield _text(method), "static_call"

    elif kind == "object_creation_expression":
        cls = _first_named(node, _NAME_TYPES)
        if cls is not None:
            yield _name(cls), "instantiation"

    elif kind == "binary_expression":
        operator = node.child_by_field_name("operator")
        if operator is not None and _text(operator).lower() == "instanceof":
            right = node.child_by_field_name("right")
            if right is not None and right.type in _NAME_TYPES:
                yield _name(right), "instanceof"

    elif kind == "class_constant_access_expression":
        scope = node.named_children[0] if node.named_children else None
        if scope is not None and scope.type in _NAME_TYPES:
            yield _name(scope), "const_access"

    elif kind in _PARAMETER_TYPES:
        type_node = node.child_by_field_name("type")
        if type_node is not None:
            for cls in _class_names(type_node):
                yield cls, "type_hint"

    elif kind == "catch_clause":
        type_node = node.child_by_field_name("type")
        if type_node is not None:
            for cls in _class_names(type_node):
                yield cls, "catch_type"

    elif kind in ("class_declaration", "enum_declaration"):
        for child in node.named_children:
            if child.type == "base_clause":
                for cls in _class_names(child):
                    yield cls, "extends"
            elif child.type == "class_interface_clause":
                for cls in _class_names(child):
                    yield cls, "implements"

    elif kind == "interface_declaration":
        for child in node.named_children:
            if child.type == "base_clause":
                for cls in _class_names(child):
                    yield cls, "extends"

    elif kind == "use_declaration":
        for cls in _class_names(node):
            yield cls, "use_trait"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract(tree: Tree | None, file: str = "") -> tuple[CodeConstruct, ...]:
    """Walk *tree* in pre-order and return every construct of interest.

    A ``None`` tree (parse failure or no grammar) yields an empty tuple.
    """
    if tree is None:
        return ()

    constructs: list[CodeConstruct] = []
    stack: list[TSNode] = [tree.root_node]
    while stack:
        node = stack.pop()
        line = _line(node)
        for name, kind in _constructs_for(node):
            if name:
                constructs.append(CodeConstruct(name=name, kind=kind, line=line, file=file))
        # Reverse so the leftmost child is visited first.
        stack.extend(reversed(node.children))

    return tuple(constructs)


def extract_constructs(content: bytes, file: str = "") -> tuple[CodeConstruct, ...]:
    """Parse *content* and extract its constructs in one step."""
    return extract(parse_source(content), file)
