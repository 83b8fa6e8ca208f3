"""
Type reflection for field declarations.

A reflector maps (owner class, attribute name) to a DeclaredType, or None
when the attribute carries no type information. The compiler only relies on
that contract; AnnotationReflector is the default and reads class annotations.

String annotations (``from __future__ import annotations`` or quoted names)
are evaluated with typing.get_type_hints against the owner's module. When a
name cannot be resolved yet, for example an entity declared later or inside
a function, the annotation is read syntactically instead and the bare names
are kept. The resolver matches those names against registered entities.
"""

from __future__ import annotations

import ast
import inspect
import logging
import sys
import types
import typing
from collections.abc import Collection
from typing import Any, Callable, Optional

from .types import DeclaredType

logger = logging.getLogger(__name__)

ARRAY_TYPES = (list, tuple, set, frozenset)

# Generic names read as arrays when an annotation stays unresolved
ARRAY_NAMES = frozenset(
    {
        "list",
        "List",
        "tuple",
        "Tuple",
        "set",
        "Set",
        "frozenset",
        "FrozenSet",
        "Sequence",
        "MutableSequence",
        "Collection",
        "AbstractSet",
    }
)

TypeReflector = Callable[[type, str], Optional[DeclaredType]]


class AnnotationReflector:
    """Reflects field types from class annotations.

    Example:
        >>> reflector = AnnotationReflector()
        >>> reflector(Book, "tags")
        DeclaredType(type=<class 'list'>, is_array=True, item_type=<class 'str'>)
    """

    def __call__(self, owner: type, name: str) -> Optional[DeclaredType]:
        annotations = _class_annotations(owner)
        if name not in annotations:
            return None

        annotation = annotations[name]
        forward = getattr(annotation, "__forward_arg__", None)
        if forward is not None:
            annotation = forward
        if isinstance(annotation, str):
            try:
                annotation = self._evaluate(annotation, owner, name)
            except (NameError, TypeError, SyntaxError) as e:
                logger.debug(
                    f"Reading annotation '{annotation}' on {owner.__name__}.{name} "
                    f"by name: {e}"
                )
                return parse_declared(annotation)
        return declared_type(annotation)

    def _evaluate(self, annotation: str, owner: type, name: str) -> Any:
        """Evaluate one string annotation in the owner's namespace.

        Raises:
            NameError: A name is not defined in the owner's module
            TypeError: The expression cannot be built from the names found
            SyntaxError: The string is not an expression
        """
        module = sys.modules.get(owner.__module__)
        globalns = dict(vars(module)) if module is not None else {}
        localns = {owner.__name__: owner}
        holder = types.SimpleNamespace(__annotations__={name: annotation})
        return typing.get_type_hints(holder, globalns, localns)[name]


def _class_annotations(owner: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(owner)
    except NameError:
        # Python 3.14+ evaluates annotations lazily
        import annotationlib

        return inspect.get_annotations(owner, format=annotationlib.Format.FORWARDREF)


def declared_type(annotation: Any) -> DeclaredType:
    """Build a DeclaredType from an evaluated annotation."""
    annotation = _strip_optional(annotation)

    if annotation in ARRAY_TYPES:
        return DeclaredType(type=annotation, is_array=True)

    origin = typing.get_origin(annotation)
    if origin is not None and isinstance(origin, type) and issubclass(origin, Collection):
        if origin in ARRAY_TYPES or not issubclass(origin, (dict, str, bytes)):
            args = [arg for arg in typing.get_args(annotation) if arg is not Ellipsis]
            item = _strip_optional(args[0]) if args else None
            return DeclaredType(type=origin, is_array=True, item_type=item)
        return DeclaredType(type=origin)

    return DeclaredType(type=annotation)


def parse_declared(source: str) -> DeclaredType:
    """Build a DeclaredType from annotation source without evaluating it.

    Names are kept as strings: ``"list[Author] | None"`` gives an array
    whose element type is ``"Author"``.
    """
    try:
        node = ast.parse(source.strip(), mode="eval").body
    except SyntaxError:
        return DeclaredType(type=source)

    node = _strip_optional_node(node)
    if isinstance(node, ast.Subscript) and _short_name(node.value) in ARRAY_NAMES:
        args = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
        args = [arg for arg in args if not _is_constant(arg, Ellipsis)]
        item = _node_name(_strip_optional_node(args[0])) if args else None
        return DeclaredType(type=list, is_array=True, item_type=item)
    if _short_name(node) in ARRAY_NAMES:
        return DeclaredType(type=list, is_array=True)
    if isinstance(node, ast.Subscript):
        node = node.value
    return DeclaredType(type=_node_name(node))


def _strip_optional(annotation: Any) -> Any:
    """Unwrap ``Optional[X]`` and ``X | None`` to ``X``."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _strip_optional_node(node: ast.expr) -> ast.expr:
    """Syntactic counterpart of _strip_optional."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return _strip_optional_node(ast.parse(node.value.strip(), mode="eval").body)
        except SyntaxError:
            return node

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        members = [m for m in _union_members(node) if not _is_none(m)]
        if len(members) == 1:
            return _strip_optional_node(members[0])
        return node

    if isinstance(node, ast.Subscript):
        name = _short_name(node.value)
        if name == "Optional":
            return _strip_optional_node(node.slice)
        if name == "Union" and isinstance(node.slice, ast.Tuple):
            members = [m for m in node.slice.elts if not _is_none(m)]
            if len(members) == 1:
                return _strip_optional_node(members[0])
    return node


def _union_members(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    return [node]


def _is_none(node: ast.expr) -> bool:
    return _is_constant(node, None) or (isinstance(node, ast.Name) and node.id == "NoneType")


def _is_constant(node: ast.expr, value: Any) -> bool:
    return isinstance(node, ast.Constant) and node.value is value


def _node_name(node: ast.expr) -> str:
    """Dotted name of a type expression; generics give their origin."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_node_name(node.value)}.{node.attr}"
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value.strip()
    if isinstance(node, ast.Subscript):
        return _node_name(node.value)
    return ast.unparse(node)


def _short_name(node: ast.expr) -> str:
    return _node_name(node).rsplit(".", 1)[-1]
