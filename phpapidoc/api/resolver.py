"""Name and type resolution against a unit's namespace and import table."""

import re

from .models import (
    AliasTable,
    ClassReference,
    ReferenceType,
    ScalarType,
    SingleType,
    TypeRef,
    UnionType,
)
from .result import Result

SCALARS = frozenset(
    {
        "bool",
        "int",
        "integer",
        "float",
        "double",
        "string",
        "array",
        "object",
        "callable",
        "iterable",
        "resource",
        "null",
    }
)

# Keywords and doc-only types that never name a class.
PSEUDO_TYPES = frozenset(
    {
        "mixed",
        "void",
        "never",
        "true",
        "false",
        "boolean",
        "self",
        "static",
        "parent",
        "$this",
        "scalar",
        "numeric",
        "number",
        "list",
        "array-key",
        "class-string",
        "callable-string",
        "numeric-string",
        "non-empty-string",
        "non-empty-array",
        "non-empty-list",
        "positive-int",
        "negative-int",
        "non-negative-int",
    }
)

RELATIVE_PREFIX = "namespace\\"

_IDENTIFIER_RE = re.compile(
    r"^\\?[A-Za-z_\x80-\uffff][\w\x80-\uffff]*(?:\\[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)*$"
)
_LITERAL_RE = re.compile(r"^(?:-?\d+(?:\.\d+)?|'[^']*'|\"[^\"]*\")$")
_BRACKETS = {"<": ">", "(": ")", "[": "]", "{": "}"}


def is_scalar(name: str) -> bool:
    """Check whether a name is one of the scalar type keywords."""
    return name.lower() in SCALARS


def is_builtin_type(name: str) -> bool:
    """Check whether a name is a scalar or pseudo type rather than a class."""
    lowered = name.lower()
    return lowered in SCALARS or lowered in PSEUDO_TYPES


def short_name(name: str) -> str:
    """Return the last segment of a namespaced name."""
    return name.rstrip("\\").rsplit("\\", 1)[-1]


def join_namespace(namespace: str, name: str) -> str:
    """Prefix a name with a namespace, skipping the global namespace."""
    if not namespace:
        return name
    return f"{namespace}\\{name}"


def resolve_name(name: str, namespace: str, aliases: AliasTable | None = None) -> str:
    """Resolve a written name to a fully-qualified name.

    Scalars are returned unchanged, then the import table is consulted,
    then names with a leading root marker lose the marker, then
    ``namespace\\``-relative names are prefixed with the namespace. Any
    other name is returned verbatim.

    Args:
        name: Name as written.
        namespace: Current namespace, empty for the global namespace.
        aliases: Import table of the unit.

    Returns:
        Fully-qualified name without a leading backslash.
    """
    name = name.strip()
    if is_scalar(name):
        return name

    if aliases and name in aliases:
        return aliases[name].class_name

    if name.startswith("\\"):
        return name.lstrip("\\")

    if name.lower().startswith(RELATIVE_PREFIX):
        return join_namespace(namespace, name[len(RELATIVE_PREFIX) :])

    return name


def qualify_code_name(name: str, namespace: str, aliases: AliasTable | None = None) -> str:
    """Apply PHP's own name resolution to a name written in code.

    The first segment is looked up in the import table, otherwise the
    current namespace is prepended. Special class names and built-in types
    are left alone.

    Args:
        name: Name as written in a declaration or type hint.
        namespace: Current namespace, empty for the global namespace.
        aliases: Import table of the unit.

    Returns:
        Name carrying a leading root marker, or the untouched built-in name.
    """
    name = name.strip()
    if name.startswith("\\") or is_builtin_type(name):
        return name

    if name.lower().startswith(RELATIVE_PREFIX):
        return "\\" + join_namespace(namespace, name[len(RELATIVE_PREFIX) :])

    first, _, rest = name.partition("\\")
    if aliases and first in aliases:
        target = aliases[first].class_name
        return "\\" + (f"{target}\\{rest}" if rest else target)

    return "\\" + join_namespace(namespace, name)


def classify(resolved: str, written: str | None = None) -> SingleType:
    """Classify a resolved name as a scalar or a class reference.

    Args:
        resolved: Fully-qualified or built-in name.
        written: Name as written, used for the reference's short name.

    Returns:
        Scalar type for built-in names, reference type otherwise.
    """
    if is_builtin_type(resolved):
        return ScalarType(type=resolved)
    return ReferenceType(
        type=ClassReference(name=short_name(written or resolved), class_name=resolved)
    )


def build_type(types: list[SingleType]) -> TypeRef:
    """Collapse a list of single types into one type reference."""
    if len(types) == 1:
        return types[0]
    return UnionType(types=types)


def code_type(names: list[str], namespace: str, aliases: AliasTable | None = None) -> TypeRef:
    """Build a type reference from the names of a declared type hint.

    Args:
        names: Type names in declaration order; ``?T`` is passed as ``[T, "null"]``.
        namespace: Current namespace.
        aliases: Import table of the unit.

    Returns:
        Resolved type reference.
    """
    types: list[SingleType] = []
    for name in names:
        if "&" in name or "(" in name:
            types.append(ScalarType(type=name))
            continue
        qualified = qualify_code_name(name, namespace, aliases)
        types.append(classify(resolve_name(qualified, namespace, aliases), name))
    return build_type(types)


def _is_balanced(expression: str) -> bool:
    stack: list[str] = []
    for char in expression:
        if char in _BRACKETS:
            stack.append(_BRACKETS[char])
        elif char in _BRACKETS.values():
            if not stack or stack.pop() != char:
                return False
    return not stack


def split_top_level(expression: str, separator: str) -> list[str]:
    """Split on a separator that is not nested inside any brackets."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in expression:
        if char in _BRACKETS:
            depth += 1
        elif char in _BRACKETS.values():
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return parts


def _classify_doc_member(member: str, namespace: str, aliases: AliasTable | None) -> Result[SingleType]:
    if member.endswith("[]") or member.startswith("("):
        return Result.success(ScalarType(type=member))

    if "<" in member or "{" in member:
        base = re.split(r"[<{]", member, maxsplit=1)[0].strip()
        if not base:
            return Result.failure(f"missing generic base in '{member}'")
        if is_builtin_type(base):
            return Result.success(ScalarType(type=member))
        member = base

    if "&" in member:
        return Result.success(ScalarType(type=member))

    if _LITERAL_RE.match(member) or member.lower() in PSEUDO_TYPES:
        return Result.success(ScalarType(type=member))

    if not _IDENTIFIER_RE.match(member):
        return Result.failure(f"invalid type '{member}'")

    return Result.success(classify(resolve_name(member, namespace, aliases), member))


def get_doc_type(expression: str, namespace: str, aliases: AliasTable | None = None) -> Result[TypeRef]:
    """Parse a documented type expression.

    Union members keep their written order; ``?T`` expands to ``T|null``.
    Array shapes and generics over built-in types stay scalars carrying the
    written form, while a generic over a class becomes a reference to the
    class.

    Args:
        expression: Type expression from a doc tag.
        namespace: Current namespace.
        aliases: Import table of the unit.

    Returns:
        Result holding the type, or an error for malformed expressions.
    """
    expression = expression.strip()
    if not expression:
        return Result.failure("empty type expression")
    if not _is_balanced(expression):
        return Result.failure(f"unbalanced brackets in '{expression}'")

    types: list[SingleType] = []
    for member in split_top_level(expression, "|"):
        nullable = member.startswith("?")
        if nullable:
            member = member[1:].strip()
        if not member:
            return Result.failure(f"empty union member in '{expression}'")

        single = _classify_doc_member(member, namespace, aliases)
        if not single.ok:
            return Result.failure(single.error or "invalid type")
        types.append(single.value)  # type: ignore[arg-type]
        if nullable:
            types.append(ScalarType(type="null"))

    return Result.success(build_type(types))
