"""Constant-expression folding for default values and class constants."""

import json
import math
import re
from typing import Any, Callable

from .result import Result

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}
_DOUBLE_QUOTED_ESCAPE_RE = re.compile(
    r"\\(?:([ntrvef\\$\"])|([0-7]{1,3})|x([0-9A-Fa-f]{1,2})|u\{([0-9A-Fa-f]+)\})"
)
_STRING_PARTS = {'"', "string_content", "string_value", "escape_sequence"}


class _Unsupported(Exception):
    """Raised internally when an expression cannot be folded."""


def php_type_name(value: Any) -> str:
    """Return the ``gettype()`` name of a folded value."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, dict)):
        return "array"
    return "object"


def to_json(value: Any) -> str:
    """Encode a folded value as compact JSON text."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _to_php_string(value: Any) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, dict)):
        raise _Unsupported("array to string conversion")
    return str(value)


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError as e:
                raise _Unsupported(f"non-numeric string '{value}'") from e
    raise _Unsupported("unsupported operand")


def _parse_integer(text: str) -> int:
    text = text.replace("_", "").lower()
    if text.startswith("0x"):
        return int(text[2:], 16)
    if text.startswith("0b"):
        return int(text[2:], 2)
    if text.startswith("0o"):
        return int(text[2:], 8)
    if len(text) > 1 and text.startswith("0"):
        return int(text[1:], 8)
    return int(text)


def _unescape_double_quoted(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        simple, octal, hexa, codepoint = match.groups()
        if simple:
            return _ESCAPES[simple]
        if octal:
            return chr(int(octal, 8) & 0xFF)
        if hexa:
            return chr(int(hexa, 16))
        return chr(int(codepoint, 16))

    return _DOUBLE_QUOTED_ESCAPE_RE.sub(replace, text)


def _strip_quotes(text: str, quote: str) -> str:
    if text[:1] in ("b", "B"):
        text = text[1:]
    if len(text) < 2 or text[0] != quote or text[-1] != quote:
        raise _Unsupported(f"unexpected string literal {text}")
    return text[1:-1]


_BINARY_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+": lambda a, b: _to_number(a) + _to_number(b),
    "-": lambda a, b: _to_number(a) - _to_number(b),
    "*": lambda a, b: _to_number(a) * _to_number(b),
    "**": lambda a, b: _to_number(a) ** _to_number(b),
    ".": lambda a, b: _to_php_string(a) + _to_php_string(b),
    "|": lambda a, b: int(_to_number(a)) | int(_to_number(b)),
    "&": lambda a, b: int(_to_number(a)) & int(_to_number(b)),
    "^": lambda a, b: int(_to_number(a)) ^ int(_to_number(b)),
    "<<": lambda a, b: int(_to_number(a)) << int(_to_number(b)),
    ">>": lambda a, b: int(_to_number(a)) >> int(_to_number(b)),
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<>": lambda a, b: a != b,
    "===": lambda a, b: type(a) is type(b) and a == b,
    "!==": lambda a, b: not (type(a) is type(b) and a == b),
    "<": lambda a, b: a < b,
    ">": lambda a, b: a > b,
    "<=": lambda a, b: a <= b,
    ">=": lambda a, b: a >= b,
    "&&": lambda a, b: bool(a) and bool(b),
    "and": lambda a, b: bool(a) and bool(b),
    "||": lambda a, b: bool(a) or bool(b),
    "or": lambda a, b: bool(a) or bool(b),
    "xor": lambda a, b: bool(a) != bool(b),
}


class ConstExprEvaluator:
    """Fold literal PHP expressions into Python values.

    Supports numbers, strings without interpolation, booleans, null, arrays,
    unary and binary operators, ternaries and ``Foo::class``. Anything else
    (constants, calls, variables) cannot be folded and yields a failed
    ``Result``, which callers treat as "no value" rather than ``null``.
    """

    def __init__(
        self,
        content: bytes,
        resolve_class: Callable[[str], str] | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            content: Source of the unit the nodes belong to.
            resolve_class: Turns a written class name into its resolved name,
                used for ``Foo::class``.
        """
        self.content = content
        self.resolve_class = resolve_class

    def evaluate(self, node: Any) -> Result[Any]:
        """Fold an expression node.

        Args:
            node: Tree-sitter expression node.

        Returns:
            Result holding the folded value, or an error when it cannot be folded.
        """
        try:
            return Result.success(self._evaluate(node))
        except (_Unsupported, ArithmeticError, TypeError, ValueError) as e:
            return Result.failure(str(e) or type(e).__name__)

    def _text(self, node: Any) -> str:
        return self.content[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def _evaluate(self, node: Any) -> Any:
        node_type = node.type

        if node_type == "integer":
            return _parse_integer(self._text(node))
        if node_type == "float":
            return float(self._text(node).replace("_", ""))
        if node_type == "boolean":
            return self._text(node).lower() == "true"
        if node_type == "null":
            return None
        if node_type == "string":
            raw = _strip_quotes(self._text(node), "'")
            return raw.replace("\\\\", "\\").replace("\\'", "'")
        if node_type == "encapsed_string":
            if any(child.type not in _STRING_PARTS for child in node.children):
                raise _Unsupported("interpolated string")
            return _unescape_double_quoted(_strip_quotes(self._text(node), '"'))
        if node_type == "parenthesized_expression":
            return self._evaluate(node.named_children[0])
        if node_type == "array_creation_expression":
            return self._evaluate_array(node)
        if node_type == "unary_op_expression":
            return self._evaluate_unary(node)
        if node_type == "binary_expression":
            return self._evaluate_binary(node)
        if node_type == "conditional_expression":
            return self._evaluate_conditional(node)
        if node_type == "class_constant_access_expression":
            return self._evaluate_class_constant(node)
        if node_type in ("name", "qualified_name"):
            lowered = self._text(node).lower()
            if lowered in ("true", "false"):
                return lowered == "true"
            if lowered == "null":
                return None

        raise _Unsupported(f"cannot fold '{node_type}'")

    def _evaluate_array(self, node: Any) -> list[Any] | dict[Any, Any]:
        items: dict[Any, Any] = {}
        next_index = 0
        for element in node.named_children:
            if element.type != "array_element_initializer":
                continue
            parts = element.named_children
            if any(child.type == "variadic_unpacking" for child in parts):
                raise _Unsupported("array unpacking")
            if len(parts) == 2:
                key = self._evaluate(parts[0])
                if isinstance(key, bool) or key is None:
                    key = int(bool(key))
                elif isinstance(key, float):
                    key = int(key)
                elif isinstance(key, str) and re.fullmatch(r"-?[1-9]\d*|0", key):
                    key = int(key)
                items[key] = self._evaluate(parts[1])
                if isinstance(key, int) and key >= next_index:
                    next_index = key + 1
            elif len(parts) == 1:
                items[next_index] = self._evaluate(parts[0])
                next_index += 1
            else:
                raise _Unsupported("unexpected array element")

        if list(items.keys()) == list(range(len(items))):
            return list(items.values())
        return {str(key): value for key, value in items.items()}

    def _evaluate_unary(self, node: Any) -> Any:
        operator = node.child_by_field_name("operator")
        operator_text = self._text(operator) if operator is not None else self._text(node.children[0])
        operand = self._evaluate(node.named_children[-1])

        if operator_text == "-":
            return -_to_number(operand)
        if operator_text == "+":
            return _to_number(operand)
        if operator_text == "!":
            return not operand
        if operator_text == "~":
            return ~int(_to_number(operand))
        raise _Unsupported(f"unary operator '{operator_text}'")

    def _evaluate_binary(self, node: Any) -> Any:
        left_node = node.child_by_field_name("left")
        right_node = node.child_by_field_name("right")
        operator = node.child_by_field_name("operator")
        if left_node is None or right_node is None or operator is None:
            raise _Unsupported("incomplete binary expression")

        operator_text = self._text(operator).lower()
        left = self._evaluate(left_node)

        if operator_text == "??":
            return left if left is not None else self._evaluate(right_node)

        right = self._evaluate(right_node)

        if operator_text == "/":
            dividend, divisor = _to_number(left), _to_number(right)
            if divisor == 0:
                raise _Unsupported("division by zero")
            if isinstance(dividend, int) and isinstance(divisor, int) and dividend % divisor == 0:
                return dividend // divisor
            return dividend / divisor
        if operator_text == "%":
            dividend, divisor = int(_to_number(left)), int(_to_number(right))
            if divisor == 0:
                raise _Unsupported("modulo by zero")
            return int(math.fmod(dividend, divisor))

        handler = _BINARY_OPERATORS.get(operator_text)
        if handler is None:
            raise _Unsupported(f"binary operator '{operator_text}'")
        return handler(left, right)

    def _evaluate_conditional(self, node: Any) -> Any:
        condition_node = node.child_by_field_name("condition")
        body_node = node.child_by_field_name("body")
        alternative_node = node.child_by_field_name("alternative")
        if condition_node is None or alternative_node is None:
            raise _Unsupported("incomplete conditional expression")

        condition = self._evaluate(condition_node)
        if condition:
            return condition if body_node is None else self._evaluate(body_node)
        return self._evaluate(alternative_node)

    def _evaluate_class_constant(self, node: Any) -> str:
        named = node.named_children
        if len(named) != 2 or self._text(named[1]).lower() != "class":
            raise _Unsupported("class constant lookup")
        written = self._text(named[0])
        if written.lower() in ("self", "static", "parent") or self.resolve_class is None:
            raise _Unsupported(f"cannot resolve '{written}::class'")
        return self.resolve_class(written)
