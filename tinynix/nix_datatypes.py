
"""
Defines the core data types for the tinynix language.

This module provides the value and expression node classes produced by the
transformer and consumed by the evaluator, plus the `Scope` used to resolve
references during evaluation.
"""

from abc import ABC
from enum import Enum
from pathlib import PurePath
from typing import Dict, Any, Optional, Iterator, Mapping
import collections.abc

# Ints are signed 64-bit.
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1


def int_in_range(n: int) -> bool:
    return INT_MIN <= n <= INT_MAX


class UnaryOperator(Enum):
    NEG = "-"
    NOT = "!"


class BinaryOperator(Enum):
    ADD = "+"
    SUB = "-"


# =================================================================
# Abstract Base Classes
# =================================================================

class Expression(ABC):
    """Abstract base class for every tinynix AST node.

    Nodes may carry a `loc` dict (line, col, tag, text) attached by the
    transformer. It is informational only and never takes part in equality.
    """
    loc: Optional[Dict[str, Any]] = None


class StringPart(ABC):
    """Abstract base class for the parts of an interpolated string."""
    pass


# =================================================================
# Values
# =================================================================

class Value(Expression):
    """A fully reduced scalar: int, float, bool, str, path or null (None)."""
    _KINDS = (
        (bool, "bool"),
        (int, "int"),
        (float, "float"),
        (str, "string"),
        (PurePath, "path"),
    )

    def __init__(self, value: Any):
        if value is not None and not isinstance(value, (bool, int, float, str, PurePath)):
            raise TypeError(f"Unsupported value type: {type(value).__name__}")
        self.value = value

    @property
    def kind(self) -> str:
        # bool is checked before int since bool subclasses int
        if self.value is None:
            return "null"
        for py_type, name in self._KINDS:
            if isinstance(self.value, py_type):
                return name
        raise TypeError(f"Unsupported value type: {type(self.value).__name__}")

    @property
    def is_number(self) -> bool:
        return self.kind in ("int", "float")

    def __repr__(self) -> str:
        return f"Value({self.value!r})"

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value


# =================================================================
# Strings
# =================================================================

class Literal(StringPart):
    """Verbatim text inside a string."""
    def __init__(self, text: str):
        self.text = text

    def __repr__(self) -> str:
        return f"Literal({self.text!r})"

    def __eq__(self, other):
        return isinstance(other, Literal) and self.text == other.text


class Interpolation(StringPart):
    """An embedded `${...}` expression inside a string."""
    def __init__(self, expr: Expression):
        self.expr = expr

    def __repr__(self) -> str:
        return f"Interpolation({self.expr!r})"

    def __eq__(self, other):
        return isinstance(other, Interpolation) and self.expr == other.expr


class InterpolatedString(Expression):
    """A string with at least one interpolation, kept as an ordered list of parts."""
    def __init__(self, parts: list):
        self.parts = list(parts)

    def __repr__(self) -> str:
        return f"InterpolatedString({self.parts!r})"

    def __eq__(self, other):
        return isinstance(other, InterpolatedString) and self.parts == other.parts


# =================================================================
# References and containers
# =================================================================

class Ref(Expression):
    """A variable reference. Dotted names are a single composite key."""
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Ref({self.name!r})"

    def __eq__(self, other):
        return isinstance(other, Ref) and self.name == other.name


class SearchPath(Expression):
    """An unresolved `<name>` search-path marker."""
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"SearchPath({self.name!r})"

    def __eq__(self, other):
        return isinstance(other, SearchPath) and self.name == other.name


class List(Expression):
    """Represents a list literal (`[ ... ]`).

    Before evaluation the items are arbitrary expressions; after evaluation
    they are value-only nodes in the same order.
    """
    def __init__(self, items: list):
        self.items = list(items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __repr__(self) -> str:
        return f"List({self.items!r})"

    def __eq__(self, other):
        return isinstance(other, List) and self.items == other.items


class AttrSet(Expression):
    """Represents an attribute set (`{ ... }` or `rec { ... }`).

    Bindings are an insertion-ordered dict of name -> Expression. The
    `recursive` flag records the `rec` keyword; the evaluator accepts it but
    does not resolve references between sibling bindings.
    """
    def __init__(self, bindings: Optional[Dict[str, Expression]] = None, recursive: bool = False):
        self.bindings: Dict[str, Expression] = dict(bindings or {})
        self.recursive = recursive

    def __getitem__(self, key: str) -> Expression:
        return self.bindings[key]

    def __contains__(self, key: str) -> bool:
        return key in self.bindings

    def keys(self) -> collections.abc.KeysView:
        return self.bindings.keys()

    def items(self) -> collections.abc.ItemsView:
        return self.bindings.items()

    def __len__(self) -> int:
        return len(self.bindings)

    def __repr__(self) -> str:
        prefix = "rec " if self.recursive else ""
        return f"AttrSet({prefix}{self.bindings!r})"

    def __eq__(self, other):
        if not isinstance(other, AttrSet):
            return NotImplemented
        # Key order is part of the value.
        return (
            self.recursive == other.recursive
            and list(self.bindings.items()) == list(other.bindings.items())
        )


# =================================================================
# Operators and scoping constructs
# =================================================================

class UnaryOp(Expression):
    def __init__(self, op: UnaryOperator, operand: Expression):
        self.op = op
        self.operand = operand

    def __repr__(self) -> str:
        return f"UnaryOp({self.op.name}, {self.operand!r})"

    def __eq__(self, other):
        return isinstance(other, UnaryOp) and self.op is other.op and self.operand == other.operand


class BinaryOp(Expression):
    def __init__(self, op: BinaryOperator, left: Expression, right: Expression):
        self.op = op
        self.left = left
        self.right = right

    def __repr__(self) -> str:
        return f"BinaryOp({self.op.name}, {self.left!r}, {self.right!r})"

    def __eq__(self, other):
        return (
            isinstance(other, BinaryOp)
            and self.op is other.op
            and self.left == other.left
            and self.right == other.right
        )


class LetIn(Expression):
    """`let <bindings> in <body>`: bindings are folded in declaration order."""
    def __init__(self, bindings: Dict[str, Expression], body: Expression):
        self.bindings: Dict[str, Expression] = dict(bindings)
        self.body = body

    def __repr__(self) -> str:
        return f"LetIn({self.bindings!r}, {self.body!r})"

    def __eq__(self, other):
        return (
            isinstance(other, LetIn)
            and list(self.bindings.items()) == list(other.bindings.items())
            and self.body == other.body
        )


class With(Expression):
    """`with <environment>; <body>`: the environment's bindings shadow the outer scope."""
    def __init__(self, environment: Expression, body: Expression):
        self.environment = environment
        self.body = body

    def __repr__(self) -> str:
        return f"With({self.environment!r}, {self.body!r})"

    def __eq__(self, other):
        return isinstance(other, With) and self.environment == other.environment and self.body == other.body


def is_value_tree(expr: Any) -> bool:
    """True if `expr` contains only Value, SearchPath, List and AttrSet nodes."""
    if isinstance(expr, (Value, SearchPath)):
        return True
    if isinstance(expr, List):
        return all(is_value_tree(item) for item in expr.items)
    if isinstance(expr, AttrSet):
        return all(is_value_tree(v) for v in expr.bindings.values())
    return False


# =================================================================
# Scope
# =================================================================

class Scope(collections.abc.Mapping):
    """An ordered, read-only mapping of name -> evaluated Expression.

    Scopes chain to a parent; lookups walk self -> parent. Extension never
    mutates an existing scope: `extend` returns a new child whose bindings
    shadow the parent's.
    """
    def __init__(self, bindings: Optional[Mapping[str, Expression]] = None, parent: Optional['Scope'] = None):
        self.bindings: Dict[str, Expression] = {}
        self.parent = parent
        for key, value in (bindings or {}).items():
            if not isinstance(key, str):
                raise TypeError(f"Scope key must be a str, not {type(key)}")
            if not isinstance(value, Expression):
                raise TypeError(f"Scope value for '{key}' must be an Expression, not {type(value).__name__}")
            self.bindings[key] = value

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> 'Scope':
        """Builds a scope from plain Python data (see nix_serialize.from_data)."""
        from tinynix.nix_serialize import from_data
        return cls({key: from_data(value) for key, value in data.items()})

    def find_owner(self, key: str) -> Optional['Scope']:
        """Finds the Scope in the parent chain that owns key."""
        current = self
        while current is not None:
            if key in current.bindings:
                return current
            current = current.parent
        return None

    def extend(self, bindings: Mapping[str, Expression]) -> 'Scope':
        return Scope(bindings, parent=self)

    def __getitem__(self, key: str) -> Expression:
        owner = self.find_owner(key) if isinstance(key, str) else None
        if owner is None:
            raise KeyError(key)
        return owner.bindings[key]

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def flatten(self) -> Dict[str, Expression]:
        """Collapses the chain into one dict, outermost bindings first."""
        chain = []
        current = self
        while current is not None:
            chain.append(current)
            current = current.parent
        out: Dict[str, Expression] = {}
        for scope in reversed(chain):
            out.update(scope.bindings)
        return out

    def __iter__(self) -> Iterator[str]:
        return iter(self.flatten())

    def __len__(self) -> int:
        return len(self.flatten())

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Scope bindings=[{keys}]{parent_id}>"
