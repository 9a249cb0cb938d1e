"""
A pretty-printer for tinynix expressions.

Output is valid tinynix source: parsing the printed form of a parsed
expression yields an equal AST (for absolute paths).
"""
import re
from pathlib import PurePath

from tinynix.nix_datatypes import (
    Scope, Value, Literal, Interpolation, InterpolatedString,
    Ref, SearchPath, List, AttrSet, UnaryOp, BinaryOp, LetIn, With,
)

KEYWORDS = frozenset({'rec', 'let', 'in', 'with', 'inherit', 'true', 'false', 'null'})
_BARE_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_'\-]*\Z")

# Nodes that must be parenthesized when they appear as an operand or list item.
_COMPOUND = (BinaryOp, LetIn, With)


def escape_string(text: str) -> str:
    return (
        text.replace('\\', '\\\\')
            .replace('"', '\\"')
            .replace('${', '\\${')
            .replace('\n', '\\n')
            .replace('\t', '\\t')
            .replace('\r', '\\r')
    )


def format_key(key: str) -> str:
    if _BARE_KEY.match(key) and key not in KEYWORDS:
        return key
    return f'"{escape_string(key)}"'


class Printer:
    """Formats tinynix expressions into readable, valid source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, Scope):
            return self._pformat_scope
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            Value: self._pformat_value,
            InterpolatedString: self._pformat_istring,
            Ref: self._pformat_ref,
            SearchPath: self._pformat_search_path,
            List: self._pformat_list,
            AttrSet: self._pformat_attrset,
            UnaryOp: self._pformat_unary,
            BinaryOp: self._pformat_binary,
            LetIn: self._pformat_let_in,
            With: self._pformat_with,
        }

    def _wrap(self, obj, level):
        rendered = self.pformat(obj, level)
        return f"({rendered})" if isinstance(obj, _COMPOUND) else rendered

    # --- Scalars ---

    def _pformat_value(self, obj, level):
        match obj.kind:
            case "null":
                return "null"
            case "bool":
                return "true" if obj.value else "false"
            case "int":
                return str(obj.value)
            case "float":
                return self._format_float(obj.value)
            case "string":
                return f'"{escape_string(obj.value)}"'
            case "path":
                return self._format_path(obj.value)

    def _format_float(self, value: float) -> str:
        text = repr(value)
        if 'e' in text:
            mantissa, exponent = text.split('e')
            if '.' not in mantissa:
                mantissa += '.0'
            return f"{mantissa}e{exponent}"
        if '.' not in text and text.lstrip('-').isdigit():
            return f"{text}.0"
        return text

    def _format_path(self, path: PurePath) -> str:
        text = path.as_posix()
        if path.is_absolute() or text.startswith('.'):
            return text
        return f"./{text}"

    def _pformat_istring(self, obj, level):
        out = []
        for part in obj.parts:
            match part:
                case Literal(text=text):
                    out.append(escape_string(text))
                case Interpolation(expr=expr):
                    # `''${` would read back as an escaped interpolation.
                    if out and out[-1].endswith("''"):
                        out[-1] = out[-1][:-1] + "\\'"
                    out.append(f"${{{self.pformat(expr, level)}}}")
        return f'"{"".join(out)}"'

    def _pformat_ref(self, obj, level):
        return obj.name

    def _pformat_search_path(self, obj, level):
        return f"<{obj.name}>"

    # --- Containers ---

    def _pformat_list(self, obj, level):
        if not obj.items:
            return "[ ]"
        indent = self._indent_char * (level + 1)
        lines = [f"{indent}{self._wrap(item, level + 1)}" for item in obj.items]
        return "[\n" + "\n".join(lines) + "\n" + self._indent_char * level + "]"

    def _pformat_bindings(self, bindings, level):
        indent = self._indent_char * (level + 1)
        return [f"{indent}{format_key(k)} = {self.pformat(v, level + 1)};" for k, v in bindings.items()]

    def _pformat_attrset(self, obj, level):
        prefix = "rec " if obj.recursive else ""
        if not obj.bindings:
            return f"{prefix}{{ }}"
        lines = self._pformat_bindings(obj.bindings, level)
        return f"{prefix}{{\n" + "\n".join(lines) + "\n" + self._indent_char * level + "}"

    def _pformat_scope(self, obj, level):
        return self._pformat_attrset(AttrSet(obj.flatten()), level)

    # --- Operators ---

    def _pformat_unary(self, obj, level):
        operand = obj.operand
        rendered = self.pformat(operand, level)
        if isinstance(operand, _COMPOUND):
            rendered = f"({rendered})"
        return f"{obj.op.value}{rendered}"

    def _pformat_binary(self, obj, level):
        # Left-associative: only a compound right operand needs parentheses.
        left = obj.left
        left_str = self._wrap(left, level) if isinstance(left, (LetIn, With)) else self.pformat(left, level)
        right_str = self._wrap(obj.right, level)
        return f"{left_str} {obj.op.value} {right_str}"

    # --- Scoping ---

    def _pformat_let_in(self, obj, level):
        body = self.pformat(obj.body, level)
        if not obj.bindings:
            return f"let in {body}"
        lines = self._pformat_bindings(obj.bindings, level)
        return "let\n" + "\n".join(lines) + "\n" + self._indent_char * level + f"in {body}"

    def _pformat_with(self, obj, level):
        return f"with {self.pformat(obj.environment, level)}; {self.pformat(obj.body, level)}"
