"""
Transforms the raw koine match tree into a tinynix AST using nix_datatypes.

The grammar leaves three jobs to this module: folding the flat `op_expr`
stream by precedence, decoding string parts, and merging dotted attribute
paths into nested attribute sets. Path literals are also resolved here, so
the AST never holds a relative path.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

from tinynix.nix_datatypes import (
    Expression, Value, Literal, Interpolation, InterpolatedString,
    Ref, SearchPath, List, AttrSet, UnaryOp, BinaryOp, LetIn, With,
    UnaryOperator, BinaryOperator, int_in_range,
)
from tinynix.nix_errors import ParseError, AttributePathConflict

# Higher binds tighter. All operators here are left-associative.
BINARY_PRECEDENCE: Mapping[BinaryOperator, int] = MappingProxyType({
    BinaryOperator.ADD: 1,
    BinaryOperator.SUB: 1,
})

_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
}


def climb_precedence(operands: Sequence[Expression], operators: Sequence[BinaryOperator],
                     precedence: Mapping[BinaryOperator, int],
                     locs: Optional[Sequence[Optional[dict]]] = None) -> Expression:
    """Folds `operands[0] op[0] operands[1] ...` into a BinaryOp tree.

    `operands` must hold exactly one more item than `operators`.
    """
    if len(operands) != len(operators) + 1:
        raise ValueError("Operator stream must alternate operand, operator, operand.")
    index = 0

    def climb(min_level: int) -> Expression:
        nonlocal index
        left = operands[index]
        while index < len(operators) and precedence[operators[index]] >= min_level:
            op = operators[index]
            loc = locs[index] if locs else None
            index += 1
            right = climb(precedence[op] + 1)
            left = BinaryOp(op, left, right)
            if loc:
                left.loc = loc
        return left

    return climb(min(precedence.values(), default=0))


class NixTransformer:
    """Converts koine output into Expression nodes.

    `root_dir` anchors relative path literals (default: the current working
    directory). `home_dir` anchors `~/` paths (default: the user's home).
    """
    def __init__(self, root_dir=None, home_dir=None):
        self.root_dir = Path(root_dir) if root_dir is not None else Path.cwd()
        self.home_dir = Path(home_dir) if home_dir is not None else None

    def _attach_loc(self, obj, node):
        line = node.get('line'); col = node.get('col')
        if line is not None and col is not None and hasattr(obj, '__dict__'):
            obj.loc = {'line': line, 'col': col, 'tag': node.get('tag'), 'text': node.get('text')}
        return obj

    def _error(self, message: str, node: dict) -> ParseError:
        return ParseError(message, rule=node.get('tag'), line=node.get('line'), col=node.get('col'))

    def transform(self, node: dict) -> Expression:
        if not isinstance(node, dict) or 'tag' not in node:
            raise ParseError(f"Unexpected parser output: {node!r}")

        tag = node['tag']
        children = node.get('children') or []
        text = node.get('text', '')

        match tag:
            case 'source' | 'parenthesized':
                return self.transform(children[0])
            case 'op_expr':
                return self._fold_op_expr(children)
            case 'term':
                return self._apply_prefix_ops(children)

            # Scalars
            case 'integer':
                n = int(text)
                if not int_in_range(n):
                    raise self._error(f"Integer literal '{text}' does not fit in 64 bits.", node)
                return self._attach_loc(Value(n), node)
            case 'float':
                return self._attach_loc(Value(float(text)), node)
            case 'boolean':
                return self._attach_loc(Value(text == 'true'), node)
            case 'null':
                return self._attach_loc(Value(None), node)
            case 'string':
                return self._attach_loc(self._decode_string(children), node)
            case 'path':
                return self._attach_loc(Value(self._resolve_path(text)), node)
            case 'search_path':
                return self._attach_loc(SearchPath(text[1:-1]), node)
            case 'identifier':
                return self._attach_loc(Ref(text), node)

            # Containers and scoping
            case 'list':
                return self._attach_loc(List([self.transform(c) for c in children]), node)
            case 'attrset':
                recursive = bool(children) and children[0].get('tag') == 'rec_kw'
                if recursive:
                    children = children[1:]
                return self._attach_loc(AttrSet(self._collect_bindings(children), recursive), node)
            case 'let_in':
                if not children:
                    raise self._error("let expression is missing its body.", node)
                bindings = self._collect_bindings(children[:-1])
                return self._attach_loc(LetIn(bindings, self.transform(children[-1])), node)
            case 'with_expr':
                env, body = children
                return self._attach_loc(With(self.transform(env), self.transform(body)), node)
            case _:
                raise self._error(f"Unknown node tag '{tag}'.", node)

    # --- Operators ---

    def _fold_op_expr(self, children: list) -> Expression:
        operands = [self.transform(c) for c in children[0::2]]
        op_nodes = children[1::2]
        operators = [BinaryOperator(n['text']) for n in op_nodes]
        locs = [{'line': n.get('line'), 'col': n.get('col'), 'tag': 'infix_op', 'text': n.get('text')}
                for n in op_nodes]
        return climb_precedence(operands, operators, BINARY_PRECEDENCE, locs)

    def _apply_prefix_ops(self, children: list) -> Expression:
        *op_nodes, atom = children
        expr = self.transform(atom)
        # The operator nearest the atom applies first.
        for op_node in reversed(op_nodes):
            expr = self._attach_loc(UnaryOp(UnaryOperator(op_node['text']), expr), op_node)
        return expr

    # --- Strings ---

    def _decode_string(self, parts: list) -> Expression:
        out = []
        buffer = []
        for part in parts:
            text = part.get('text', '')
            match part['tag']:
                case 'string_literal_part':
                    buffer.append(text)
                case 'escaped_quote':
                    buffer.append('"')
                case 'escaped_interpolation':
                    buffer.append('${')
                case 'escaped_char':
                    ch = text[1:]
                    buffer.append(_ESCAPES.get(ch, ch))
                case 'dollar_literal':
                    buffer.append('$')
                case 'single_quote_literal':
                    buffer.append("'")
                case 'interpolation':
                    if buffer:
                        out.append(Literal(''.join(buffer)))
                        buffer = []
                    out.append(Interpolation(self.transform(part['children'][0])))
                case other:
                    raise self._error(f"Unknown string part '{other}'.", part)
        if not out:
            return Value(''.join(buffer))
        if buffer:
            out.append(Literal(''.join(buffer)))
        return InterpolatedString(out)

    # --- Paths ---

    def _resolve_path(self, text: str) -> Path:
        if text.startswith('~/'):
            home = self.home_dir if self.home_dir is not None else Path.home()
            return home / text[2:]
        if text.startswith('/'):
            return Path(text)
        return self.root_dir / text

    # --- Bindings ---

    def _collect_bindings(self, nodes: list) -> Dict[str, Expression]:
        bindings: Dict[str, Expression] = {}
        for node in nodes:
            match node.get('tag'):
                case 'binding':
                    path_node, value_node = node['children']
                    keys = self._attr_path(path_node)
                    self._insert_at_path(bindings, keys, self.transform(value_node), node)
                case 'inherit_binding':
                    bindings.update(self._inherit(node))
                case other:
                    raise self._error(f"Unexpected binding node '{other}'.", node)
        return bindings

    def _attr_path(self, node: dict) -> list[str]:
        keys = []
        for key_node in node.get('children') or []:
            if key_node['tag'] == 'attr_name':
                keys.append(key_node['text'])
                continue
            key = self._decode_string(key_node.get('children') or [])
            if not isinstance(key, Value):
                raise self._error("Attribute names cannot contain interpolations.", key_node)
            keys.append(key.value)
        return keys

    def _insert_at_path(self, bindings: Dict[str, Expression], keys: list[str],
                        value: Expression, node: dict):
        target = bindings
        for depth, key in enumerate(keys[:-1]):
            existing = target.get(key)
            if existing is None:
                nested = AttrSet()
                target[key] = nested
                target = nested.bindings
            elif isinstance(existing, AttrSet):
                target = existing.bindings
            else:
                raise AttributePathConflict(keys[:depth + 1], line=node.get('line'), col=node.get('col'))
        target[keys[-1]] = value

    def _inherit(self, node: dict) -> Dict[str, Expression]:
        source = None
        out: Dict[str, Expression] = {}
        for child in node.get('children') or []:
            match child['tag']:
                case 'inherit_source':
                    source = child['text']
                case 'attr_name':
                    name = child['text']
                    ref = Ref(f"{source}.{name}" if source else name)
                    out[name] = self._attach_loc(ref, child)
        return out
