"""
The tinynix evaluator.

`Evaluator.eval` reduces an Expression to a value-only Expression (Value,
SearchPath, List and AttrSet nodes) under a Scope. Evaluation is strict and
single-pass: left before right, `let` bindings in declaration order and
string parts in order.
"""
from typing import Any, Optional

from tinynix.nix_datatypes import (
    Scope, Expression, Value, Literal, Interpolation, InterpolatedString,
    Ref, SearchPath, List as NixList, AttrSet, UnaryOp, BinaryOp, LetIn, With,
    UnaryOperator, BinaryOperator, int_in_range, is_value_tree,
)
from tinynix.nix_errors import (
    EvaluationError, UndefinedVariable, TypeMismatch, UnsupportedOperation,
)


def describe(value: Any) -> str:
    """A short type name for error messages."""
    match value:
        case Value():
            return value.kind
        case NixList():
            return "list"
        case AttrSet():
            return "set"
        case SearchPath():
            return "search path"
        case _:
            return type(value).__name__


class Evaluator:
    """The tinynix execution engine."""
    def __init__(self):
        self.current_node: Optional[Expression] = None

    def _dbg(self, *parts):
        import os, sys
        if os.environ.get("TINYNIX_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _fail(self, error: EvaluationError, node: Expression) -> EvaluationError:
        # Keep the offending node so the runner can point at its source location.
        error.node = node
        return error

    def eval(self, node: Expression, scope: Optional[Scope] = None) -> Expression:
        """Public entry point for evaluation."""
        if is_value_tree(node):
            return node
        if scope is None:
            scope = Scope()
        return self._eval(node, scope)

    def _eval(self, node: Expression, scope: Scope) -> Expression:
        self.current_node = node
        match node:
            case Value() | SearchPath():
                return node
            case Ref(name=name):
                if name not in scope:
                    raise self._fail(UndefinedVariable(name), node)
                return scope[name]
            case UnaryOp():
                return self._eval_unary(node, scope)
            case BinaryOp():
                return self._eval_binary(node, scope)
            case NixList():
                return NixList([self._eval(item, scope) for item in node.items])
            case AttrSet():
                # Siblings never see each other, even under `rec`.
                bindings = {key: self._eval(expr, scope) for key, expr in node.bindings.items()}
                return AttrSet(bindings, recursive=node.recursive)
            case InterpolatedString():
                return self._eval_string(node, scope)
            case With():
                env = self._eval(node.environment, scope)
                if not isinstance(env, AttrSet):
                    raise self._fail(TypeMismatch(f"with expects a set, got {describe(env)}"), node)
                self._dbg("with: overlay", list(env.bindings.keys()))
                return self._eval(node.body, scope.extend(env.bindings))
            case LetIn():
                current = scope
                for name, expr in node.bindings.items():
                    value = self._eval(expr, current)
                    self._dbg("let:", name, "=", value)
                    current = current.extend({name: value})
                return self._eval(node.body, current)
            case _:
                raise TypeError(f"Cannot evaluate object of type {type(node).__name__}")

    def _operand(self, node: Expression, scope: Scope, context: str) -> Value:
        value = self._eval(node, scope)
        if not isinstance(value, Value):
            raise self._fail(TypeMismatch(f"{context} expects a value, got {describe(value)}"), node)
        return value

    def _checked_int(self, n: int, node: Expression) -> Value:
        if not int_in_range(n):
            raise self._fail(UnsupportedOperation(f"integer overflow: {n}"), node)
        return Value(n)

    def _eval_unary(self, node: UnaryOp, scope: Scope) -> Value:
        operand = self._operand(node.operand, scope, f"operator {node.op.value}")
        match node.op, operand.kind:
            case UnaryOperator.NEG, "int":
                return self._checked_int(-operand.value, node)
            case UnaryOperator.NEG, "float":
                return Value(-operand.value)
            case UnaryOperator.NOT, "bool":
                return Value(not operand.value)
            case op, kind:
                expected = "a bool" if op is UnaryOperator.NOT else "a number"
                raise self._fail(TypeMismatch(f"operator {op.value} expects {expected}, got {kind}"), node)

    def _eval_binary(self, node: BinaryOp, scope: Scope) -> Value:
        context = f"operator {node.op.value}"
        left = self._operand(node.left, scope, context)
        right = self._operand(node.right, scope, context)
        lk, rk = left.kind, right.kind
        self._dbg("binary:", node.op.name, lk, rk)

        if lk == "int" and rk == "int":
            if node.op is BinaryOperator.ADD:
                return self._checked_int(left.value + right.value, node)
            return self._checked_int(left.value - right.value, node)
        if left.is_number and right.is_number:
            if node.op is BinaryOperator.ADD:
                return Value(float(left.value) + float(right.value))
            return Value(float(left.value) - float(right.value))
        if node.op is BinaryOperator.ADD and lk == "string" and rk == "string":
            return Value(left.value + right.value)

        verb = "add" if node.op is BinaryOperator.ADD else "subtract"
        raise self._fail(UnsupportedOperation(f"cannot {verb} {rk} {'to' if verb == 'add' else 'from'} {lk}"), node)

    def _eval_string(self, node: InterpolatedString, scope: Scope) -> Value:
        out = []
        for part in node.parts:
            match part:
                case Literal(text=text):
                    out.append(text)
                case Interpolation(expr=expr):
                    value = self._eval(expr, scope)
                    if not (isinstance(value, Value) and value.kind == "string"):
                        raise self._fail(TypeMismatch(f"cannot coerce {describe(value)} to a string"), expr)
                    out.append(value.value)
        return Value("".join(out))
