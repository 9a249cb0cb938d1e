import pytest
from pathlib import Path

from tinynix.nix_datatypes import (
    Scope, Value, Literal, Interpolation, InterpolatedString, Ref, SearchPath,
    List, AttrSet, UnaryOp, BinaryOp, LetIn, With,
    UnaryOperator, BinaryOperator, is_value_tree, int_in_range, INT_MAX, INT_MIN,
)


@pytest.mark.parametrize("value, kind", [
    (1, "int"),
    (1.0, "float"),
    (True, "bool"),
    ("s", "string"),
    (Path("/x"), "path"),
    (None, "null"),
])
def test_value_kind(value, kind):
    assert Value(value).kind == kind


def test_value_rejects_unknown_types():
    with pytest.raises(TypeError):
        Value([1, 2])


def test_value_equality_respects_kind():
    assert Value(1) == Value(1)
    assert Value(1) != Value(1.0)
    assert Value(True) != Value(1)
    assert Value(0) != Value(False)
    assert Value("1") != Value(1)


def test_node_equality_is_structural():
    assert Ref("a") == Ref("a")
    assert Ref("a") != SearchPath("a")
    assert UnaryOp(UnaryOperator.NEG, Value(1)) != UnaryOp(UnaryOperator.NOT, Value(1))
    assert BinaryOp(BinaryOperator.ADD, Ref("a"), Ref("b")) != BinaryOp(BinaryOperator.ADD, Ref("b"), Ref("a"))
    assert InterpolatedString([Literal("a"), Interpolation(Ref("x"))]) == \
        InterpolatedString([Literal("a"), Interpolation(Ref("x"))])
    assert LetIn({"a": Value(1)}, Ref("a")) == LetIn({"a": Value(1)}, Ref("a"))
    assert With(Ref("s"), Ref("a")) != With(Ref("s"), Ref("b"))


def test_attrset_equality_is_ordered():
    assert AttrSet({"a": Value(1), "b": Value(2)}) == AttrSet({"a": Value(1), "b": Value(2)})
    assert AttrSet({"a": Value(1), "b": Value(2)}) != AttrSet({"b": Value(2), "a": Value(1)})
    assert AttrSet({"a": Value(1)}) != AttrSet({"a": Value(1)}, recursive=True)


def test_location_is_ignored_by_equality():
    a, b = Ref("x"), Ref("x")
    a.loc = {'line': 1, 'col': 1}
    assert a == b


def test_reprs():
    assert repr(Value(1)) == "Value(1)"
    assert repr(UnaryOp(UnaryOperator.NEG, Ref("x"))) == "UnaryOp(NEG, Ref('x'))"
    assert repr(AttrSet({"a": Value(None)}, recursive=True)) == "AttrSet(rec {'a': Value(None)})"


def test_is_value_tree():
    assert is_value_tree(AttrSet({"a": List([Value(1), SearchPath("p")])}))
    assert not is_value_tree(AttrSet({"a": List([Ref("x")])}))
    assert not is_value_tree(InterpolatedString([Literal("a")]))


def test_int_range():
    assert int_in_range(INT_MAX) and int_in_range(INT_MIN)
    assert not int_in_range(INT_MAX + 1)
    assert not int_in_range(INT_MIN - 1)


# --- Scope ---

def test_scope_lookup_walks_parents():
    root = Scope({"a": Value(1), "b": Value(2)})
    child = root.extend({"b": Value(20), "c": Value(30)})
    assert child["a"] == Value(1)
    assert child["b"] == Value(20)
    assert child.find_owner("a") is root
    assert child.find_owner("c") is child
    assert child.find_owner("zz") is None
    assert "c" in child and "c" not in root


def test_scope_extend_does_not_mutate():
    root = Scope({"a": Value(1)})
    root.extend({"a": Value(2)})
    assert root["a"] == Value(1)
    assert len(root) == 1


def test_scope_flatten_and_iteration_order():
    scope = Scope({"a": Value(1), "b": Value(2)}).extend({"c": Value(3), "a": Value(10)})
    assert list(scope) == ["a", "b", "c"]
    assert scope.flatten() == {"a": Value(10), "b": Value(2), "c": Value(3)}
    assert len(scope) == 3


def test_scope_missing_key():
    with pytest.raises(KeyError):
        Scope()["x"]
    assert Scope().get("x") is None
    assert 1 not in Scope()


def test_scope_validates_bindings():
    with pytest.raises(TypeError):
        Scope({"a": 1})
    with pytest.raises(TypeError):
        Scope({1: Value(1)})


def test_scope_from_data():
    scope = Scope.from_data({"a": 1, "b": {"c": [True]}})
    assert scope["a"] == Value(1)
    assert scope["b"] == AttrSet({"c": List([Value(True)])})
