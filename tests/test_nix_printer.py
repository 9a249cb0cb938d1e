import pytest
from pathlib import Path

from tinynix.nix_printer import Printer, escape_string, format_key
from tinynix.nix_runtime import parse
from tinynix.nix_datatypes import (
    Scope, Value, Literal, Interpolation, InterpolatedString, Ref, SearchPath,
    List, AttrSet, UnaryOp, BinaryOp, LetIn, With,
    UnaryOperator, BinaryOperator,
)

NEG, NOT = UnaryOperator.NEG, UnaryOperator.NOT
ADD, SUB = BinaryOperator.ADD, BinaryOperator.SUB


@pytest.fixture
def printer():
    return Printer(indent_width=2)

# Test cases: (id, object, expected_string)
FORMAT_TEST_CASES = [
    ("int", Value(123), "123"),
    ("negative_int", Value(-5), "-5"),
    ("float", Value(1.5), "1.5"),
    ("whole_float", Value(2.0), "2.0"),
    ("exponent_float", Value(1e20), "1.0e+20"),
    ("small_float", Value(1e-05), "1.0e-05"),
    ("bool_true", Value(True), "true"),
    ("bool_false", Value(False), "false"),
    ("null", Value(None), "null"),
    ("string", Value("hello"), '"hello"'),
    ("string_escapes", Value('a "q" \\ ${x}\n'), r'"a \"q\" \\ \${x}\n"'),
    ("absolute_path", Value(Path("/etc/nix")), "/etc/nix"),
    ("relative_path", Value(Path("rel/x")), "./rel/x"),
    ("dot_path", Value(Path("../up")), "../up"),
    ("search_path", SearchPath("nixpkgs"), "<nixpkgs>"),
    ("ref", Ref("a.b"), "a.b"),
    ("istring", InterpolatedString([Literal("v"), Interpolation(Ref("x")), Literal("!")]), '"v${x}!"'),
    ("empty_list", List([]), "[ ]"),
    ("empty_attrset", AttrSet({}), "{ }"),
    ("empty_rec_attrset", AttrSet({}, recursive=True), "rec { }"),
    ("list", List([Value(1), Value("a")]), '[\n  1\n  "a"\n]'),
    ("list_parenthesizes_compound", List([BinaryOp(ADD, Value(1), Value(2))]), "[\n  (1 + 2)\n]"),
    ("attrset", AttrSet({"a": Value(1), "my key": Value(True)}), '{\n  a = 1;\n  "my key" = true;\n}'),
    ("keyword_key_is_quoted", AttrSet({"in": Value(1)}), '{\n  "in" = 1;\n}'),
    ("nested_attrset", AttrSet({"a": AttrSet({"b": List([Value(1)])})}, recursive=True),
     "rec {\n  a = {\n    b = [\n      1\n    ];\n  };\n}"),
    ("neg", UnaryOp(NEG, Ref("x")), "-x"),
    ("not_neg", UnaryOp(NOT, UnaryOp(NEG, Ref("x"))), "!-x"),
    ("neg_compound", UnaryOp(NEG, BinaryOp(ADD, Ref("a"), Ref("b"))), "-(a + b)"),
    ("left_assoc", BinaryOp(SUB, BinaryOp(SUB, Ref("a"), Ref("b")), Ref("c")), "a - b - c"),
    ("right_grouped", BinaryOp(SUB, Ref("a"), BinaryOp(SUB, Ref("b"), Ref("c"))), "a - (b - c)"),
    ("let_in", LetIn({"x": Value(1)}, Ref("x")), "let\n  x = 1;\nin x"),
    ("empty_let", LetIn({}, Value(1)), "let in 1"),
    ("with", With(Ref("cfg"), Ref("port")), "with cfg; port"),
    ("with_as_operand", BinaryOp(ADD, Value(1), With(Ref("s"), Ref("a"))), "1 + (with s; a)"),
]

@pytest.mark.parametrize("test_id, obj, expected", FORMAT_TEST_CASES, ids=[c[0] for c in FORMAT_TEST_CASES])
def test_pformat(printer, test_id, obj, expected):
    assert printer.pformat(obj) == expected


def test_indent_width():
    assert Printer(indent_width=4).pformat(List([Value(1)])) == "[\n    1\n]"


def test_scope_prints_as_attrset(printer):
    scope = Scope({"a": Value(1)}).extend({"b": Value(2)})
    assert printer.pformat(scope) == "{\n  a = 1;\n  b = 2;\n}"


def test_unknown_objects_use_repr(printer):
    assert printer.pformat(object).startswith("<class")


def test_escape_string():
    assert escape_string('\\"${\t\r') == '\\\\\\"\\${\\t\\r'


def test_format_key():
    assert format_key("plain-key'") == "plain-key'"
    assert format_key("with space") == '"with space"'
    assert format_key("1abc") == '"1abc"'
    assert format_key("rec") == '"rec"'


ROUND_TRIP_SOURCES = [
    ("arithmetic", "1 + 2 - 3"),
    ("grouping", "a - (b - c) + -d"),
    ("prefix", "!(-x) + --y"),
    ("floats", "1.5 + 2.0e3"),
    ("strings", r'"tab\there \"quoted\" \${not} $dollar it' + "'" + r's ${ "in" + "ner" } end"'),
    ("dotted", '{ a.b = 1; a.c = "x${y}z"; }'),
    ("rec_list", "rec { x = [ 1 -2 ./foo <nixpkgs> (1 + 1) [ ] ]; }"),
    ("let_with", "let x = 1; in with { y = x; }; x + y"),
    ("quoted_keys_and_inherit", '{ "my key" = true; inherit (config.services) enable; inherit x; }'),
    ("nested_scopes", "with a; let b = with c; d; in { e = let f = 1; in f; }"),
    ("scalars", "[ true false null /abs/path ~/home 0 ]"),
    ("quotes_before_interpolation", "\"a\\'\\'${b}\""),
    ("inherit_dotted_source", "let inherit (a.b.c) d e; in d"),
]

@pytest.mark.parametrize("test_id, source_code", ROUND_TRIP_SOURCES, ids=[c[0] for c in ROUND_TRIP_SOURCES])
def test_round_trip(printer, test_id, source_code):
    expr = parse(source_code, root_dir="/proj")
    printed = printer.pformat(expr)
    assert parse(printed, root_dir="/elsewhere") == expr
