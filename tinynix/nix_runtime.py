"""
Entry points for parsing and evaluating tinynix source.

The module-level `parse`, `parse_file` and `evaluate` functions raise
`NixError` subclasses. `NixRunner.run` drives the whole pipeline and reports
the outcome as an `ExecutionResult` instead of raising.
"""
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Union

from koine import Parser

from tinynix.nix_datatypes import Scope, Expression
from tinynix.nix_errors import ParseError, EvaluationError, NixFileError
from tinynix.nix_interpreter import Evaluator
from tinynix.nix_transformer import NixTransformer

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "nix_grammar.yaml"

_KOINE_LOCATION = re.compile(r"L(\d+):C(\d+)")
_KOINE_RULE = re.compile(r"[Rr]ule '([^']+)'")

ScopeLike = Union[Scope, Mapping[str, Expression], None]
Token = Dict[str, Any]


def grammar_path() -> Path:
    override = os.environ.get("TINYNIX_GRAMMAR")
    return Path(override) if override else GRAMMAR_PATH


def parse_error_from_koine(parse_out: dict) -> ParseError:
    """Builds a ParseError from a failed koine parse result."""
    message = (parse_out or {}).get('message') or str(parse_out)
    line = col = None
    loc = _KOINE_LOCATION.search(message)
    if loc:
        line, col = int(loc.group(1)), int(loc.group(2))
    rule = _KOINE_RULE.search(message)
    return ParseError(message, rule=rule.group(1) if rule else None, line=line, col=col)


def as_scope(scope: ScopeLike) -> Scope:
    if scope is None:
        return Scope()
    if isinstance(scope, Scope):
        return scope
    if isinstance(scope, Mapping):
        return Scope(scope)
    raise TypeError(f"scope must be a Scope, a mapping or None, not {type(scope).__name__}")


# ===================================================================
# Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of running a tinynix expression."""
    status: Literal['success', 'error']
    value: Optional[Expression] = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    error: Optional[BaseException] = None

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class NixRunner:
    """Parses, transforms and evaluates tinynix source."""

    _parser: Optional[Parser] = None

    def __init__(self, root_dir=None):
        self.root_dir = Path(root_dir) if root_dir is not None else Path.cwd()
        self.transformer = NixTransformer(self.root_dir)
        self.evaluator = Evaluator()

    @classmethod
    def get_parser(cls) -> Parser:
        if cls._parser is None:
            cls._parser = Parser.from_file(str(grammar_path()))
        return cls._parser

    def _dbg(self, *parts):
        self.evaluator._dbg(*parts)

    def parse(self, source: str) -> Expression:
        self._dbg("parse:", f"{len(source)} chars", "root_dir:", self.root_dir)
        parse_out = self.get_parser().parse(source)
        if parse_out.get('status') != 'success':
            raise parse_error_from_koine(parse_out)
        return self.transformer.transform(parse_out['ast'])

    def evaluate(self, expression: Expression, scope: ScopeLike = None) -> Expression:
        scope = as_scope(scope)
        self._dbg("eval:", type(expression).__name__, "scope:", list(scope.keys()))
        return self.evaluator.eval(expression, scope)

    def run(self, source: str, scope: ScopeLike = None) -> ExecutionResult:
        try:
            expression = self.parse(source)
        except ParseError as e:
            return self._error_result(e, self._format_parse_error(e, source), e.line, e.col, e.rule)
        except RecursionError as e:
            return self._error_result(e, "RecursionError: expression is nested too deeply to parse")

        try:
            value = self.evaluate(expression, scope)
        except EvaluationError as e:
            return self._runtime_error_result(e, source)
        except RecursionError as e:
            return self._error_result(e, "RecursionError: expression is nested too deeply to evaluate")

        self._dbg("result:", value)
        return ExecutionResult('success', value=value)

    # --- Error formatting ---

    def _error_result(self, e, message, line=None, col=None, tag=None) -> ExecutionResult:
        token = None
        if line is not None:
            token = {'line': line, 'col': col, 'tag': tag, 'text': None}
        self._dbg("error:", message.splitlines()[0])
        return ExecutionResult('error', error_message=message, error_token=token, error=e)

    def _format_parse_error(self, e: ParseError, source: str) -> str:
        base = f"ParseError: {e}"
        if e.line is not None and e.col is not None:
            context = self._source_context(source, e.line, e.col)
            return f"{base}\n{context}" if context else base
        return base

    def _runtime_error_result(self, e: EvaluationError, source: str) -> ExecutionResult:
        msg = f"{type(e).__name__}: {e}"
        node = getattr(e, 'node', None)
        if node is None:
            # Fall back to the last node the evaluator visited.
            node = self.evaluator.current_node
        loc = getattr(node, 'loc', None) if node is not None else None
        if not loc:
            return self._error_result(e, msg)
        line, col = loc.get('line'), loc.get('col')
        msg = f"{msg}\n(line {line}, col {col})\n{self._source_context(source, line, col)}"
        result = self._error_result(e, msg)
        result.error_token = {'line': line, 'col': col, 'tag': loc.get('tag'), 'text': loc.get('text')}
        return result

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)


# ===================================================================
# Module-level API
# ===================================================================

def parse(source: str, root_dir=None) -> Expression:
    """Parses tinynix source into an AST. Raises ParseError."""
    return NixRunner(root_dir).parse(source)


def parse_file(path, root_dir=None) -> Expression:
    """Reads a UTF-8 source file and parses it.

    Relative path literals resolve against `root_dir`, which defaults to the
    directory holding the file.
    """
    path = Path(path)
    try:
        source = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise NixFileError(path, str(e)) from e
    return parse(source, root_dir if root_dir is not None else path.absolute().parent)


def evaluate(expression: Expression, scope: ScopeLike = None) -> Expression:
    """Reduces an AST to a value-only AST. Raises EvaluationError."""
    return Evaluator().eval(expression, as_scope(scope))


__all__ = [
    "GRAMMAR_PATH",
    "ExecutionResult",
    "NixRunner",
    "parse",
    "parse_file",
    "evaluate",
]
