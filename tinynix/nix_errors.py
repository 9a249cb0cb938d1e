"""
Exception types raised while parsing and evaluating tinynix expressions.

Parsing and evaluation are fail-fast: the first error aborts the whole call.
`NixRunner` turns these into `ExecutionResult` values for callers that want
errors as data.
"""
from typing import Optional, Sequence


class NixError(Exception):
    """Base class for every error raised by tinynix."""
    pass


class ParseError(NixError):
    """A syntax-level error, carrying the grammar rule and source location."""
    def __init__(self, message: str, rule: Optional[str] = None,
                 line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.rule = rule
        self.line = line
        self.col = col

    @property
    def location(self) -> Optional[tuple[int, int]]:
        if self.line is None or self.col is None:
            return None
        return self.line, self.col

    def __str__(self) -> str:
        if self.location and f"L{self.line}:C{self.col}" not in self.message:
            return f"{self.message} (line {self.line}, col {self.col})"
        return self.message


class AttributePathConflict(ParseError):
    """A dotted binding walks through a key that already holds a non-attrset value."""
    def __init__(self, path: Sequence[str], rule: Optional[str] = 'binding',
                 line: Optional[int] = None, col: Optional[int] = None):
        self.path = list(path)
        dotted = ".".join(self.path)
        super().__init__(f"Attribute path '{dotted}' conflicts with an existing value.",
                         rule=rule, line=line, col=col)


class EvaluationError(NixError):
    """A semantic error raised by the evaluator."""
    pass


class UndefinedVariable(EvaluationError):
    def __init__(self, name: str):
        super().__init__(f"undefined variable '{name}'")
        self.name = name


class TypeMismatch(EvaluationError):
    pass


class UnsupportedOperation(EvaluationError):
    pass


class NixFileError(NixError):
    """Reading a source file failed."""
    def __init__(self, path, reason: str):
        super().__init__(f"Failed to read file '{path}': {reason}")
        self.path = path
        self.reason = reason


__all__ = [
    "NixError",
    "ParseError",
    "AttributePathConflict",
    "EvaluationError",
    "UndefinedVariable",
    "TypeMismatch",
    "UnsupportedOperation",
    "NixFileError",
]
