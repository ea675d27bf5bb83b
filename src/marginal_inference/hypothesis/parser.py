"""
Hypothesis formulas.

Grammar (recursive descent, no runtime code evaluation):

    equation := expr ['=' expr]
    expr     := term (('+' | '-') term)*
    term     := unary (('*' | '/') unary)*
    unary    := ('+' | '-') unary | atom
    atom     := NUMBER | NAME | `quoted name` | '(' expr ')'

Names resolve against a symbol table built per call: the positional
shortcuts b1..bN first, then the row labels of the current estimates.
Expressions evaluate over the first axis, so the same tree serves point
estimates (N,) and draws (N, D).
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import ParseError

_TOKEN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_.][A-Za-z0-9_.]*)
  | (?P<quoted>`[^`]*`)
  | (?P<op>[-+*/()=])
    """,
    re.VERBOSE,
)
_SHORTCUT = re.compile(r"b(\d+)")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(formula: str) -> List[Token]:
    """Split a formula into tokens; unknown characters raise ParseError."""
    tokens = []
    position = 0
    while position < len(formula):
        match = _TOKEN.match(formula, position)
        if match is None:
            char = formula[position]
            raise ParseError(
                f"Unexpected character {char!r} at position {position} in {formula!r}",
                token=char,
            )
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "quoted":
            kind, text = "name", text[1:-1]
        if kind != "ws":
            tokens.append(Token(kind, text, position))
        position = match.end()
    return tokens


class SymbolTable:
    """Resolves names to row indices: b1..bN, then unique row labels."""

    def __init__(self, row_names: Sequence[str]):
        self.row_names = [str(n) for n in row_names]

    def __len__(self) -> int:
        return len(self.row_names)

    def lookup(self, name: str) -> int:
        match = _SHORTCUT.fullmatch(name)
        if match is not None:
            k = int(match.group(1))
            if not 1 <= k <= len(self):
                raise ParseError(
                    f"{name!r} is out of range: there are {len(self)} estimates (b1..b{len(self)})",
                    token=name,
                )
            return k - 1
        hits = [i for i, label in enumerate(self.row_names) if label == name]
        if len(hits) > 1:
            raise ParseError(
                f"{name!r} is ambiguous: it labels rows {[i + 1 for i in hits]}. "
                "Use the b1..bN shortcuts instead",
                token=name,
            )
        if not hits:
            raise ParseError(
                f"Unknown name {name!r}. Use b1..b{len(self)} or one of {self.row_names}",
                token=name,
            )
        return hits[0]


class Node:
    """Expression tree node."""

    def evaluate(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def linear_form(self, n: int) -> Optional[Tuple[np.ndarray, float]]:
        """(weights, constant) if the expression is affine in the rows, else None."""
        raise NotImplementedError


@dataclass(frozen=True)
class Number(Node):
    value: float

    def evaluate(self, values):
        return np.float64(self.value)

    def linear_form(self, n):
        return np.zeros(n), self.value


@dataclass(frozen=True)
class Symbol(Node):
    name: str
    index: int

    def evaluate(self, values):
        return values[self.index]

    def linear_form(self, n):
        weights = np.zeros(n)
        weights[self.index] = 1.0
        return weights, 0.0


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str
    operand: Node

    def evaluate(self, values):
        inner = self.operand.evaluate(values)
        return -inner if self.op == "-" else inner

    def linear_form(self, n):
        form = self.operand.linear_form(n)
        if form is None or self.op == "+":
            return form
        return -form[0], -form[1]


@dataclass(frozen=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, values):
        a = self.left.evaluate(values)
        b = self.right.evaluate(values)
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.op == "+":
                return a + b
            if self.op == "-":
                return a - b
            if self.op == "*":
                return a * b
            return a / b

    def linear_form(self, n):
        left = self.left.linear_form(n)
        right = self.right.linear_form(n)
        if left is None or right is None:
            return None
        (wl, cl), (wr, cr) = left, right
        if self.op == "+":
            return wl + wr, cl + cr
        if self.op == "-":
            return wl - wr, cl - cr
        if self.op == "*":
            if not wl.any():
                return cl * wr, cl * cr
            if not wr.any():
                return cr * wl, cr * cl
            return None
        if not wr.any() and cr != 0:
            return wl / cr, cl / cr
        return None


@dataclass
class Equation:
    """A parsed formula: lhs [= rhs]."""

    text: str
    lhs: Node
    rhs: Optional[Node] = None

    def tested(self, n: int) -> Tuple[Node, float]:
        """
        Expression under test and its null value.

        A constant right-hand side is the null value. Otherwise the tested
        quantity is lhs - rhs with null 0.
        """
        if self.rhs is None:
            return self.lhs, 0.0
        form = self.rhs.linear_form(n)
        if form is not None and not form[0].any():
            return self.lhs, float(form[1])
        return BinaryOp("-", self.lhs, self.rhs), 0.0


class _Parser:
    def __init__(self, formula: str, symbols: SymbolTable):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.symbols = symbols
        self.pos = 0

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError(f"Unexpected end of formula {self.formula!r}")
        self.pos += 1
        return token

    def accept(self, *ops: str) -> Optional[Token]:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text in ops:
            self.pos += 1
            return token
        return None

    def parse(self) -> Equation:
        if not self.tokens:
            raise ParseError("Empty hypothesis formula")
        lhs = self.expr()
        rhs = None
        if self.accept("="):
            rhs = self.expr()
        token = self.peek()
        if token is not None:
            raise ParseError(
                f"Unexpected {token.text!r} at position {token.position} in {self.formula!r}",
                token=token.text,
            )
        return Equation(self.formula.strip(), lhs, rhs)

    def expr(self) -> Node:
        node = self.term()
        while True:
            token = self.accept("+", "-")
            if token is None:
                return node
            node = BinaryOp(token.text, node, self.term())

    def term(self) -> Node:
        node = self.unary()
        while True:
            token = self.accept("*", "/")
            if token is None:
                return node
            node = BinaryOp(token.text, node, self.unary())

    def unary(self) -> Node:
        token = self.accept("+", "-")
        if token is not None:
            return UnaryOp(token.text, self.unary())
        return self.atom()

    def atom(self) -> Node:
        token = self.advance()
        if token.kind == "number":
            return Number(float(token.text))
        if token.kind == "name":
            return Symbol(token.text, self.symbols.lookup(token.text))
        if token.kind == "op" and token.text == "(":
            node = self.expr()
            if self.accept(")") is None:
                raise ParseError(f"Missing ')' in {self.formula!r}", token="(")
            return node
        raise ParseError(
            f"Unexpected {token.text!r} at position {token.position} in {self.formula!r}",
            token=token.text,
        )


def parse_formula(formula: str, row_names: Sequence[str]) -> Equation:
    """
    Parse a hypothesis formula against the current estimates.

    Args:
        formula: e.g. "b1 = b2", "b1 / b2 = 1", "`x1, +1` - `x2, +1`"
        row_names: One name per current estimate

    Returns:
        Equation

    Raises:
        ParseError: Syntax errors, out-of-range shortcuts, unknown or
            ambiguous names. The offending token is in `.token`.
    """
    return _Parser(formula, SymbolTable(row_names)).parse()
