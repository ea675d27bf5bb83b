"""
Hypothesis resolution.

- parser: closed-grammar formulas ("b1 = b2", "b1 / b2 = 1")
- patterns: pairwise, reference, sequential, ... weight matrices
- resolver: maps any specification to rows over the current estimates
"""

from .parser import Equation, SymbolTable, parse_formula, tokenize
from .patterns import PATTERNS, pattern_matrix
from .resolver import HypothesisRow, ResolvedHypothesis, resolve_hypothesis

__all__ = [
    "Equation",
    "SymbolTable",
    "parse_formula",
    "tokenize",
    "PATTERNS",
    "pattern_matrix",
    "HypothesisRow",
    "ResolvedHypothesis",
    "resolve_hypothesis",
]
