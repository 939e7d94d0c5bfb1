"""Query handling on top of tantivy's query parser.

Query text uses tantivy syntax: bare terms, ``"quoted phrases"``,
``path:term`` to match file names, ``+term``/``-term`` to require or
exclude a term, and ``AND``/``OR``/``NOT`` with parentheses. Without
explicit operators every term is required, like a grep over all terms.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from codeindex.engine.schema import CONTENT_FIELD, DEFAULT_FIELDS, query_validator
from codeindex.engine.types import QueryError

_TOKEN_RE = re.compile(r'[+-]?(?:[A-Za-z_]+:)?"[^"]*"\*?|\S+')
_FIELD_RE = re.compile(r"^([A-Za-z_]+):(.*)$", re.DOTALL)
_WORD_RE = re.compile(r"[^\W_]+")
_OPERATORS = frozenset({"AND", "OR", "NOT"})


def words(text: str) -> list[str]:
    """Split text the way tantivy's default tokenizer does."""
    return _WORD_RE.findall(text.lower())


@dataclass(slots=True, frozen=True)
class Clause:
    """Sequence of words that must appear together on a matching line."""

    words: tuple[str, ...]
    prefix: bool = False

    def matches(self, line_words: list[str]) -> bool:
        size = len(self.words)
        for start in range(len(line_words) - size + 1):
            window = line_words[start : start + size]
            if window[:-1] != list(self.words[:-1]):
                continue
            last = window[-1]
            if last == self.words[-1] or (self.prefix and last.startswith(self.words[-1])):
                return True
        return False


@dataclass(slots=True, frozen=True)
class Query:
    text: str
    # Expression handed to tantivy's parser
    expression: str
    clauses: tuple[Clause, ...] = field(default=())

    def line_matches(self, line: str) -> bool:
        line_words = words(line)
        return any(clause.matches(line_words) for clause in self.clauses)


def _has_operators(tokens: list[str]) -> bool:
    return any(token in _OPERATORS or token[:1] in "()" for token in tokens)


def _require_all(tokens: list[str]) -> str:
    return " ".join(token if token[:1] in "+-" else f"+{token}" for token in tokens)


def _clauses(tokens: list[str]) -> tuple[Clause, ...]:
    clauses = []
    negate_next = False
    for raw in tokens:
        token = raw.strip("()")
        if token in _OPERATORS:
            negate_next = token == "NOT"
            continue
        negated = negate_next or token.startswith("-")
        negate_next = False
        if negated or not token:
            continue

        token = token.lstrip("+")
        match = _FIELD_RE.match(token)
        if match:
            if match.group(1) != CONTENT_FIELD:
                continue
            token = match.group(2)

        prefix = token.endswith("*")
        token_words = words(token.rstrip("*").strip('"'))
        if token_words:
            clauses.append(Clause(words=tuple(token_words), prefix=prefix))
    return tuple(clauses)


def parse(text: str) -> Query:
    """Parse query text, raising QueryError if tantivy rejects it."""
    tokens = _TOKEN_RE.findall(text or "")
    if not tokens:
        raise QueryError("empty query")

    expression = " ".join(tokens) if _has_operators(tokens) else _require_all(tokens)
    try:
        query_validator().parse_query(expression, DEFAULT_FIELDS)
    except ValueError as exc:
        raise QueryError(str(exc)) from exc

    return Query(text=text, expression=expression, clauses=_clauses(tokens))
