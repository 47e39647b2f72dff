"""Filter-predicate language for collection sets.

One clause per string::

    field=value
    field!=value
    field.startsWith[value]
    field.endsWith[value]
    field.in[v1,v2,...]

Fields prefixed with ``kanji_progress.`` are read from the host's progress
record for the entry instead of from the entry itself. Evaluation is
total: a clause that cannot be parsed or applied excludes the entry.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

import msgspec

from studyindex.core.models import entry_study_key

logger = logging.getLogger(__name__)

ProgressLookup = Callable[[str], Any]


class FilterOperator(Enum):
    """Filter clause operators."""

    EQUALS = "eq"
    NOT_EQUALS = "neq"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IN = "in"


# Tried in order; the first match wins.
_CLAUSE_PATTERNS: tuple[tuple[re.Pattern[str], FilterOperator], ...] = (
    (re.compile(r"^(.+?)\.startsWith\[(.*)\]$", re.DOTALL), FilterOperator.STARTS_WITH),
    (re.compile(r"^(.+?)\.endsWith\[(.*)\]$", re.DOTALL), FilterOperator.ENDS_WITH),
    (re.compile(r"^(.+?)\.in\[(.*)\]$", re.DOTALL), FilterOperator.IN),
    (re.compile(r"^(.+?)!=(.*)$", re.DOTALL), FilterOperator.NOT_EQUALS),
    (re.compile(r"^(.+?)=(.*)$", re.DOTALL), FilterOperator.EQUALS),
)


class FilterClause(msgspec.Struct, frozen=True):
    """A single parsed filter clause."""

    field: str
    operator: FilterOperator
    value: str

    def choices(self) -> list[str]:
        """Non-empty, trimmed items of an ``in[...]`` list."""
        return [part.strip() for part in self.value.split(",") if part.strip()]


def parse_filter(text: Any) -> FilterClause | None:
    """Parse one clause.

    Args:
        text: Clause string; surrounding whitespace is ignored

    Returns:
        Parsed clause, or None if the text is blank or unrecognized
    """
    clause = str(text or "").strip()
    if not clause:
        return None
    for pattern, operator in _CLAUSE_PATTERNS:
        match = pattern.match(clause)
        if match:
            return FilterClause(field=match.group(1), operator=operator, value=match.group(2))
    return None


def _as_text(value: Any) -> str:
    """String form used for comparisons: ``True`` -> ``"true"``, ``2.0`` -> ``"2"``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_RADIX_PREFIXES = {"0x": 16, "0o": 8, "0b": 2}


def _parse_number(text: str) -> float | None:
    """Numeric value of a clause, or None if it is not a finite number.

    Blank text is ``0``. Decimal literals with optional exponents and
    unsigned ``0x``/``0o``/``0b`` integers are accepted. Digit separators
    are not.
    """
    text = text.strip()
    if not text:
        return 0.0
    base = _RADIX_PREFIXES.get(text[:2].lower())
    if base is not None:
        digits = text[2:]
        if not digits or not digits.isascii() or not digits.isalnum():
            return None
        try:
            return float(int(digits, base))
        except ValueError:
            return None
    if not _DECIMAL.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def _compare_text(operator: FilterOperator, actual: str, clause: FilterClause) -> bool:
    match operator:
        case FilterOperator.EQUALS:
            return actual == clause.value
        case FilterOperator.NOT_EQUALS:
            return actual != clause.value
        case FilterOperator.STARTS_WITH:
            return actual.startswith(clause.value)
        case FilterOperator.ENDS_WITH:
            return actual.endswith(clause.value)
        case FilterOperator.IN:
            choices = clause.choices()
            return bool(choices) and actual in choices
    return False


def _progress_equals(raw: Any, value: str) -> bool:
    if isinstance(raw, bool):
        return raw == (value.strip().lower() == "true")
    if isinstance(raw, (int, float)):
        wanted = _parse_number(value)
        return wanted is not None and raw == wanted
    if raw is None:
        return value == ""
    return _as_text(raw) == value


class FilterQuery:
    """A conjunction of filter clauses evaluated against entries."""

    def __init__(self, filters: list[Any], progress_prefix: str = "kanji_progress."):
        """Initialize query.

        Args:
            filters: Raw clause strings; all must match
            progress_prefix: Field prefix routed to progress records
        """
        self.filters = list(filters)
        self.progress_prefix = progress_prefix
        self.clauses = [parse_filter(f) for f in self.filters]

    def matches(self, entry: Any, lookup_progress: ProgressLookup | None = None) -> bool:
        """Check whether an entry satisfies every clause.

        Args:
            entry: Entry object
            lookup_progress: Study key -> progress record, or None

        Returns:
            True if all clauses match; never raises
        """
        if not isinstance(entry, Mapping):
            return False
        for clause in self.clauses:
            if clause is None:
                return False
            try:
                if clause.field.startswith(self.progress_prefix):
                    ok = self._match_progress(clause, entry, lookup_progress)
                else:
                    ok = self._match_field(clause, entry)
            except Exception:
                logger.debug("Filter clause %r failed on entry", clause, exc_info=True)
                return False
            if not ok:
                return False
        return True

    def _match_field(self, clause: FilterClause, entry: Mapping[str, Any]) -> bool:
        raw = entry.get(clause.field)
        # Only strings and numbers take part in comparisons
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            return False
        return _compare_text(clause.operator, _as_text(raw), clause)

    def _match_progress(
        self,
        clause: FilterClause,
        entry: Mapping[str, Any],
        lookup_progress: ProgressLookup | None,
    ) -> bool:
        field_name = clause.field[len(self.progress_prefix) :]
        study_key = entry_study_key(entry)
        if not study_key:
            return False

        record = lookup_progress(study_key) if lookup_progress else None
        if not isinstance(record, Mapping):
            return clause.operator is FilterOperator.NOT_EQUALS and bool(clause.value.strip())

        raw = record.get(field_name)
        match clause.operator:
            case FilterOperator.EQUALS:
                return _progress_equals(raw, clause.value)
            case FilterOperator.NOT_EQUALS:
                return not _progress_equals(raw, clause.value)
        return _compare_text(clause.operator, "" if raw is None else _as_text(raw), clause)
