"""Field predicates: the single-field tests rules are built from.

A rule field left out of a policy document is a wildcard and has no
predicate. Every field that is present is compiled once, at policy load
time, into one of a closed set of predicate variants chosen by the field's
declared kind (see ``FieldKind``):

- StringEquals: trimmed, case-insensitive text equality
- EnumEquals: symbolic-name equality for CycloneDX enumerations
- NumericEquals: float equality
- NumericRange: conjunction of ``>=N <=N >N <N N`` clauses
- SetIntersection: any rule value equals any asset value
- TransformSuperset: asset IKEv2 references cover the rule's, per transform

``field_matches`` keeps the dynamic ``matches(expected, actual)`` contract
for callers that compare ad-hoc values without a compiled rule.
"""

import operator
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from crypto_compliance_engine.core.assets import SymbolEnum, normalize_symbol
from crypto_compliance_engine.core.interfaces import IFieldPredicate

# Characters that mark a string as a range expression candidate
_RANGE_TOKENS = (">", "<", "=")

_CLAUSE_PATTERN = re.compile(r"^(>=|<=|==|>|<|=)?(\d+(?:\.\d+)?)$")
_OPERATOR_GAP = re.compile(r"(>=|<=|==|>|<|=)\s+")
_NON_NUMERIC = re.compile(r"[^0-9.]")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
    "==": operator.eq,
    "": operator.eq,
}


def _fold(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.name
    return str(value).strip().lower()


def has_range_token(text: str) -> bool:
    """Return True if ``text`` contains a range operator character."""
    return any(token in text for token in _RANGE_TOKENS)


@dataclass(frozen=True)
class RangeClause:
    """One ``<op><bound>`` clause of a range expression."""

    op: str
    bound: float

    def holds(self, value: float) -> bool:
        return _OPERATORS[self.op](value, self.bound)


def parse_range(expression: str) -> tuple[RangeClause, ...] | None:
    """Parse a range expression such as ``">=128 <512"``.

    Clauses are separated by whitespace; whitespace between an operator and
    its number is tolerated (``">= 128"``).

    Args:
        expression: The expression text.

    Returns:
        The parsed clauses, or None if any clause is malformed or the
        expression is empty.
    """
    compact = _OPERATOR_GAP.sub(r"\1", expression.strip())
    if not compact:
        return None

    clauses: list[RangeClause] = []
    for token in compact.split():
        match = _CLAUSE_PATTERN.match(token)
        if match is None:
            return None
        clauses.append(RangeClause(op=match.group(1) or "", bound=float(match.group(2))))
    return tuple(clauses)


def extract_number(actual: Any) -> float | None:
    """Read a number out of an asset value.

    Numbers are used as-is. Text has every non-numeric character stripped
    first, so ``"AES-256"`` reads as 256.

    Args:
        actual: Asset property value.

    Returns:
        The numeric value, or None if no number can be read.
    """
    if actual is None or isinstance(actual, bool):
        return None
    if isinstance(actual, (int, float)):
        return float(actual)
    digits = _NON_NUMERIC.sub("", str(actual))
    if not digits:
        return None
    try:
        return float(digits)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Predicate variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StringEquals:
    """Case-insensitive equality against the text of the asset value."""

    expected: str

    def matches(self, actual: Any) -> bool:
        if actual is None:
            return False
        return _fold(actual) == _fold(self.expected)


@dataclass(frozen=True)
class EnumEquals:
    """Equality on the normalized symbol of an enumerated asset value."""

    expected: SymbolEnum

    def matches(self, actual: Any) -> bool:
        if actual is None:
            return False
        return normalize_symbol(actual) == self.expected.name


@dataclass(frozen=True)
class NumericEquals:
    """Exact numeric equality; booleans and non-numeric values never match."""

    expected: float

    def matches(self, actual: Any) -> bool:
        if actual is None or isinstance(actual, bool):
            return False
        try:
            return float(actual) == self.expected
        except (TypeError, ValueError):
            return False


@dataclass(frozen=True)
class NumericRange:
    """All clauses must hold against the number read from the asset value."""

    expression: str
    clauses: tuple[RangeClause, ...]

    def matches(self, actual: Any) -> bool:
        value = extract_number(actual)
        if value is None:
            return False
        return all(clause.holds(value) for clause in self.clauses)


@dataclass(frozen=True)
class SetIntersection:
    """Matches when the asset lists at least one of the rule's values.

    Attributes:
        expected: Normalized rule values.
        symbolic: Compare as enumeration symbols rather than free text.
    """

    expected: frozenset[str]
    symbolic: bool = False

    def matches(self, actual: Any) -> bool:
        if not actual:
            return False
        if isinstance(actual, (str, Enum)):
            actual = (actual,)
        normalize = normalize_symbol if self.symbolic else _fold
        return any(normalize(value) in self.expected for value in actual)


@dataclass(frozen=True)
class TransformSuperset:
    """IKEv2 transform predicate.

    For every transform type the rule names, the asset must define the same
    transform type and reference at least all of the rule's algorithms.
    """

    expected: tuple[tuple[str, frozenset[str]], ...]

    def matches(self, actual: Any) -> bool:
        if not isinstance(actual, Mapping):
            return False
        defined = {_fold(key): {_fold(ref) for ref in refs} for key, refs in actual.items()}
        for transform_type, refs in self.expected:
            asset_refs = defined.get(transform_type)
            if asset_refs is None or not refs.issubset(asset_refs):
                return False
        return True


# ---------------------------------------------------------------------------
# Load-time compilation
# ---------------------------------------------------------------------------


class FieldKind(str, Enum):
    STRING = "string"
    ENUM = "enum"
    NUMBER = "number"
    SYMBOL_SET = "symbol_set"
    NAME_SET = "name_set"
    TRANSFORMS = "transforms"


@dataclass(frozen=True)
class FieldSpec:
    """Declared semantic type of one rule field.

    Attributes:
        kind: Which predicate family the field compiles to.
        enum: Vocabulary for ENUM and SYMBOL_SET fields.
    """

    kind: FieldKind
    enum: type[SymbolEnum] | None = None


def _as_list(raw: Any) -> list[Any]:
    if isinstance(raw, (str, Mapping)):
        return [raw]
    if isinstance(raw, Iterable):
        return list(raw)
    return [raw]


def _resolve_symbol(enum: type[SymbolEnum], raw: Any) -> SymbolEnum:
    member = enum.from_symbol(raw) if isinstance(raw, str) else None
    if member is None:
        raise ValueError(f"'{raw}' is not a recognized {enum.__name__} value")
    return member


def _compile_text(raw: str) -> IFieldPredicate:
    if has_range_token(raw):
        clauses = parse_range(raw)
        if clauses is not None:
            return NumericRange(expression=raw.strip(), clauses=clauses)
    return StringEquals(raw)


def compile_predicate(spec: FieldSpec, raw: Any) -> IFieldPredicate:
    """Compile one document value into a predicate.

    Args:
        spec: The field's declared kind.
        raw: Value taken from the policy document.

    Returns:
        The compiled predicate.

    Raises:
        ValueError: If the value does not fit the field kind (e.g. an
            unrecognized enumeration symbol).
    """
    if spec.kind is FieldKind.STRING:
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise ValueError(f"expected text, got {type(raw).__name__}")
        return _compile_text(str(raw))

    if spec.kind is FieldKind.ENUM:
        assert spec.enum is not None
        return EnumEquals(_resolve_symbol(spec.enum, raw))

    if spec.kind is FieldKind.NUMBER:
        if isinstance(raw, bool):
            raise ValueError("expected a number or range expression, got a boolean")
        if isinstance(raw, (int, float)):
            return NumericEquals(float(raw))
        if isinstance(raw, str):
            clauses = parse_range(raw)
            if clauses is not None:
                return NumericRange(expression=raw.strip(), clauses=clauses)
            # Malformed ranges degrade to literal comparison
            return StringEquals(raw)
        raise ValueError(f"expected a number or range expression, got {type(raw).__name__}")

    if spec.kind is FieldKind.SYMBOL_SET:
        assert spec.enum is not None
        values = _as_list(raw)
        if not values:
            raise ValueError("must list at least one value")
        return SetIntersection(
            frozenset(_resolve_symbol(spec.enum, value).name for value in values),
            symbolic=True,
        )

    if spec.kind is FieldKind.NAME_SET:
        names = [
            value.get("name") if isinstance(value, Mapping) else value
            for value in _as_list(raw)
        ]
        if not names or any(not isinstance(name, str) for name in names):
            raise ValueError("must list at least one name")
        return SetIntersection(frozenset(_fold(name) for name in names))

    if spec.kind is FieldKind.TRANSFORMS:
        if not isinstance(raw, Mapping) or not raw:
            raise ValueError("must be a table of transform type -> references")
        expected: list[tuple[str, frozenset[str]]] = []
        for transform_type, refs in raw.items():
            if isinstance(refs, Mapping):
                refs = refs.get("ref") or []
            expected.append((_fold(transform_type), frozenset(_fold(r) for r in _as_list(refs))))
        return TransformSuperset(tuple(expected))

    raise ValueError(f"unsupported field kind {spec.kind}")


# ---------------------------------------------------------------------------
# Dynamic matching
# ---------------------------------------------------------------------------


def field_matches(expected: Any, actual: Any) -> bool:
    """Compare a rule value with an asset value by their runtime types.

    Args:
        expected: Rule value; None is a wildcard.
        actual: Asset value.

    Returns:
        Whether the asset value satisfies the rule value.
    """
    if expected is None:
        return True
    if actual is None:
        return False

    # Text rule values may be range expressions, which also apply to numbers
    if isinstance(expected, str) and not isinstance(actual, Enum):
        return _compile_text(expected).matches(actual)

    if isinstance(expected, Enum) and isinstance(actual, Enum):
        return normalize_symbol(expected) == normalize_symbol(actual)

    numeric = (int, float)
    if (
        isinstance(expected, numeric)
        and isinstance(actual, numeric)
        and not isinstance(expected, bool)
        and not isinstance(actual, bool)
    ):
        return float(expected) == float(actual)

    return _fold(expected) == _fold(actual)
