"""
Aggregation modes: how per-organism results combine into one value.

A mode string is parsed once, when a query is built, into an
AggregationMode. Mode grammar, in priority order:

    <none>       : value for the first organism in the collection
    [ID]         : value for the organism at that index
    [OP][VALUE]  : count organisms whose value has the OP relation to VALUE
                   (OP is ==, !=, <, >, <= or >=; VALUE is a number)
    [OP][TRAIT]  : count organisms whose value has the OP relation to the
                   same organism's TRAIT
    unique       : number of distinct values (alias: richness)
    mode         : most common value (aliases: dom, dominant)
    min, max     : smallest / largest value
    min_id, max_id : index of the smallest / largest value
    mean         : average value (aliases: ave, average)
    median       : 50th percentile value
    variance     : population variance
    stddev       : population standard deviation
    sum          : summation of all values (alias: total)
    entropy      : Shannon entropy of the value distribution (bits)
    :TRAIT       : mutual information with another trait (bits)

Ties: mode picks the first value to reach the top count; min_id and
max_id pick the first occurrence.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
import operator
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from .constants import (
    MODE_ALIASES, COMPARISON_OPERATORS, MUTUAL_INFO_PREFIX,
    ENTROPY_LOG_BASE, NUMERIC_ONLY_REDUCERS
)
from .errors import (
    UnknownAggregationModeError, IndexOutOfRangeError, TraitTypeError,
    UnknownTraitReferenceError
)
from .values import from_literal, format_number


class AggregationKind(Enum):
    FIRST = 'first'
    INDEX = 'index'
    COMPARE = 'compare'
    UNIQUE = 'unique'
    MODE = 'mode'
    MIN = 'min'
    MAX = 'max'
    MIN_ID = 'min_id'
    MAX_ID = 'max_id'
    MEAN = 'mean'
    MEDIAN = 'median'
    VARIANCE = 'variance'
    STDDEV = 'stddev'
    SUM = 'sum'
    ENTROPY = 'entropy'
    MUTUAL_INFO = 'mutual_info'


@dataclass(frozen=True)
class AggregationMode:
    """
    Parsed mode selector.

    Attributes:
        kind: Which reduction to perform
        text: Original mode string
        index: Position for INDEX
        operator: Comparison operator for COMPARE
        operand: Literal right-hand side for COMPARE (float or str)
        trait: Other trait for COMPARE against a trait, or MUTUAL_INFO
    """
    kind: AggregationKind
    text: str = ''
    index: Optional[int] = None
    operator: Optional[str] = None
    operand: Any = None
    trait: Optional[str] = None

    @property
    def numeric_only(self) -> bool:
        return self.kind.value in NUMERIC_ONLY_REDUCERS


_OPERATOR_FUNS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '>': operator.gt,
    '<=': operator.le,
    '>=': operator.ge,
}


def _parse_operand(text: str):
    """Float for numeric literals, str for quoted literals, None otherwise"""
    try:
        return float(text)
    except ValueError:
        pass
    if len(text) >= 2 and text[0] == text[-1] and text[0] in '"\'':
        return from_literal('"' + text[1:-1] + '"')
    return None


def parse_mode(mode: Optional[str]) -> AggregationMode:
    """
    Parse a mode string.

    Raises:
        UnknownAggregationModeError: If the string matches no mode form
    """
    text = (mode or '').strip()

    if not text:
        return AggregationMode(AggregationKind.FIRST, text)

    if text.isdigit():
        return AggregationMode(AggregationKind.INDEX, text, index=int(text))

    for op in COMPARISON_OPERATORS:
        if text.startswith(op):
            rest = text[len(op):].strip()
            operand = _parse_operand(rest)
            if operand is not None:
                return AggregationMode(AggregationKind.COMPARE, text, operator=op, operand=operand)
            if rest.isidentifier():
                return AggregationMode(AggregationKind.COMPARE, text, operator=op, trait=rest)
            raise UnknownAggregationModeError(
                f"Comparison mode '{text}' needs a number or trait name after '{op}'."
            )

    if text.startswith(MUTUAL_INFO_PREFIX):
        other = text[len(MUTUAL_INFO_PREFIX):].strip()
        if other.isidentifier():
            return AggregationMode(AggregationKind.MUTUAL_INFO, text, trait=other)
        raise UnknownAggregationModeError(f"Mutual information mode '{text}' needs a trait name.")

    canonical = MODE_ALIASES.get(text.lower())
    if canonical is None:
        raise UnknownAggregationModeError(f"Unknown aggregation mode '{text}'.")
    return AggregationMode(AggregationKind(canonical), text)


# ============================================================================
# Reducers over a list of per-organism values
# ============================================================================

def _count_unique(values: List[Any]) -> int:
    return len(set(values))


def _dominant(values: List[Any]) -> Any:
    counts: Dict[Any, int] = {}
    best, best_count = values[0], 0
    for value in values:
        counts[value] = counts.get(value, 0) + 1
        if counts[value] > best_count:
            best, best_count = value, counts[value]
    return best


def _min_id(values: List[Any]) -> int:
    return values.index(min(values))


def _max_id(values: List[Any]) -> int:
    return values.index(max(values))


def _as_array(values: List[Any]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _entropy(values: List[Any]) -> float:
    counts = np.array(list(Counter(values).values()), dtype=np.float64)
    p = counts / counts.sum()
    return float(-(p * np.log(p)).sum() / np.log(ENTROPY_LOG_BASE)) + 0.0


_VALUE_REDUCERS: Dict[AggregationKind, Callable[[List[Any]], Any]] = {
    AggregationKind.UNIQUE: _count_unique,
    AggregationKind.MODE: _dominant,
    AggregationKind.MIN: min,
    AggregationKind.MAX: max,
    AggregationKind.MIN_ID: _min_id,
    AggregationKind.MAX_ID: _max_id,
    AggregationKind.MEAN: lambda v: float(np.mean(_as_array(v))),
    AggregationKind.MEDIAN: lambda v: float(np.median(_as_array(v))),
    AggregationKind.VARIANCE: lambda v: float(np.var(_as_array(v))),
    AggregationKind.STDDEV: lambda v: float(np.std(_as_array(v))),
    AggregationKind.SUM: lambda v: float(np.sum(_as_array(v))),
    AggregationKind.ENTROPY: _entropy,
}

# Kinds that need more than the value list
_SPECIAL_KINDS = {
    AggregationKind.FIRST, AggregationKind.INDEX,
    AggregationKind.COMPARE, AggregationKind.MUTUAL_INFO,
}


def mutual_information(values: Sequence[Any], others: Sequence[Any]) -> float:
    """Mutual information (bits) between two paired value sequences"""
    n = len(values)
    joint = Counter(zip(values, others))
    px = Counter(values)
    py = Counter(others)
    total = 0.0
    for (x, y), count in joint.items():
        total += (count / n) * np.log(count * n / (px[x] * py[y]))
    return float(total / np.log(ENTROPY_LOG_BASE)) + 0.0


def _compare_value(value: Any, textual: bool) -> Any:
    return from_literal(value) if textual else value


def build_collect_fun(
    mode,
    value_fun: Callable[[Any], Any],
    textual: bool = False,
    trait_fun_builder: Optional[Callable[[str], Callable[[Any], Any]]] = None
) -> Callable[..., Any]:
    """
    Build a function that evaluates value_fun over a collection and
    reduces the results according to mode.

    Args:
        mode: Mode string or parsed AggregationMode
        value_fun: Per-organism value (float, or quoted literal if textual)
        textual: Whether value_fun produces text
        trait_fun_builder: Builds the per-organism function for a trait
            named inside the mode (comparisons and mutual information)

    Returns:
        collect(organisms, default=None) -> value; returns default for an
        empty collection without evaluating anything.

    Raises:
        UnknownAggregationModeError: Unparseable mode
        TraitTypeError: Numeric-only mode applied to textual values
        UnknownTraitReferenceError: Mode names a trait that cannot be built
    """
    parsed = mode if isinstance(mode, AggregationMode) else parse_mode(mode)

    if textual and parsed.numeric_only:
        raise TraitTypeError(f"Mode '{parsed.text}' requires numeric values.")

    other_fun = None
    if parsed.trait is not None:
        if trait_fun_builder is None:
            raise UnknownTraitReferenceError(f"Mode '{parsed.text}' refers to trait '{parsed.trait}'.")
        other_fun = trait_fun_builder(parsed.trait)

    literal_right = parsed.operand
    if parsed.kind == AggregationKind.COMPARE and other_fun is None:
        if textual and not isinstance(literal_right, str):
            literal_right = format_number(literal_right)
        elif not textual and isinstance(literal_right, str):
            raise TraitTypeError(f"Mode '{parsed.text}' compares numbers to text.")

    kind = parsed.kind

    def collect(organisms, default=None):
        orgs = organisms if isinstance(organisms, list) else list(organisms)
        if not orgs:
            return default

        if kind == AggregationKind.FIRST:
            return value_fun(orgs[0])

        if kind == AggregationKind.INDEX:
            if parsed.index >= len(orgs):
                raise IndexOutOfRangeError(
                    f"Index {parsed.index} out of range for collection of size {len(orgs)}."
                )
            return value_fun(orgs[parsed.index])

        values = [value_fun(org) for org in orgs]

        if kind == AggregationKind.COMPARE:
            op = _OPERATOR_FUNS[parsed.operator]
            if other_fun is not None:
                rights = [_compare_value(other_fun(org), textual) for org in orgs]
            else:
                rights = [literal_right] * len(orgs)
            return sum(1 for v, r in zip(values, rights) if op(_compare_value(v, textual), r))

        if kind == AggregationKind.MUTUAL_INFO:
            return mutual_information(values, [other_fun(org) for org in orgs])

        return _VALUE_REDUCERS[kind](values)

    collect.mode = parsed
    return collect
