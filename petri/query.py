"""
Trait queries: equation + aggregation mode -> one reported value.

TraitQueryBuilder ties the pieces together. Given a trait name or equation
and a mode string it
1. expands ${...} macros in the equation,
2. picks a representation: a bare non-numeric trait is read as quoted
   text, anything else is compiled as a numeric equation,
3. attaches the reducer for the mode,
and returns a function applicable to a Population or a Collection.

Problems found while building or applying a query are reported through
the notifier and the query yields a type-appropriate default, so a bad
query never stops a run.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .aggregation import build_collect_fun
from .constants import TRAIT_DEFAULT_MODE
from .diagnostics import Notifier
from .equation import EquationCompiler, Equation
from .errors import ConfigError
from .layout import DataLayout
from .organism import Organism, Population, Collection
from .values import to_literal, from_literal, format_number

Target = Union[Population, Collection]

_EMPTY = object()


def _members(target: Target) -> List[Organism]:
    if isinstance(target, Population):
        return target.organisms
    return list(target)


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return format_number(result)


def _to_number(result: Any) -> float:
    if isinstance(result, str):
        try:
            return float(from_literal(result))
        except ValueError:
            return 0.0
    return float(result)


@dataclass(frozen=True)
class QueryFunction:
    """A named scalar query exposed to configuration scripts"""
    name: str
    mode: str
    as_text: bool
    description: str


# Scalar queries available on populations and collections
QUERY_FUNCTIONS: List[QueryFunction] = [
    QueryFunction('TRAIT', TRAIT_DEFAULT_MODE, True,
                  "Return the value of the provided trait for the first organism."),
    QueryFunction('CALC_RICHNESS', 'richness', False,
                  "Count the number of distinct values of a trait (or equation)."),
    QueryFunction('CALC_MODE', 'mode', True,
                  "Identify the most common value of a trait (or equation)."),
    QueryFunction('CALC_MEAN', 'mean', False,
                  "Calculate the average value of a trait (or equation)."),
    QueryFunction('CALC_MIN', 'min', False,
                  "Find the smallest value of a trait (or equation)."),
    QueryFunction('CALC_MAX', 'max', False,
                  "Find the largest value of a trait (or equation)."),
    QueryFunction('ID_MIN', 'min_id', False,
                  "Find the index of the smallest value of a trait (or equation)."),
    QueryFunction('ID_MAX', 'max_id', False,
                  "Find the index of the largest value of a trait (or equation)."),
    QueryFunction('CALC_MEDIAN', 'median', False,
                  "Find the 50-percentile value of a trait (or equation)."),
    QueryFunction('CALC_VARIANCE', 'variance', False,
                  "Find the variance of the distribution of values of a trait (or equation)."),
    QueryFunction('CALC_STDDEV', 'stddev', False,
                  "Find the standard deviation of the values of a trait (or equation)."),
    QueryFunction('CALC_SUM', 'sum', False,
                  "Add up the total value of a trait (or equation)."),
    QueryFunction('CALC_ENTROPY', 'entropy', False,
                  "Determine the entropy of values for a trait (or equation)."),
]


class TraitQueryBuilder:
    """
    Builds population/collection queries from trait equations.

    Args:
        preprocess_fun: Macro expansion applied to every equation
        compiler: Equation compiler (default: EquationCompiler())
        notifier: Diagnostic channel for query errors
    """

    def __init__(
        self,
        preprocess_fun: Optional[Callable[[str], str]] = None,
        compiler: Optional[EquationCompiler] = None,
        notifier: Optional[Notifier] = None
    ):
        self._preprocess = preprocess_fun if preprocess_fun is not None else (lambda text: text)
        self.compiler = compiler if compiler is not None else EquationCompiler()
        self.notifier = notifier if notifier is not None else Notifier()

    def build_trait_equation(self, layout: DataLayout, equation: str) -> Equation:
        """
        Compile an equation (after macro expansion) into a per-organism function.

        Raises:
            ConfigError: If the equation cannot be compiled against the layout
        """
        return self.compiler.build(layout, self._preprocess(equation))

    def get_equation_traits(self, equation: str):
        """Trait names used by an equation"""
        return self.compiler.names_used(self._preprocess(equation))

    @staticmethod
    def _is_text_trait(layout: DataLayout, text: str) -> bool:
        return text.isidentifier() and layout.has_name(text) and not layout.is_numeric(text)

    @staticmethod
    def _text_accessor(layout: DataLayout, name: str) -> Callable[[Organism], str]:
        slot = layout.get_id(name)
        type_info = layout.get_entry(slot).type_info
        return lambda org: to_literal(type_info.to_string(org.values[slot]))

    def build_trait_summary(
        self,
        trait_fun: str,
        mode: str,
        layout: DataLayout,
        as_text: bool = True
    ) -> Callable[..., Any]:
        """
        Build summary(target, default=None) for a trait (or equation) and mode.

        Args:
            trait_fun: Trait name or equation
            mode: Aggregation mode string (see aggregation.py)
            layout: Data layout the targets are built on
            as_text: Return results as text (True) or as floats (False)

        Returns:
            Function of a Population or Collection. Empty targets and
            failed queries give `default`, or '' / 0.0 when none is passed.
        """
        trait_fun = self._preprocess(trait_fun).strip()
        zero = '' if as_text else 0.0

        try:
            if self._is_text_trait(layout, trait_fun):
                textual = True
                value_fun = self._text_accessor(layout, trait_fun)
                other_builder = lambda name: self._text_accessor(layout, name)
            else:
                textual = False
                value_fun = self.compiler.build(layout, trait_fun)
                other_builder = lambda name: self.compiler.build(layout, name)
            collect = build_collect_fun(mode, value_fun, textual, other_builder)
        except ConfigError as e:
            self.notifier.error(type(e)(f"{e} (mode '{mode}', trait '{trait_fun}')"))
            return lambda target, default=None: zero if default is None else default

        def summary(target: Target, default: Any = None) -> Any:
            fallback = zero if default is None else default
            try:
                result = collect(_members(target), _EMPTY)
            except ConfigError as e:
                self.notifier.error(type(e)(f"{e} (mode '{mode}', trait '{trait_fun}')"))
                return fallback
            if result is _EMPTY:
                return fallback
            return _to_text(result) if as_text else _to_number(result)

        return summary

    def build_trait_function(self, fun_type: str, default: Any = None, as_text: bool = False):
        """
        Build query(target, equation) for a fixed mode.

        The target's own data layout is used, and an empty target returns
        `default` without compiling anything.
        """
        if default is None:
            default = '' if as_text else 0.0

        def query(target: Target, equation: str) -> Any:
            if target.is_empty():
                return default
            summary = self.build_trait_summary(equation, fun_type, target.get_data_layout(), as_text)
            return summary(target, default)

        return query

    def _find_extreme(self, target: Target, equation: str, mode: str) -> Collection:
        if target.is_empty():
            return Collection()
        summary = self.build_trait_summary(equation, mode, target.get_data_layout(), as_text=False)
        return target.iterator_at(int(summary(target)))

    def find_min(self, target: Target, equation: str) -> Collection:
        """Single-organism collection holding the organism with the minimum value"""
        return self._find_extreme(target, equation, 'min_id')

    def find_max(self, target: Target, equation: str) -> Collection:
        """Single-organism collection holding the organism with the maximum value"""
        return self._find_extreme(target, equation, 'max_id')

    def filter(self, target: Target, equation: str) -> Collection:
        """Collection of the organisms for which the equation is non-zero, in order"""
        out = Collection()
        if target.is_empty():
            return out
        try:
            keep = self.build_trait_equation(target.get_data_layout(), equation)
        except ConfigError as e:
            self.notifier.error(type(e)(f"{e} (filter '{equation}')"))
            return out

        if isinstance(target, Population):
            positions = [(target, i) for i in range(len(target))]
        else:
            positions = target.positions
        for pop, index in positions:
            if keep(pop.organisms[index]):
                out.insert(pop, index)
        return out

    def member_functions(self) -> Dict[str, tuple]:
        """
        Script-callable query functions.

        Returns:
            Dict of name -> (function(target, equation), description)
        """
        functions = {
            qf.name: (self.build_trait_function(qf.mode, as_text=qf.as_text), qf.description)
            for qf in QUERY_FUNCTIONS
        }
        functions['FIND_MIN'] = (
            self.find_min,
            "Produce OrgList with just the org with the minimum value of the provided function."
        )
        functions['FIND_MAX'] = (
            self.find_max,
            "Produce OrgList with just the org with the maximum value of the provided function."
        )
        functions['FILTER'] = (
            self.filter,
            "Produce OrgList with just the orgs that pass through the filter criteria."
        )
        return functions
