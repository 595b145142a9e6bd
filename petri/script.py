"""
Configuration script host.

ConfigScript is the narrow bridge between configuration scripts and the
trait core: it owns the preprocess/execute pair used for ${...} macros and
exposes the query functions (TRAIT, CALC_MEAN, FILTER, ...) as member
functions of the Population and OrgList script types.

The full script language is not part of this package. By default,
execute() evaluates a single expression over the script's variables;
pass `execute=` to plug in a real interpreter.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from .constants import POPULATION_TYPE_NAME, COLLECTION_TYPE_NAME
from .diagnostics import Notifier
from .equation import EquationCompiler, Equation
from .errors import ConfigError
from .layout import DataLayout, LayoutEntry
from .organism import Organism
from .preprocess import preprocess as preprocess_text
from .query import TraitQueryBuilder
from .values import format_number, infer_value_type


class ConfigScript:
    """
    Script-side entry point for queries and macro expansion.

    Example:
        script = ConfigScript(variables={'threshold': 10})
        script.preprocess("x>${threshold}")                  # "x>10"
        script.call('Population', 'CALC_MEAN', pop, 'fitness')
    """

    def __init__(
        self,
        execute: Optional[Callable[[str], Any]] = None,
        variables: Optional[Dict[str, Any]] = None,
        notifier: Optional[Notifier] = None
    ):
        """
        Args:
            execute: External evaluator for ${...} contents (text -> result)
            variables: Script variables visible to the default evaluator
            notifier: Diagnostic channel (shared with the query builder)
        """
        self.variables: Dict[str, Any] = dict(variables or {})
        self.notifier = notifier if notifier is not None else Notifier()
        self.compiler = EquationCompiler()
        self.queries = TraitQueryBuilder(self.preprocess, self.compiler, self.notifier)

        self.update: int = 0
        self.exit_requested: bool = False

        self._execute = execute
        self._functions: Dict[str, Tuple[Callable, str]] = {}
        self._member_functions: Dict[str, Dict[str, Tuple[Callable, str]]] = {
            POPULATION_TYPE_NAME: {},
            COLLECTION_TYPE_NAME: {},
        }
        self._initialize()

    # ------------------------------------------------------------------
    # Macro expansion
    # ------------------------------------------------------------------

    def preprocess(self, text: str) -> str:
        """Replace each ${...} with its evaluated text; $$ becomes $."""
        return preprocess_text(text, self.execute)

    def execute(self, text: str) -> str:
        """Evaluate the inside of a ${...} span and return the result as text."""
        if self._execute is not None:
            result = self._execute(text)
            return result if isinstance(result, str) else format_number(result)
        return self.evaluate(text)

    def evaluate(self, text: str) -> str:
        """
        Default evaluator: one expression over the script variables.

        Nested ${...} inside the expression are expanded first. A bare
        variable name returns its value as text (strings unquoted).
        Errors are reported and produce an empty string.
        """
        expr = self.preprocess(text).strip()
        if expr in self.variables:
            value = self.variables[expr]
            return value if isinstance(value, str) else format_number(value)

        try:
            layout, org = self._variable_organism()
            return format_number(self.compiler.build(layout, expr)(org))
        except ConfigError as e:
            self.notifier.error(type(e)(f"{e} (while evaluating '${{{text}}}')"))
            return ''

    def _variable_organism(self) -> Tuple[DataLayout, Organism]:
        """Numeric script variables packed as an organism, for the compiler"""
        entries = []
        values = []
        for name, value in self.variables.items():
            value_type = infer_value_type(value)
            if value_type not in ('int', 'double', 'bool'):
                continue
            entries.append(LayoutEntry(name=name, value_type=value_type, slot=len(entries), default=value))
            values.append(value)
        layout = DataLayout(entries)
        return layout, Organism(layout, values)

    # ------------------------------------------------------------------
    # Equations
    # ------------------------------------------------------------------

    def build_trait_equation(self, layout: DataLayout, equation: str) -> Equation:
        return self.queries.build_trait_equation(layout, equation)

    def get_equation_traits(self, equation: str):
        return self.queries.get_equation_traits(equation)

    # ------------------------------------------------------------------
    # Function tables
    # ------------------------------------------------------------------

    def add_function(self, name: str, fun: Callable, description: str = ""):
        self._functions[name] = (fun, description)

    def add_member_function(self, type_name: str, name: str, fun: Callable, description: str = ""):
        self._member_functions.setdefault(type_name, {})[name] = (fun, description)

    def call_function(self, name: str, *args):
        """
        Call a global script function.

        Raises:
            KeyError: If no function has that name
        """
        if name not in self._functions:
            raise KeyError(f"Unknown function '{name}'")
        return self._functions[name][0](*args)

    def call(self, type_name: str, name: str, target, *args):
        """
        Call a member function of a script type (Population or OrgList).

        Raises:
            KeyError: If the type has no function with that name
        """
        members = self._member_functions.get(type_name, {})
        if name not in members:
            raise KeyError(f"Type '{type_name}' has no function '{name}'")
        return members[name][0](target, *args)

    def help(self) -> List[Tuple[str, str, str]]:
        """(type, name, description) for every registered function"""
        rows = [('', name, desc) for name, (_, desc) in sorted(self._functions.items())]
        for type_name, members in self._member_functions.items():
            rows.extend((type_name, name, desc) for name, (_, desc) in sorted(members.items()))
        return rows

    def _initialize(self):
        for type_name in (POPULATION_TYPE_NAME, COLLECTION_TYPE_NAME):
            for name, (fun, desc) in self.queries.member_functions().items():
                self.add_member_function(type_name, name, fun, desc)

        self.add_function('PP', self.preprocess,
                          "Preprocess a string (replacing any ${...} with result.)")
        self.add_function('GET_UPDATE', lambda: self.update, "Get current update.")
        self.add_function('EXIT', self.request_exit, "Exit from this run.")

        for old_name, new_name in (('EVAL', 'EXEC'), ('exit', 'EXIT'), ('print', 'PRINT')):
            self._deprecate(old_name, new_name)

    def request_exit(self) -> int:
        self.exit_requested = True
        return 0

    def _deprecate(self, old_name: str, new_name: str):
        def deprecated(*args):
            self.notifier.warning(f"Function '{old_name}' deprecated; use '{new_name}'")
            return self.request_exit()
        self.add_function(old_name, deprecated, f"Deprecated.  Use: {new_name}")
