"""
Configuration error kinds.

Setup-time errors (duplicates, access conflicts, unsatisfied requirements)
are collected and reported together. Query-time errors are routed through
the diagnostic channel and never abort a run.
"""

from typing import List


class ConfigError(Exception):
    """Base class for every configuration problem"""
    pass


class DuplicateTraitError(ConfigError):
    """Same trait name declared twice by one module"""
    pass


class AccessConflictError(ConfigError):
    """Ownership or type disagreement between modules"""
    pass


class UnsatisfiedRequiredTraitError(ConfigError):
    """A required trait has no module writing to it"""
    pass


class UnknownTraitReferenceError(ConfigError):
    """An equation names a trait missing from the layout"""
    pass


class UnknownAggregationModeError(ConfigError):
    """Mode string does not match any aggregation form"""
    pass


class IndexOutOfRangeError(ConfigError):
    """Literal index mode beyond the end of the collection"""
    pass


class TraitTypeError(ConfigError):
    """Trait value type does not support the requested use"""
    pass


class TraitFrozenError(ConfigError):
    """Trait declaration modified after its module finished setup"""
    pass


class LayoutValidationError(ConfigError):
    """Raised when a data layout cannot be built; carries every problem found"""

    def __init__(self, errors: List[ConfigError]):
        self.errors = list(errors)
        lines = [f"  - {e}" for e in self.errors]
        super().__init__(f"{len(self.errors)} configuration error(s):\n" + "\n".join(lines))


class EquationSyntaxError(ConfigError):
    """Equation text cannot be parsed or uses an unsupported construct"""
    pass
