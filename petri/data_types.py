"""
Data types for trait declarations and run configuration.

Enums describe the trait contract; the dataclasses mirror the YAML run
configuration schema and are populated by loader.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class _NoDefault:
    """Sentinel for "no default provided", distinct from an explicit None"""

    def __repr__(self):
        return 'NO_DEFAULT'


NO_DEFAULT = _NoDefault()


# ============================================================================
# Trait Contract Enums
# ============================================================================

class TraitAccess(Enum):
    """Which modules may read or write a trait"""
    UNKNOWN = 'unknown'    # Access level unknown; most likely a problem
    OWNED = 'owned'        # Read & write; other modules can only read
    SHARED = 'shared'      # Read & write; other modules can too
    REQUIRED = 'required'  # Read only; another module must write it
    PRIVATE = 'private'    # Read & write; invisible to other modules

    @property
    def writes(self) -> bool:
        return self in (TraitAccess.OWNED, TraitAccess.SHARED, TraitAccess.PRIVATE)


class TraitInheritance(Enum):
    """
    How a trait is initialized in a newly-born organism.

    Injected organisms always use the default value.
    """
    DEFAULT = 'default'  # Pre-set default value
    PARENT = 'parent'    # Copied from the first parent
    AVERAGE = 'average'  # Average across all parents
    MINIMUM = 'minimum'  # Lowest across all parents
    MAXIMUM = 'maximum'  # Highest across all parents

    @property
    def needs_ordering(self) -> bool:
        return self in (TraitInheritance.AVERAGE, TraitInheritance.MINIMUM, TraitInheritance.MAXIMUM)


class TraitArchive(Enum):
    """Which older values of a trait are kept"""
    NONE = 'none'               # No history
    LAST_RESET = 'last_reset'   # Value at last reset, in "last_<name>"
    ALL_RESETS = 'all_resets'   # Values at every reset, in "archive_<name>"
    ALL_CHANGES = 'all_changes' # Every assigned value, in "sequence_<name>"


# ============================================================================
# Run Configuration
# ============================================================================

@dataclass
class TraitDeclaration:
    """One trait entry of a module in a run config"""
    name: str
    access: str  # owned, shared, required, private
    description: str = ""
    type: Optional[str] = None  # int, double, bool, string, list
    default: Any = NO_DEFAULT  # Omitted in YAML -> no default; `null` -> None
    inherit: str = 'default'  # default, parent, average, minimum, maximum
    archive: str = 'none'  # none, last_reset, all_resets, all_changes
    reset_parent: bool = False


@dataclass
class ModuleDefinition:
    """A module and the traits it declares"""
    name: str
    traits: List[TraitDeclaration]
    roles: List[str] = field(default_factory=list)  # evaluate, select, placement, analyze
    description: Optional[str] = None


@dataclass
class PopulationDefinition:
    """A population and the trait values of its initial organisms"""
    name: str
    organisms: List[Dict[str, Any]] = field(default_factory=list)  # Trait overrides per organism
    inject: int = 0  # Extra organisms created with default values


@dataclass
class QueryDefinition:
    """A named query evaluated against a population"""
    name: str
    population: str
    function: str  # TRAIT, CALC_MEAN, FILTER, ...
    equation: str


@dataclass
class RunConfig:
    """Complete run configuration"""
    run_id: str
    modules: List[ModuleDefinition]
    populations: List[PopulationDefinition]
    queries: List[QueryDefinition] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
