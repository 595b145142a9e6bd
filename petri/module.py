"""
Base class for simulation modules.

Modules (evaluators, selectors, placement strategies, analyzers) declare
the organism traits they read or write during setup. Declarations stay
local to the module until the orchestrator merges every module's
registry into a data layout (see layout.py).
"""

from typing import Any, List, Optional

from .data_types import TraitAccess
from .traits import TraitRegistry, TraitSpec, NO_DEFAULT


class Module:
    """
    Runtime module with its own trait registry.

    Subclasses declare traits in setup() through the add_*_trait helpers.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self.traits = TraitRegistry(name)

        # Module roles (a module can have more than one)
        self.is_evaluate: bool = False
        self.is_select: bool = False
        self.is_placement: bool = False
        self.is_analyze: bool = False

        # How many populations this module needs to operate on
        self.required_pops: int = 0

        self._setup_done: bool = False

    def setup(self):
        """Declare traits. By default, assume no setup needed."""
        pass

    def update(self):
        """Per-update work. By default, do nothing."""
        pass

    def run_setup(self):
        """Run setup() once and freeze the module's declarations."""
        if self._setup_done:
            return
        self.setup()
        self.freeze()

    def freeze(self):
        self.traits.freeze()
        self._setup_done = True

    def get_errors(self) -> List[str]:
        """Configuration errors detected for this module"""
        return [str(e) for e in self.traits.validate()]

    # ------------------------------------------------------------------
    # Trait declaration helpers (for use in setup)
    # ------------------------------------------------------------------

    def add_trait(
        self,
        access: TraitAccess,
        name: str,
        description: str = "",
        default: Any = NO_DEFAULT,
        value_type: Optional[str] = None
    ) -> TraitSpec:
        """Add a trait with an explicit access mode."""
        return self.traits.declare(access, name, description, default, value_type)

    def add_private_trait(self, name: str, description: str, default: Any,
                          value_type: Optional[str] = None) -> TraitSpec:
        """This module reads and writes the trait; others cannot see it."""
        return self.add_trait(TraitAccess.PRIVATE, name, description, default, value_type)

    def add_owned_trait(self, name: str, description: str, default: Any,
                        value_type: Optional[str] = None) -> TraitSpec:
        """This module reads and writes the trait; others can only read it."""
        return self.add_trait(TraitAccess.OWNED, name, description, default, value_type)

    def add_shared_trait(self, name: str, description: str, default: Any = NO_DEFAULT,
                         value_type: Optional[str] = None) -> TraitSpec:
        """
        This module and others may read and write the trait.

        A default is optional, but any defaults given must agree across
        every module sharing the trait.
        """
        return self.add_trait(TraitAccess.SHARED, name, description, default, value_type)

    def add_required_trait(self, name: str, description: str, value_type: str) -> TraitSpec:
        """This module reads the trait; another module must write it."""
        return self.add_trait(TraitAccess.REQUIRED, name, description, NO_DEFAULT, value_type)

    def __repr__(self):
        return f"Module(name={self.name!r}, traits={len(self.traits)})"
