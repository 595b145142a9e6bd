"""
Trait declarations owned by a single module.

A TraitSpec is created during a module's setup phase and configured
through chained setters:

    module.add_owned_trait('fitness', 'Evaluated fitness', 0.0) \\
        .set_inherit_average().set_archive_last()

Each module keeps its specs in a TraitRegistry. Problems found while
declaring (duplicate names, bad defaults) are recorded, not raised, so
every misconfiguration can be reported in one pass.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .data_types import TraitAccess, TraitInheritance, TraitArchive, NO_DEFAULT
from .errors import ConfigError, DuplicateTraitError, TraitTypeError, TraitFrozenError
from .values import TYPE_ALIASES, get_value_type, infer_value_type


@dataclass
class TraitSpec:
    """
    One declared trait.

    Attributes:
        name: Trait name (unique within a module)
        value_type: Value type name (key into values.VALUE_TYPES)
        access: Access contract this module holds over the trait
        description: Human-readable description
        module: Name of the declaring module
        default: Default value, or NO_DEFAULT
        inheritance: How offspring get their value
        archive: Which historical values are retained
        reset_parent: Whether the parent is also reset on birth
    """
    name: str
    value_type: str
    access: TraitAccess = TraitAccess.UNKNOWN
    description: str = ""
    module: str = ""
    default: Any = NO_DEFAULT
    inheritance: TraitInheritance = TraitInheritance.DEFAULT
    archive: TraitArchive = TraitArchive.NONE
    reset_parent: bool = False
    _frozen: bool = field(default=False, repr=False, compare=False)

    @property
    def has_default(self) -> bool:
        """True if a usable default exists, whatever the value type"""
        return self.default is not NO_DEFAULT

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        self._frozen = True

    def _check_mutable(self):
        if self._frozen:
            raise TraitFrozenError(
                f"Trait '{self.name}' of module '{self.module}' cannot change after setup."
            )

    def set_default(self, value) -> 'TraitSpec':
        self._check_mutable()
        self.default = value
        return self

    def set_inherit_parent(self) -> 'TraitSpec':
        """Offspring copy this trait from their (first) parent."""
        self._check_mutable()
        self.inheritance = TraitInheritance.PARENT
        return self

    def set_inherit_average(self) -> 'TraitSpec':
        """Offspring take the average across parents."""
        self._check_mutable()
        self.inheritance = TraitInheritance.AVERAGE
        return self

    def set_inherit_minimum(self) -> 'TraitSpec':
        """Offspring take the minimum across parents."""
        self._check_mutable()
        self.inheritance = TraitInheritance.MINIMUM
        return self

    def set_inherit_maximum(self) -> 'TraitSpec':
        """Offspring take the maximum across parents."""
        self._check_mutable()
        self.inheritance = TraitInheritance.MAXIMUM
        return self

    def set_parent_reset(self) -> 'TraitSpec':
        """Parent is ALSO reset to the offspring's value on divide."""
        self._check_mutable()
        self.reset_parent = True
        return self

    def set_archive_last(self) -> 'TraitSpec':
        """Keep the value held before the most recent reset."""
        self._check_mutable()
        self.archive = TraitArchive.LAST_RESET
        return self

    def set_archive_all(self) -> 'TraitSpec':
        """Keep every value held at a reset."""
        self._check_mutable()
        self.archive = TraitArchive.ALL_RESETS
        return self

    def set_archive_changes(self) -> 'TraitSpec':
        """Keep every value ever assigned."""
        self._check_mutable()
        self.archive = TraitArchive.ALL_CHANGES
        return self

    def validate(self) -> List[ConfigError]:
        """Check this declaration on its own (no cross-module knowledge)"""
        errors: List[ConfigError] = []
        where = f"Module '{self.module}' trait '{self.name}'"

        if self.access == TraitAccess.UNKNOWN:
            errors.append(TraitTypeError(f"{where} has an unknown access mode."))

        try:
            vtype = get_value_type(self.value_type)
        except KeyError:
            errors.append(TraitTypeError(f"{where} has unknown value type '{self.value_type}'."))
            return errors

        if self.access == TraitAccess.REQUIRED and self.has_default:
            errors.append(TraitTypeError(
                f"{where} is required and may not provide a default value."
            ))
        if self.has_default and not vtype.accepts(self.default):
            errors.append(TraitTypeError(
                f"{where} default {self.default!r} does not match type '{vtype.name}'."
            ))
        if self.inheritance.needs_ordering and not vtype.numeric:
            errors.append(TraitTypeError(
                f"{where} uses {self.inheritance.value} inheritance but type "
                f"'{vtype.name}' is not numeric."
            ))
        return errors


class TraitRegistry:
    """
    Name-keyed trait declarations of one module.

    Lookups are by name; iteration follows declaration order.
    """

    def __init__(self, module_name: str = ""):
        self.module_name = module_name
        self._traits: Dict[str, TraitSpec] = {}
        self._errors: List[ConfigError] = []
        self._frozen = False

    def declare(
        self,
        access: TraitAccess,
        name: str,
        description: str = "",
        default: Any = NO_DEFAULT,
        value_type: Optional[str] = None
    ) -> TraitSpec:
        """
        Register a new trait.

        Args:
            access: Access contract for this module
            name: Trait name
            description: Human-readable description
            default: Optional default value
            value_type: Value type name; inferred from default when omitted

        Returns:
            The new TraitSpec, for chained configuration. A duplicate name
            records an error and returns a detached spec, leaving the first
            declaration in place.

        Raises:
            TraitFrozenError: If the registry has already been frozen
        """
        if self._frozen:
            raise TraitFrozenError(
                f"Module '{self.module_name}' cannot declare trait '{name}' after setup."
            )

        if value_type is None:
            value_type = infer_value_type(default) if default is not NO_DEFAULT else None
            if value_type is None:
                self._errors.append(TraitTypeError(
                    f"Module '{self.module_name}' trait '{name}' needs a value type "
                    f"(none given and none inferable from its default)."
                ))
                value_type = 'double'
        value_type = TYPE_ALIASES.get(value_type, value_type)

        spec = TraitSpec(
            name=name,
            value_type=value_type,
            access=access,
            description=description,
            module=self.module_name,
            default=default,
        )

        if name in self._traits:
            self._errors.append(DuplicateTraitError(
                f"Module '{self.module_name}' is creating a duplicate trait named '{name}'."
            ))
            return spec

        self._traits[name] = spec
        return spec

    def __contains__(self, name: str) -> bool:
        return name in self._traits

    def __getitem__(self, name: str) -> TraitSpec:
        return self._traits[name]

    def __iter__(self) -> Iterator[TraitSpec]:
        return iter(self._traits.values())

    def __len__(self) -> int:
        return len(self._traits)

    def get(self, name: str) -> Optional[TraitSpec]:
        return self._traits.get(name)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        """End the setup phase: no new declarations, no further changes."""
        self._frozen = True
        for spec in self._traits.values():
            spec.freeze()

    def validate(self) -> List[ConfigError]:
        """All errors recorded while declaring plus per-trait checks"""
        errors = list(self._errors)
        for spec in self._traits.values():
            errors.extend(spec.validate())
        return errors
