"""
Data layout: the merged view of every module's trait declarations.

Two-phase protocol:
1. Each module declares traits into its own TraitRegistry (no
   cross-module visibility).
2. The orchestrator calls build_layout() with all registries, which checks
   access consistency across modules and produces a frozen DataLayout that
   maps each trait name to a value type and a storage slot.

All violations are collected before reporting, so a user sees every
misconfiguration at once.
"""

import copy
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .constants import ARCHIVE_LAST_PREFIX, ARCHIVE_ALL_PREFIX, ARCHIVE_CHANGE_PREFIX
from .data_types import TraitAccess, TraitInheritance, TraitArchive
from .errors import (
    ConfigError, AccessConflictError, UnsatisfiedRequiredTraitError,
    UnknownTraitReferenceError, LayoutValidationError
)
from .traits import TraitRegistry, TraitSpec
from .values import ValueType, get_value_type


@dataclass
class LayoutEntry:
    """
    One storage slot in a data layout.

    Attributes:
        name: Trait name
        value_type: Value type name
        slot: Storage index in each organism's value list
        default: Initial value for injected organisms
        scope: Declaring module for private traits, None if public
        inheritance: How offspring get their value
        archive: Which historical values are retained
        reset_parent: Whether parents are reset alongside offspring
        writers: Modules allowed to write this trait
        readers: Modules that only read it
        archive_of: For companion archive slots, the trait being archived
    """
    name: str
    value_type: str
    slot: int
    default: Any
    scope: Optional[str] = None
    inheritance: TraitInheritance = TraitInheritance.DEFAULT
    archive: TraitArchive = TraitArchive.NONE
    reset_parent: bool = False
    writers: List[str] = field(default_factory=list)
    readers: List[str] = field(default_factory=list)
    archive_of: Optional[str] = None

    @property
    def type_info(self) -> ValueType:
        return get_value_type(self.value_type)

    @property
    def numeric(self) -> bool:
        return self.type_info.numeric


class DataLayout:
    """
    Frozen mapping from trait names to (type, slot).

    Private traits resolve only when the lookup names the declaring module.
    Query code looks names up without a module, so it never sees them.
    """

    def __init__(self, entries: List[LayoutEntry]):
        self._entries: List[LayoutEntry] = list(entries)
        self._public: Dict[str, int] = {}
        self._private: Dict[Tuple[str, str], int] = {}
        for entry in self._entries:
            if entry.scope is None:
                self._public[entry.name] = entry.slot
            else:
                self._private[(entry.scope, entry.name)] = entry.slot

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def _lookup(self, name: str, module: Optional[str] = None) -> Optional[int]:
        if module is not None and (module, name) in self._private:
            return self._private[(module, name)]
        return self._public.get(name)

    def has_name(self, name: str, module: Optional[str] = None) -> bool:
        return self._lookup(name, module) is not None

    def get_id(self, name: str, module: Optional[str] = None) -> int:
        """
        Storage slot for a trait name.

        Raises:
            UnknownTraitReferenceError: If the name is not visible
        """
        slot = self._lookup(name, module)
        if slot is None:
            raise UnknownTraitReferenceError(f"Unknown trait '{name}'.")
        return slot

    def get_entry(self, name_or_slot, module: Optional[str] = None) -> LayoutEntry:
        if isinstance(name_or_slot, int):
            return self._entries[name_or_slot]
        return self._entries[self.get_id(name_or_slot, module)]

    def get_type(self, name_or_slot, module: Optional[str] = None) -> str:
        return self.get_entry(name_or_slot, module).value_type

    def is_numeric(self, name_or_slot, module: Optional[str] = None) -> bool:
        return self.get_entry(name_or_slot, module).numeric

    def names(self, module: Optional[str] = None) -> List[str]:
        """Trait names visible from a module (public names if module is None)"""
        names = list(self._public.keys())
        if module is not None:
            names.extend(n for (m, n) in self._private if m == module)
        return names

    def default_values(self) -> List[Any]:
        """Fresh list of initial values, one per slot"""
        return [copy.copy(entry.default) for entry in self._entries]


def _module_list(specs: Iterable[TraitSpec]) -> str:
    return ", ".join(f"'{s.module}'" for s in specs)


def _merge_public_trait(name: str, specs: List[TraitSpec], errors: List[ConfigError]) -> Optional[dict]:
    """
    Check cross-module rules for one public trait name.

    Returns:
        Entry fields for the merged trait, or None if it could not be merged
    """
    owned = [s for s in specs if s.access == TraitAccess.OWNED]
    shared = [s for s in specs if s.access == TraitAccess.SHARED]
    required = [s for s in specs if s.access == TraitAccess.REQUIRED]
    writers = owned + shared
    ok = True

    if len(owned) > 1:
        errors.append(AccessConflictError(
            f"Trait '{name}' is owned by more than one module ({_module_list(owned)})."
        ))
        ok = False
    if owned and shared:
        errors.append(AccessConflictError(
            f"Trait '{name}' is owned by {_module_list(owned)} but also shared by "
            f"{_module_list(shared)}."
        ))
        ok = False

    writer_types = {s.value_type for s in writers}
    if len(writer_types) > 1:
        details = ", ".join(f"'{s.module}' as {s.value_type}" for s in writers)
        errors.append(AccessConflictError(
            f"Trait '{name}' is declared with different types ({details})."
        ))
        ok = False

    if not writers:
        if required:
            errors.append(UnsatisfiedRequiredTraitError(
                f"Trait '{name}' is required by {_module_list(required)} but no module "
                f"owns or shares it."
            ))
        return None

    value_type = writers[0].value_type
    for spec in required:
        if spec.value_type != value_type:
            errors.append(UnsatisfiedRequiredTraitError(
                f"Trait '{name}' is required as {spec.value_type} by '{spec.module}' but "
                f"provided as {value_type}."
            ))
            ok = False

    defaults = [s for s in writers if s.has_default]
    if len(shared) > 1 and len({repr(s.default) for s in defaults}) > 1:
        details = ", ".join(f"'{s.module}'={s.default!r}" for s in defaults)
        errors.append(AccessConflictError(
            f"Shared trait '{name}' has conflicting defaults ({details})."
        ))
        ok = False

    policies = {s.inheritance for s in writers if s.inheritance != TraitInheritance.DEFAULT}
    if len(policies) > 1:
        errors.append(AccessConflictError(
            f"Trait '{name}' has conflicting inheritance policies "
            f"({', '.join(sorted(p.value for p in policies))})."
        ))
        ok = False

    if not ok:
        return None

    archives = [s.archive for s in writers if s.archive != TraitArchive.NONE]
    return {
        'name': name,
        'value_type': value_type,
        'default': defaults[0].default if defaults else get_value_type(value_type).zero(),
        'inheritance': policies.pop() if policies else TraitInheritance.DEFAULT,
        'archive': archives[0] if archives else TraitArchive.NONE,
        'reset_parent': any(s.reset_parent for s in writers),
        'writers': [s.module for s in writers],
        'readers': [s.module for s in required],
    }


def _archive_companion(fields: dict, scope: Optional[str]) -> Optional[dict]:
    """Entry fields for the archive slot that goes with a trait, if any"""
    archive = fields['archive']
    if archive == TraitArchive.LAST_RESET:
        prefix, value_type, default = ARCHIVE_LAST_PREFIX, fields['value_type'], fields['default']
    elif archive == TraitArchive.ALL_RESETS:
        prefix, value_type, default = ARCHIVE_ALL_PREFIX, 'list', []
    elif archive == TraitArchive.ALL_CHANGES:
        prefix, value_type, default = ARCHIVE_CHANGE_PREFIX, 'list', []
    else:
        return None
    return {
        'name': prefix + fields['name'],
        'value_type': value_type,
        'default': default,
        'writers': list(fields['writers']),
        'archive_of': fields['name'],
    }


def merge_registries(registries: Iterable[TraitRegistry]) -> Tuple[Optional[DataLayout], List[ConfigError]]:
    """
    Merge module registries into a data layout.

    Args:
        registries: TraitRegistry of every module using this population

    Returns:
        Tuple of (layout, errors); layout is None when errors is non-empty
    """
    registries = list(registries)
    errors: List[ConfigError] = []

    public: "OrderedDict[str, List[TraitSpec]]" = OrderedDict()
    private: List[TraitSpec] = []

    for registry in registries:
        errors.extend(registry.validate())
        for spec in registry:
            if spec.access == TraitAccess.UNKNOWN:
                continue  # already reported by validate()
            if spec.access == TraitAccess.PRIVATE:
                private.append(spec)
            else:
                public.setdefault(spec.name, []).append(spec)

    pending: List[Tuple[dict, Optional[str]]] = []
    for name, specs in public.items():
        fields = _merge_public_trait(name, specs, errors)
        if fields is not None:
            pending.append((fields, None))

    for spec in private:
        pending.append(({
            'name': spec.name,
            'value_type': spec.value_type,
            'default': spec.default if spec.has_default else get_value_type(spec.value_type).zero(),
            'inheritance': spec.inheritance,
            'archive': spec.archive,
            'reset_parent': spec.reset_parent,
            'writers': [spec.module],
        }, spec.module))

    companions = []
    for fields, scope in pending:
        extra = _archive_companion(fields, scope)
        if extra is not None:
            companions.append((extra, scope))

    entries: List[LayoutEntry] = []
    taken = set()
    for fields, scope in pending + companions:
        key = (scope, fields['name'])
        if key in taken:
            errors.append(AccessConflictError(
                f"Archive trait '{fields['name']}' collides with an existing trait."
            ))
            continue
        taken.add(key)
        entries.append(LayoutEntry(slot=len(entries), scope=scope, **fields))

    if errors:
        return None, errors
    return DataLayout(entries), []


def build_layout(registries: Iterable[TraitRegistry]) -> DataLayout:
    """
    Build the frozen data layout for a population.

    Raises:
        LayoutValidationError: Carrying every configuration error found
    """
    layout, errors = merge_registries(registries)
    if errors:
        raise LayoutValidationError(errors)
    return layout
