"""
Organism storage: organisms, populations, and collections.

Each organism holds one value per slot of its population's data layout.
Populations own organisms; collections are ordered lists of positions
(population, index) that may span populations or hold a filtered subset.
"""

import copy
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import ARCHIVE_LAST_PREFIX, ARCHIVE_ALL_PREFIX, ARCHIVE_CHANGE_PREFIX
from .data_types import TraitInheritance, TraitArchive
from .errors import TraitTypeError
from .layout import DataLayout, LayoutEntry


class Organism:
    """
    Runtime organism: trait values addressed through a data layout.

    Attributes:
        layout: Data layout of the owning population
        values: One value per layout slot
        org_id: Sequential id assigned by the population (-1 if detached)
    """

    def __init__(self, layout: DataLayout, values: Optional[List[Any]] = None, org_id: int = -1):
        self.layout = layout
        self.values = values if values is not None else layout.default_values()
        self.org_id = org_id

    def _slot(self, name_or_slot, module: Optional[str] = None) -> int:
        if isinstance(name_or_slot, int):
            return name_or_slot
        return self.layout.get_id(name_or_slot, module)

    def get_trait(self, name_or_slot, module: Optional[str] = None) -> Any:
        return self.values[self._slot(name_or_slot, module)]

    def get_trait_as_string(self, name_or_slot, module: Optional[str] = None) -> str:
        slot = self._slot(name_or_slot, module)
        return self.layout.get_entry(slot).type_info.to_string(self.values[slot])

    def set_trait(self, name_or_slot, value: Any, module: Optional[str] = None):
        """
        Assign a trait value.

        Raises:
            TraitTypeError: If the value does not match the trait's type
        """
        slot = self._slot(name_or_slot, module)
        entry = self.layout.get_entry(slot)
        if not entry.type_info.accepts(value):
            raise TraitTypeError(
                f"Value {value!r} does not match type '{entry.value_type}' of trait '{entry.name}'."
            )
        self.values[slot] = value
        if entry.archive == TraitArchive.ALL_CHANGES:
            self.values[self._companion_slot(entry)].append(copy.copy(value))

    def reset_trait(self, name_or_slot, value: Any = None, module: Optional[str] = None):
        """
        Reset a trait, archiving its previous value per the trait's policy.

        Args:
            name_or_slot: Trait name or slot
            value: New value (None = layout default)
            module: Module scope for private traits
        """
        slot = self._slot(name_or_slot, module)
        entry = self.layout.get_entry(slot)
        old_value = self.values[slot]

        if entry.archive == TraitArchive.LAST_RESET:
            self.values[self._companion_slot(entry)] = old_value
        elif entry.archive == TraitArchive.ALL_RESETS:
            self.values[self._companion_slot(entry)].append(copy.copy(old_value))

        if value is None:
            value = copy.copy(entry.default)
        self.set_trait(slot, value)

    def _companion_slot(self, entry: LayoutEntry) -> int:
        prefix = {
            TraitArchive.LAST_RESET: ARCHIVE_LAST_PREFIX,
            TraitArchive.ALL_RESETS: ARCHIVE_ALL_PREFIX,
            TraitArchive.ALL_CHANGES: ARCHIVE_CHANGE_PREFIX,
        }[entry.archive]
        return self.layout.get_id(prefix + entry.name, entry.scope)

    def to_dict(self, module: Optional[str] = None) -> Dict[str, Any]:
        """Trait values by name (public traits plus the module's private ones)"""
        return {name: self.get_trait(name, module) for name in self.layout.names(module)}

    def __repr__(self):
        return f"Organism(org_id={self.org_id}, values={self.values!r})"


def _inherit_value(entry: LayoutEntry, parents: Sequence[Organism]) -> Any:
    """Offspring value for one slot under the entry's inheritance policy"""
    policy = entry.inheritance
    if policy == TraitInheritance.DEFAULT or not parents:
        return copy.copy(entry.default)

    parent_values = [p.values[entry.slot] for p in parents]
    if policy == TraitInheritance.PARENT:
        return copy.copy(parent_values[0])
    if policy == TraitInheritance.MINIMUM:
        return min(parent_values)
    if policy == TraitInheritance.MAXIMUM:
        return max(parent_values)

    # AVERAGE
    mean = float(np.mean(np.asarray(parent_values, dtype=np.float64)))
    if entry.value_type == 'int':
        return int(round(mean))
    if entry.value_type == 'bool':
        return mean >= 0.5
    return mean


class Population:
    """
    Named, ordered set of organisms sharing one data layout.
    """

    def __init__(self, name: str, layout: DataLayout):
        self.name = name
        self.layout = layout
        self.organisms: List[Organism] = []
        self._next_id = 0

    def _add(self, org: Organism) -> Organism:
        org.org_id = self._next_id
        self._next_id += 1
        self.organisms.append(org)
        return org

    def inject(self, count: int = 1, traits: Optional[Dict[str, Any]] = None) -> List[Organism]:
        """
        Add organisms starting from default values.

        Args:
            count: Number of organisms to add
            traits: Trait values (name -> value) overriding the defaults

        Returns:
            The new organisms
        """
        added = []
        for _ in range(count):
            org = Organism(self.layout)
            for name, value in (traits or {}).items():
                org.set_trait(name, value)
            added.append(self._add(org))
        return added

    def add_offspring(self, parents: Sequence[Organism]) -> Organism:
        """
        Add an offspring of one or more parents.

        Each trait follows its inheritance policy; traits flagged
        reset_parent also reset every parent to the offspring's value.
        """
        values = [_inherit_value(entry, parents) for entry in self.layout]
        offspring = self._add(Organism(self.layout, values))

        for entry in self.layout:
            if entry.reset_parent:
                for parent in parents:
                    parent.reset_trait(entry.slot, copy.copy(offspring.values[entry.slot]))
        return offspring

    def clear(self):
        self.organisms.clear()

    def get_data_layout(self) -> DataLayout:
        return self.layout

    def get_num_orgs(self) -> int:
        return len(self.organisms)

    def is_empty(self) -> bool:
        return not self.organisms

    def iterator_at(self, index: int) -> 'Collection':
        """Single-organism collection positioned at index"""
        return Collection.at_position(self, index)

    def __len__(self) -> int:
        return len(self.organisms)

    def __iter__(self) -> Iterator[Organism]:
        return iter(self.organisms)

    def __getitem__(self, index: int) -> Organism:
        return self.organisms[index]

    def __repr__(self):
        return f"Population(name={self.name!r}, size={len(self.organisms)})"


class Collection:
    """
    Ordered list of organism positions (population, index).

    Collections are views: organisms are read through their populations.
    """

    def __init__(self, source: Union[Population, 'Collection', None] = None):
        self._positions: List[Tuple[Population, int]] = []
        if isinstance(source, Population):
            self._positions = [(source, i) for i in range(len(source))]
        elif isinstance(source, Collection):
            self._positions = list(source._positions)

    @classmethod
    def at_position(cls, population: Population, index: int) -> 'Collection':
        collection = cls()
        collection.insert(population, index)
        return collection

    def insert(self, population: Population, index: int):
        if index < 0 or index >= len(population):
            raise IndexError(f"Position {index} outside population '{population.name}'")
        self._positions.append((population, index))

    @property
    def positions(self) -> List[Tuple[Population, int]]:
        return list(self._positions)

    def at(self, index: int) -> Organism:
        pop, pos = self._positions[index]
        return pop.organisms[pos]

    def iterator_at(self, index: int) -> 'Collection':
        """Single-organism collection positioned at the index-th member"""
        pop, pos = self._positions[index]
        return Collection.at_position(pop, pos)

    def get_data_layout(self) -> Optional[DataLayout]:
        """Layout of the first member's population (None when empty)"""
        if not self._positions:
            return None
        return self._positions[0][0].layout

    def get_num_orgs(self) -> int:
        return len(self._positions)

    def is_empty(self) -> bool:
        return not self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Organism]:
        for pop, pos in self._positions:
            yield pop.organisms[pos]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return [(id(p), i) for p, i in self._positions] == [(id(p), i) for p, i in other._positions]

    def __repr__(self):
        return f"Collection(size={len(self._positions)})"
