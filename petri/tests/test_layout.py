"""
Tests for merging module registries into a data layout.

Verifies:
- Owned/Shared/Required/Private rules across modules
- All errors are collected in one pass
- Private traits are invisible outside their module
- Archive companion slots
"""

import pytest

from petri.data_types import TraitInheritance
from petri.errors import (
    AccessConflictError, UnsatisfiedRequiredTraitError, DuplicateTraitError,
    UnknownTraitReferenceError, LayoutValidationError
)
from petri.layout import build_layout, merge_registries
from petri.module import Module


def make_module(name, declare):
    module = Module(name)
    declare(module)
    module.freeze()
    return module


def test_simple_layout():
    evaluator = make_module('evaluator', lambda m: (
        m.add_owned_trait('fitness', 'Fitness', 0.0),
        m.add_owned_trait('color', 'Color', 'grey'),
    ))
    reader = make_module('reader', lambda m: m.add_required_trait('fitness', 'Fitness', 'double'))

    layout = build_layout([evaluator.traits, reader.traits])

    assert len(layout) == 2
    assert layout.has_name('fitness')
    assert layout.get_type('fitness') == 'double'
    assert layout.is_numeric('fitness')
    assert not layout.is_numeric('color')
    assert layout.get_id('fitness') != layout.get_id('color')
    assert layout.get_entry('fitness').writers == ['evaluator']
    assert layout.get_entry('fitness').readers == ['reader']
    assert layout.default_values() == [0.0, 'grey']


def test_two_owners_conflict():
    """Same name owned by two modules -> AccessConflictError, no layout"""
    a = make_module('a', lambda m: m.add_owned_trait('score', 'Score', 0.0))
    b = make_module('b', lambda m: m.add_owned_trait('score', 'Score', 0.0))

    layout, errors = merge_registries([a.traits, b.traits])

    assert layout is None
    assert len(errors) == 1
    assert isinstance(errors[0], AccessConflictError)
    assert "'a'" in str(errors[0]) and "'b'" in str(errors[0])


def test_owned_and_shared_conflict():
    a = make_module('a', lambda m: m.add_owned_trait('score', 'Score', 0.0))
    b = make_module('b', lambda m: m.add_shared_trait('score', 'Score', 0.0))
    _, errors = merge_registries([a.traits, b.traits])
    assert any(isinstance(e, AccessConflictError) for e in errors)


def test_shared_type_mismatch_conflict():
    a = make_module('a', lambda m: m.add_shared_trait('energy', 'Energy', 1.0))
    b = make_module('b', lambda m: m.add_shared_trait('energy', 'Energy', value_type='int'))
    _, errors = merge_registries([a.traits, b.traits])
    assert len(errors) == 1
    assert 'different types' in str(errors[0])


def test_shared_traits_merge():
    a = make_module('a', lambda m: m.add_shared_trait('energy', 'Energy', 5.0).set_inherit_average())
    b = make_module('b', lambda m: m.add_shared_trait('energy', 'Energy', value_type='double'))

    layout = build_layout([a.traits, b.traits])
    entry = layout.get_entry('energy')

    assert entry.default == 5.0
    assert entry.inheritance == TraitInheritance.AVERAGE
    assert entry.writers == ['a', 'b']


def test_shared_defaults_must_agree():
    a = make_module('a', lambda m: m.add_shared_trait('energy', 'Energy', 5.0))
    b = make_module('b', lambda m: m.add_shared_trait('energy', 'Energy', 6.0))
    _, errors = merge_registries([a.traits, b.traits])
    assert len(errors) == 1
    assert 'conflicting defaults' in str(errors[0])


def test_conflicting_inheritance_policies():
    a = make_module('a', lambda m: m.add_shared_trait('energy', '', 1.0).set_inherit_minimum())
    b = make_module('b', lambda m: m.add_shared_trait('energy', '', 1.0).set_inherit_maximum())
    _, errors = merge_registries([a.traits, b.traits])
    assert any('inheritance' in str(e) for e in errors)


def test_unsatisfied_required_trait():
    reader = make_module('reader', lambda m: m.add_required_trait('energy', 'Energy', 'double'))
    layout, errors = merge_registries([reader.traits])
    assert layout is None
    assert len(errors) == 1
    assert isinstance(errors[0], UnsatisfiedRequiredTraitError)


def test_required_type_must_match_provider():
    writer = make_module('writer', lambda m: m.add_owned_trait('energy', 'Energy', 1))
    reader = make_module('reader', lambda m: m.add_required_trait('energy', 'Energy', 'double'))
    _, errors = merge_registries([writer.traits, reader.traits])
    assert len(errors) == 1
    assert isinstance(errors[0], UnsatisfiedRequiredTraitError)


def test_all_errors_collected():
    """One pass reports duplicates, conflicts and missing providers together"""
    a = make_module('a', lambda m: (
        m.add_owned_trait('score', 'Score', 0.0),
        m.add_owned_trait('score', 'Score', 1.0),
    ))
    b = make_module('b', lambda m: (
        m.add_owned_trait('score', 'Score', 0.0),
        m.add_required_trait('energy', 'Energy', 'double'),
    ))

    with pytest.raises(LayoutValidationError) as exc_info:
        build_layout([a.traits, b.traits])

    kinds = sorted(type(e).__name__ for e in exc_info.value.errors)
    assert kinds == sorted([
        DuplicateTraitError.__name__,
        AccessConflictError.__name__,
        UnsatisfiedRequiredTraitError.__name__,
    ])
    assert '3 configuration error(s)' in str(exc_info.value)


def test_private_traits_are_scoped():
    """Private names resolve only for their module; other modules may reuse them"""
    a = make_module('a', lambda m: m.add_private_trait('counter', 'Counter', 0))
    b = make_module('b', lambda m: m.add_private_trait('counter', 'Counter', 0.5))

    layout = build_layout([a.traits, b.traits])

    assert not layout.has_name('counter')
    assert layout.has_name('counter', module='a')
    assert layout.get_type('counter', module='a') == 'int'
    assert layout.get_type('counter', module='b') == 'double'
    assert layout.get_id('counter', module='a') != layout.get_id('counter', module='b')
    assert 'counter' not in layout.names()
    assert 'counter' in layout.names(module='b')

    with pytest.raises(UnknownTraitReferenceError):
        layout.get_id('counter')


def test_private_hidden_from_required():
    """A private trait cannot satisfy another module's requirement"""
    a = make_module('a', lambda m: m.add_private_trait('energy', 'Energy', 0.0))
    b = make_module('b', lambda m: m.add_required_trait('energy', 'Energy', 'double'))
    _, errors = merge_registries([a.traits, b.traits])
    assert len(errors) == 1
    assert isinstance(errors[0], UnsatisfiedRequiredTraitError)


def test_archive_companion_slots():
    m = make_module('m', lambda m: (
        m.add_owned_trait('fitness', 'Fitness', 1.0).set_archive_last(),
        m.add_owned_trait('merit', 'Merit', 1.0).set_archive_all(),
        m.add_owned_trait('age', 'Age', 0).set_archive_changes(),
    ))
    layout = build_layout([m.traits])

    assert layout.get_type('last_fitness') == 'double'
    assert layout.get_type('archive_merit') == 'list'
    assert layout.get_type('sequence_age') == 'list'
    assert layout.get_entry('last_fitness').archive_of == 'fitness'


def test_archive_name_collision():
    m = make_module('m', lambda m: (
        m.add_owned_trait('fitness', 'Fitness', 1.0).set_archive_last(),
        m.add_owned_trait('last_fitness', 'Clash', 1.0),
    ))
    _, errors = merge_registries([m.traits])
    assert len(errors) == 1
    assert 'collides' in str(errors[0])
