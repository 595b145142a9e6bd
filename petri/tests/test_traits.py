"""
Tests for trait declarations and per-module registries.

Verifies:
- Fluent setters configure inheritance, archiving and parent reset
- Duplicate names are recorded, not raised, and do not overwrite
- has_default works regardless of value type
- Per-trait validation (required defaults, ordering on text, bad types)
- Freezing ends the setup phase
"""

import pytest

from petri.data_types import TraitAccess, TraitInheritance, TraitArchive
from petri.errors import DuplicateTraitError, TraitTypeError, TraitFrozenError
from petri.module import Module
from petri.traits import TraitRegistry, NO_DEFAULT


def test_fluent_setters_chain():
    """Setters return the TraitSpec so configuration can be chained"""
    module = Module('evaluator')
    spec = module.add_owned_trait('fitness', 'Evaluated fitness', 0.0) \
        .set_inherit_average().set_archive_last().set_parent_reset()

    assert spec.access == TraitAccess.OWNED
    assert spec.value_type == 'double'
    assert spec.inheritance == TraitInheritance.AVERAGE
    assert spec.archive == TraitArchive.LAST_RESET
    assert spec.reset_parent is True
    assert module.traits['fitness'] is spec


def test_inheritance_setters():
    module = Module('m')
    assert module.add_owned_trait('a', '', 1).set_inherit_parent().inheritance == TraitInheritance.PARENT
    assert module.add_owned_trait('b', '', 1).set_inherit_minimum().inheritance == TraitInheritance.MINIMUM
    assert module.add_owned_trait('c', '', 1).set_inherit_maximum().inheritance == TraitInheritance.MAXIMUM
    assert module.add_owned_trait('d', '', 1).set_archive_all().archive == TraitArchive.ALL_RESETS
    assert module.add_owned_trait('e', '', 1).set_archive_changes().archive == TraitArchive.ALL_CHANGES


def test_duplicate_declaration_recorded_once():
    """Second declaration adds exactly one error and keeps the first access mode"""
    module = Module('selector')
    first = module.add_owned_trait('score', 'Score', 0.0)
    assert module.get_errors() == []

    second = module.add_shared_trait('score', 'Score again', 1.0)

    errors = module.traits.validate()
    assert len(errors) == 1
    assert isinstance(errors[0], DuplicateTraitError)
    assert "duplicate trait named 'score'" in module.get_errors()[0]
    assert module.traits['score'] is first
    assert module.traits['score'].access == TraitAccess.OWNED
    assert module.traits['score'].default == 0.0
    assert second is not first


def test_has_default_independent_of_type():
    """has_default answers without knowing the value type"""
    module = Module('m')
    specs = [
        module.add_owned_trait('flag', '', False),
        module.add_owned_trait('count', '', 0),
        module.add_owned_trait('label', '', ''),
        module.add_shared_trait('energy', '', value_type='double'),
        module.add_required_trait('age', '', 'int'),
    ]
    assert [s.has_default for s in specs] == [True, True, True, False, False]


def test_type_inference_from_default():
    registry = TraitRegistry('m')
    assert registry.declare(TraitAccess.OWNED, 'b', default=True).value_type == 'bool'
    assert registry.declare(TraitAccess.OWNED, 'i', default=3).value_type == 'int'
    assert registry.declare(TraitAccess.OWNED, 'd', default=2.5).value_type == 'double'
    assert registry.declare(TraitAccess.OWNED, 's', default='x').value_type == 'string'
    assert registry.declare(TraitAccess.OWNED, 'f', default=1.0, value_type='float').value_type == 'double'
    assert registry.validate() == []


def test_missing_type_is_recorded():
    registry = TraitRegistry('m')
    registry.declare(TraitAccess.SHARED, 'mystery')
    errors = registry.validate()
    assert len(errors) == 1
    assert isinstance(errors[0], TraitTypeError)


def test_required_trait_with_default_is_error():
    module = Module('reader')
    module.add_trait(TraitAccess.REQUIRED, 'energy', 'Energy', 5.0)
    errors = module.traits.validate()
    assert any('may not provide a default' in str(e) for e in errors)


def test_average_inheritance_on_text_is_error():
    module = Module('painter')
    module.add_owned_trait('color', 'Color', 'red').set_inherit_average()
    errors = module.get_errors()
    assert len(errors) == 1
    assert 'not numeric' in errors[0]


def test_default_type_mismatch_is_error():
    module = Module('m')
    module.add_owned_trait('count', 'Count', 'three', value_type='int')
    assert any("does not match type 'int'" in e for e in module.get_errors())


def test_unknown_access_is_error():
    module = Module('m')
    module.add_trait(TraitAccess.UNKNOWN, 'thing', 'Thing', 1.0)
    assert any('unknown access mode' in e for e in module.get_errors())


def test_freeze_blocks_changes():
    """After setup no declarations or setter calls are allowed"""

    class Evaluator(Module):
        def setup(self):
            self.spec = self.add_owned_trait('fitness', 'Fitness', 0.0)

    module = Evaluator('evaluator')
    module.run_setup()

    assert module.traits.frozen
    with pytest.raises(TraitFrozenError):
        module.spec.set_inherit_parent()
    with pytest.raises(TraitFrozenError):
        module.add_owned_trait('late', 'Too late', 0.0)

    # Second call is a no-op
    module.run_setup()


def test_no_default_sentinel_is_not_none():
    module = Module('m')
    spec = module.add_owned_trait('maybe', 'Nullable', None, value_type='string')
    assert spec.default is None
    assert spec.has_default
    assert NO_DEFAULT is not None
