"""
Test run configuration loading.

Verifies YAML -> modules -> data layout -> populations -> queries works
end to end on the bundled run files, and that bad files fail cleanly.
"""

from pathlib import Path

import pytest

from petri.data_types import TraitInheritance, NO_DEFAULT
from petri.diagnostics import Notifier
from petri.errors import LayoutValidationError
from petri.loader import (
    DataLoadError, load_run, load_run_config, run_queries, validate_against_schema
)


DATA_ROOT = Path(__file__).parent.parent.parent / "data"
SCHEMA_DIR = DATA_ROOT / "schemas"
EXAMPLE_RUN = DATA_ROOT / "runs" / "example.yaml"


def test_load_run_config():
    """Test parsing the example run into dataclasses"""
    config = load_run_config(EXAMPLE_RUN, SCHEMA_DIR)

    print(f"[OK] Loaded run: {config.run_id}")
    print(f"  Modules: {', '.join(m.name for m in config.modules)}")

    assert config.run_id == "example-run"
    assert [m.name for m in config.modules] == ['eval_count', 'eval_color', 'analyze']
    assert config.modules[0].traits[0].inherit == 'parent'
    assert config.variables == {'threshold': 10, 'label': 'fitness'}
    assert len(config.queries) == 5


def test_load_run_builds_layout():
    run = load_run(EXAMPLE_RUN, SCHEMA_DIR, notifier=Notifier(echo=False))
    layout = run['layout']
    modules = run['modules']

    assert modules[0].is_evaluate and modules[1].is_evaluate
    assert modules[2].is_analyze and not modules[2].is_evaluate
    assert all(m.traits.frozen for m in modules)

    fitness = layout.get_entry('fitness')
    assert fitness.writers == ['eval_count', 'eval_color']
    assert fitness.inheritance == TraitInheritance.AVERAGE
    assert layout.get_type('last_fitness') == 'double'

    assert layout.get_entry('x').readers == ['analyze']
    assert not layout.has_name('seen')
    assert layout.has_name('seen', module='analyze')

    pops = run['populations']
    assert pops['main_pop'].get_num_orgs() == 4
    assert pops['empty_pop'].is_empty()
    assert pops['main_pop'][1].get_trait('color') == 'blue'

    info = run['script'].notifier.messages[0]
    assert info.level == 'info' and 'example-run' in info.message

    print(f"[OK] Layout: {len(layout)} slots, populations: {', '.join(pops)}")


def test_run_queries():
    run = load_run(EXAMPLE_RUN, SCHEMA_DIR, notifier=Notifier(echo=False))
    results = run_queries(run['script'], run['config'], run['populations'])

    assert results['mean_x'] == 10.75
    assert [index for _, index in results['big_x'].positions] == [1, 2]
    assert results['top_color'] == '"red"'
    assert results['fitness_richness'] == 3.0
    assert results['empty_mean'] == 0.0
    assert not run['script'].notifier.has_errors()

    print("[OK] All example queries evaluated\n")


def test_conflicting_modules_report_every_error():
    with pytest.raises(LayoutValidationError) as exc_info:
        load_run(DATA_ROOT / "runs" / "conflict.yaml", SCHEMA_DIR, notifier=Notifier(echo=False))
    assert len(exc_info.value.errors) == 3


def test_missing_file():
    with pytest.raises(DataLoadError):
        load_run_config(DATA_ROOT / "runs" / "missing.yaml")


def test_schema_violation(tmp_path):
    run_file = tmp_path / "bad.yaml"
    run_file.write_text(
        "run_id: bad\n"
        "modules:\n"
        "  - name: m\n"
        "    traits:\n"
        "      - {name: score, access: borrowed, type: double}\n"
    )
    with pytest.raises(DataLoadError) as exc_info:
        load_run_config(run_file, SCHEMA_DIR)
    assert 'Validation error' in str(exc_info.value)

    # Without a schema the bad access mode is caught when building modules
    with pytest.raises(DataLoadError):
        load_run(run_file, notifier=Notifier(echo=False))


def test_missing_schema(tmp_path):
    with pytest.raises(DataLoadError):
        validate_against_schema({}, tmp_path / "none.schema.json", EXAMPLE_RUN)


def test_bad_organism_value(tmp_path):
    run_file = tmp_path / "typed.yaml"
    run_file.write_text(
        "run_id: typed\n"
        "modules:\n"
        "  - name: m\n"
        "    traits:\n"
        "      - {name: score, access: owned, type: double, default: 0.0}\n"
        "populations:\n"
        "  - name: pop\n"
        "    organisms:\n"
        "      - {score: high}\n"
    )
    with pytest.raises(DataLoadError) as exc_info:
        load_run(run_file, SCHEMA_DIR, notifier=Notifier(echo=False))
    assert "Population 'pop'" in str(exc_info.value)


def test_query_on_unknown_population(tmp_path):
    run_file = tmp_path / "queries.yaml"
    run_file.write_text(
        "run_id: queries\n"
        "modules:\n"
        "  - name: m\n"
        "    traits:\n"
        "      - {name: score, access: owned, type: double, default: 1.5}\n"
        "populations:\n"
        "  - name: pop\n"
        "    inject: 2\n"
        "queries:\n"
        "  - {name: lost, population: nowhere, function: CALC_MEAN, equation: score}\n"
        "  - {name: odd, population: pop, function: CALC_SKEW, equation: score}\n"
        "  - {name: total, population: pop, function: CALC_SUM, equation: score}\n"
    )
    run = load_run(run_file, SCHEMA_DIR, notifier=Notifier(echo=False))
    results = run_queries(run['script'], run['config'], run['populations'])

    assert results == {'lost': None, 'odd': None, 'total': 3.0}
    assert len(run['script'].notifier.errors) == 2


def test_organism_trait_named_count(tmp_path):
    run_file = tmp_path / "count.yaml"
    run_file.write_text(
        "run_id: count\n"
        "modules:\n"
        "  - name: m\n"
        "    traits:\n"
        "      - {name: count, access: owned, type: int, default: 0}\n"
        "populations:\n"
        "  - name: pop\n"
        "    organisms:\n"
        "      - {count: 3}\n"
        "      - {count: 5}\n"
    )
    run = load_run(run_file, SCHEMA_DIR, notifier=Notifier(echo=False))
    pop = run['populations']['pop']
    assert [org.get_trait('count') for org in pop] == [3, 5]


def test_explicit_null_default_is_kept(tmp_path):
    """`default: null` is a None default (rejected by type), not a missing one"""
    run_file = tmp_path / "nulls.yaml"
    run_file.write_text(
        "run_id: nulls\n"
        "modules:\n"
        "  - name: m\n"
        "    traits:\n"
        "      - {name: energy, access: shared, type: double}\n"
        "      - {name: score, access: owned, type: double, default: null}\n"
    )
    config = load_run_config(run_file, SCHEMA_DIR)
    energy, score = config.modules[0].traits
    assert energy.default is NO_DEFAULT
    assert score.default is None

    with pytest.raises(LayoutValidationError) as exc_info:
        load_run(run_file, SCHEMA_DIR, notifier=Notifier(echo=False))
    assert len(exc_info.value.errors) == 1
    assert "does not match type 'double'" in str(exc_info.value.errors[0])
