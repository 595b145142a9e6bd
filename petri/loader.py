"""
YAML run-configuration loader with schema validation.

Loads module trait declarations, populations, script variables and named
queries from a YAML file, validates against a JSON schema, and builds the
runtime objects (modules, data layout, populations, script host).
"""

import yaml
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import jsonschema

from .constants import POPULATION_TYPE_NAME
from .data_types import (
    RunConfig, ModuleDefinition, TraitDeclaration, PopulationDefinition,
    QueryDefinition, TraitAccess
)
from .diagnostics import Notifier
from .errors import ConfigError
from .layout import DataLayout, build_layout
from .module import Module
from .organism import Population
from .script import ConfigScript


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


RUN_SCHEMA_FILE = "run.schema.json"

_INHERIT_SETTERS = {
    'default': None,
    'parent': 'set_inherit_parent',
    'average': 'set_inherit_average',
    'minimum': 'set_inherit_minimum',
    'maximum': 'set_inherit_maximum',
}

_ARCHIVE_SETTERS = {
    'none': None,
    'last_reset': 'set_archive_last',
    'all_resets': 'set_archive_all',
    'all_changes': 'set_archive_changes',
}

_ROLE_FLAGS = {
    'evaluate': 'is_evaluate',
    'select': 'is_select',
    'placement': 'is_placement',
    'analyze': 'is_analyze',
}


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}") from e


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        raise DataLoadError(f"Schema not found: {schema_path}")

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}") from e
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}") from e


def parse_run_config(data: dict) -> RunConfig:
    """Turn a parsed YAML dict into a RunConfig"""
    try:
        modules = []
        for m_data in data['modules']:
            traits = [TraitDeclaration(**t) for t in m_data.get('traits', [])]
            modules.append(ModuleDefinition(
                name=m_data['name'],
                traits=traits,
                roles=m_data.get('roles', []),
                description=m_data.get('description')
            ))

        populations = [PopulationDefinition(**p) for p in data.get('populations', [])]
        queries = [QueryDefinition(**q) for q in data.get('queries', [])]
    except (KeyError, TypeError) as e:
        raise DataLoadError(f"Malformed run configuration: {e}") from e

    return RunConfig(
        run_id=data['run_id'],
        modules=modules,
        populations=populations,
        queries=queries,
        variables=data.get('variables', {}) or {},
        description=data.get('description')
    )


def load_run_config(file_path: Path, schema_dir: Optional[Path] = None) -> RunConfig:
    """Load run configuration from YAML"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema directory given
    if schema_dir:
        validate_against_schema(data, Path(schema_dir) / RUN_SCHEMA_FILE, file_path)

    if not isinstance(data, dict) or 'run_id' not in data or 'modules' not in data:
        raise DataLoadError(f"Run configuration {file_path} needs 'run_id' and 'modules'")

    return parse_run_config(data)


def build_module(definition: ModuleDefinition) -> Module:
    """Create a module and declare its traits; the module is frozen on return"""
    module = Module(definition.name, definition.description or "")

    for role in definition.roles:
        if role not in _ROLE_FLAGS:
            raise DataLoadError(f"Module '{definition.name}' has unknown role '{role}'")
        setattr(module, _ROLE_FLAGS[role], True)

    for decl in definition.traits:
        try:
            access = TraitAccess(decl.access)
            inherit = _INHERIT_SETTERS[decl.inherit]
            archive = _ARCHIVE_SETTERS[decl.archive]
        except (ValueError, KeyError) as e:
            raise DataLoadError(
                f"Module '{definition.name}' trait '{decl.name}': bad setting {e}"
            ) from e

        spec = module.add_trait(access, decl.name, decl.description, decl.default, decl.type)
        if inherit:
            getattr(spec, inherit)()
        if archive:
            getattr(spec, archive)()
        if decl.reset_parent:
            spec.set_parent_reset()

    module.freeze()
    return module


def build_modules(config: RunConfig) -> List[Module]:
    return [build_module(definition) for definition in config.modules]


def build_populations(config: RunConfig, layout: DataLayout) -> Dict[str, Population]:
    """Create populations and their initial organisms"""
    populations = {}
    for definition in config.populations:
        pop = Population(definition.name, layout)
        try:
            for traits in definition.organisms:
                pop.inject(1, traits)
            if definition.inject:
                pop.inject(definition.inject)
        except ConfigError as e:
            raise DataLoadError(f"Population '{definition.name}': {e}") from e
        populations[definition.name] = pop
    return populations


def run_queries(script: ConfigScript, config: RunConfig,
                populations: Dict[str, Population]) -> Dict[str, Any]:
    """
    Evaluate every named query.

    Queries naming an unknown population or function are reported through
    the script's notifier and produce None.
    """
    results = {}
    for query in config.queries:
        pop = populations.get(query.population)
        if pop is None:
            script.notifier.error(f"Query '{query.name}' uses unknown population '{query.population}'.")
            results[query.name] = None
            continue
        try:
            results[query.name] = script.call(POPULATION_TYPE_NAME, query.function, pop, query.equation)
        except KeyError as e:
            script.notifier.error(f"Query '{query.name}': {e.args[0]}")
            results[query.name] = None
    return results


def load_run(file_path: Path, schema_dir: Optional[Path] = None,
             notifier: Optional[Notifier] = None) -> dict:
    """Load a run configuration and build everything needed to query it

    Returns dict with keys: config, modules, layout, populations, script

    Raises:
        DataLoadError: Missing/invalid files
        LayoutValidationError: Trait declarations that cannot be merged
    """
    config = load_run_config(file_path, schema_dir)
    modules = build_modules(config)
    layout = build_layout(m.traits for m in modules)
    populations = build_populations(config, layout)
    script = ConfigScript(variables=config.variables, notifier=notifier)

    script.notifier.info(
        f"Run '{config.run_id}' loaded: {len(modules)} modules, {len(layout)} traits, "
        f"{len(populations)} populations"
    )

    return {
        'config': config,
        'modules': modules,
        'layout': layout,
        'populations': populations,
        'script': script,
    }
