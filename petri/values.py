"""
Type-erased trait values.

Trait values are stored as plain Python objects; each trait carries a
value type name that keys into VALUE_TYPES. Generic code (aggregation,
archiving, inheritance) goes through the registered operations and never
needs to know the concrete type of a trait.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np


@dataclass(frozen=True)
class ValueType:
    """Operations available for one concrete trait value type"""
    name: str
    numeric: bool
    zero: Callable[[], Any]
    accepts: Callable[[Any], bool]
    to_string: Callable[[Any], str]


def format_number(value: float) -> str:
    """
    Format a numeric result for textual output.

    Integral values print without a decimal point (3.0 -> "3").
    """
    if isinstance(value, (bool, np.bool_)):
        return '1' if value else '0'
    value = float(value)
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def to_literal(text: str) -> str:
    """Quote a string as a config-language literal ("abc" with escapes)"""
    escaped = (
        text.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\t', '\\t')
    )
    return f'"{escaped}"'


def from_literal(text: str) -> str:
    """Inverse of to_literal; unquoted text is returned unchanged"""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        body = text[1:-1]
        out = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch == '\\' and i + 1 < len(body):
                nxt = body[i + 1]
                out.append({'n': '\n', 't': '\t'}.get(nxt, nxt))
                i += 2
                continue
            out.append(ch)
            i += 1
        return ''.join(out)
    return text


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, (bool, np.bool_))


def _is_integer(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _list_to_string(value) -> str:
    return '[' + ','.join(format_number(v) if _is_number(v) else str(v) for v in value) + ']'


VALUE_TYPES: Dict[str, ValueType] = {
    'bool': ValueType(
        name='bool', numeric=True, zero=lambda: False,
        accepts=lambda v: isinstance(v, (bool, np.bool_)),
        to_string=format_number,
    ),
    'int': ValueType(
        name='int', numeric=True, zero=lambda: 0,
        accepts=_is_integer,
        to_string=format_number,
    ),
    'double': ValueType(
        name='double', numeric=True, zero=lambda: 0.0,
        accepts=_is_number,
        to_string=format_number,
    ),
    'string': ValueType(
        name='string', numeric=False, zero=lambda: '',
        accepts=lambda v: isinstance(v, str),
        to_string=str,
    ),
    'list': ValueType(
        name='list', numeric=False, zero=list,
        accepts=lambda v: isinstance(v, (list, tuple)),
        to_string=_list_to_string,
    ),
}

# Alternate spellings accepted in declarations and config files
TYPE_ALIASES = {
    'float': 'double',
    'str': 'string',
    'integer': 'int',
    'boolean': 'bool',
}


def get_value_type(name: str) -> ValueType:
    """
    Look up a value type by name.

    Raises:
        KeyError: If the name (after alias resolution) is not registered
    """
    key = TYPE_ALIASES.get(name, name)
    if key not in VALUE_TYPES:
        raise KeyError(f"Unknown trait value type '{name}'")
    return VALUE_TYPES[key]


def infer_value_type(value: Any) -> Optional[str]:
    """
    Infer the value type name for a default value.

    Returns:
        Type name, or None if the value does not match a registered type
    """
    if isinstance(value, (bool, np.bool_)):
        return 'bool'
    if _is_integer(value):
        return 'int'
    if _is_number(value):
        return 'double'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, (list, tuple)):
        return 'list'
    return None
