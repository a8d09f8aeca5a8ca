"""Helpers for nested configuration data and `%key%` replacements."""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Mapping, Union

PLACEHOLDER_PATTERN = re.compile(r"%([^%\s]+)%")

Strings = Union[List[str], Dict[str, str]]


def merge_data(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge `override` into a copy of `base`.

    Nested mappings are merged key by key, every other value (lists
    included) from `override` replaces the one in `base`.
    """
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_data(existing, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def get_property(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Look up a dotted path like `database.name` in nested data."""
    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def _render_scalar(value: Any) -> str:
    if value is True:
        return "1"
    if value is False or value is None:
        return ""
    return str(value)


def flatten_variables(variables: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested variables into `dotted.path -> string` replacements.

    List items are addressed by their index, e.g. `host.needs.0`.
    """
    replacements: Dict[str, str] = {}
    items: Any = variables.items() if isinstance(variables, Mapping) else enumerate(variables)
    for key, value in items:
        path = f"{prefix}{key}"
        if isinstance(value, Mapping) or isinstance(value, (list, tuple)):
            replacements.update(flatten_variables(value, prefix=f"{path}."))
        else:
            replacements[path] = _render_scalar(value)
    return replacements


def _expand_line(line: str, replacements: Mapping[str, str]) -> str:
    # All tokens of one line are substituted at once; a value that itself
    # contains a placeholder is only picked up by the next pass.
    return PLACEHOLDER_PATTERN.sub(
        lambda match: replacements.get(match.group(1), match.group(0)),
        line,
    )


def expand_strings(strings: Strings, replacements: Mapping[str, str]) -> Strings:
    """Run one replacement pass over a list of lines or a mapping of values."""
    if isinstance(strings, Mapping):
        return {key: _expand_line(str(value), replacements) for key, value in strings.items()}
    return [_expand_line(str(line), replacements) for line in strings]
