"""Hierarchical settings merge with per-path strategies.

Layers are folded left to right with :func:`merge_layers`.  Each key's
strategy comes from a resolver that receives the key path as a tuple, e.g.
``("tools", "exclude")``.  ``ENFORCE`` pins a path to the first layer that
supplies it: later layers can neither change nor remove it, including by
replacing or nulling out an enclosing mapping.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any


class MergeStrategy(str, Enum):
    """How a key's value combines across layers."""

    DEFAULT = "default"
    ENFORCE = "enforce"
    REPLACE = "replace"
    CONCAT = "concat"
    UNION = "union"
    SHALLOW_MERGE = "shallow_merge"


StrategyResolver = Callable[[tuple[str, ...]], MergeStrategy | None]

_MISSING = object()


def merge(
    resolver: StrategyResolver,
    base: Mapping[str, Any],
    override: Mapping[str, Any],
    path: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Merge *override* onto *base*; neither input is modified."""
    result: dict[str, Any] = {}
    keys = list(base) + [key for key in override if key not in base]

    for key in keys:
        key_path = (*path, key)
        value = _merge_value(
            resolver(key_path) or MergeStrategy.DEFAULT,
            resolver,
            key_path,
            base.get(key, _MISSING),
            override.get(key, _MISSING),
        )
        if value is not _MISSING:
            result[key] = value

    return result


def merge_layers(resolver: StrategyResolver, *layers: Mapping[str, Any]) -> dict[str, Any]:
    """Fold *layers* pairwise, left to right, with one resolver."""
    result: dict[str, Any] = {}
    for layer in layers:
        result = merge(resolver, result, layer)
    return result


def _merge_value(
    strategy: MergeStrategy,
    resolver: StrategyResolver,
    path: tuple[str, ...],
    base: Any,
    override: Any,
) -> Any:
    if base is _MISSING:
        return copy.deepcopy(override)
    if override is _MISSING:
        return copy.deepcopy(base)

    if strategy is MergeStrategy.ENFORCE:
        return copy.deepcopy(base)

    if strategy is MergeStrategy.REPLACE:
        return _keep_enforced(resolver, path, base, copy.deepcopy(override))

    if strategy is MergeStrategy.CONCAT and isinstance(base, list) and isinstance(override, list):
        return copy.deepcopy(base + override)

    if strategy is MergeStrategy.UNION and isinstance(base, list) and isinstance(override, list):
        union: list[Any] = []
        for item in (*base, *override):
            if item not in union:
                union.append(copy.deepcopy(item))
        return union

    if isinstance(base, Mapping) and isinstance(override, Mapping):
        if strategy is MergeStrategy.SHALLOW_MERGE:
            return _keep_enforced(resolver, path, base, copy.deepcopy({**base, **override}))
        return merge(resolver, base, override, path)

    return _keep_enforced(resolver, path, base, copy.deepcopy(override))


def _keep_enforced(
    resolver: StrategyResolver,
    path: tuple[str, ...],
    base: Any,
    replacement: Any,
) -> Any:
    """Write every ENFORCE value found under *base* back into *replacement*.

    A replacement that is not a mapping cannot hold them and is treated as an
    empty mapping.
    """
    if not isinstance(base, Mapping):
        return replacement
    pinned = _enforced_values(resolver, path, base)
    if not pinned:
        return replacement

    result = dict(replacement) if isinstance(replacement, Mapping) else {}
    for key_path, value in pinned:
        _set_path(result, key_path[len(path) :], value)
    return result


def _enforced_values(
    resolver: StrategyResolver, path: tuple[str, ...], node: Mapping[str, Any]
) -> list[tuple[tuple[str, ...], Any]]:
    found: list[tuple[tuple[str, ...], Any]] = []
    for key, value in node.items():
        key_path = (*path, key)
        if resolver(key_path) is MergeStrategy.ENFORCE:
            found.append((key_path, value))
        elif isinstance(value, Mapping):
            found.extend(_enforced_values(resolver, key_path, value))
    return found


def _set_path(target: dict[str, Any], keys: tuple[str, ...], value: Any) -> None:
    node = target
    for key in keys[:-1]:
        child = node.get(key)
        child = dict(child) if isinstance(child, Mapping) else {}
        node[key] = child
        node = child
    node[keys[-1]] = copy.deepcopy(value)
