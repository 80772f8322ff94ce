# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/utils/merge.py

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping


def deep_merge(a: Mapping[str, Any], b: Mapping[str, Any]) -> dict:
    """
    Return a new dict with *b* merged over *a*.

    Mappings merge key by key; any other value in *b* (scalars, lists)
    replaces the value in *a*. Neither input is modified.
    """
    out = {k: copy.deepcopy(v) for k, v in a.items()}
    for k, v in b.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def merge_patches(base: Mapping[str, Any], patches: Iterable[Mapping[str, Any]]) -> dict:
    """Apply *patches* onto *base* in list order, last writer wins per leaf."""
    out = deep_merge({}, base)
    for patch in patches:
        out = deep_merge(out, patch)
    return out


def dig(doc: Any, *path: str, default: Any = None) -> Any:
    """
    Walk nested mappings, returning *default* as soon as a key is missing
    or an intermediate value is not a mapping.
    """
    cur = doc
    for key in path:
        if not isinstance(cur, Mapping) or key not in cur:
            return default
        cur = cur[key]
    return cur
