# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/utils/serialize.py

from __future__ import annotations

import json
from typing import Any

import yaml


def to_jsonable(obj: Any) -> Any:
    """Plain dict/list copy of a composed document; tuples become lists."""
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]

    return obj


def dump_yaml(doc: Any) -> str:
    return yaml.safe_dump(to_jsonable(doc), sort_keys=False)


def dump_json(doc: Any) -> str:
    return json.dumps(to_jsonable(doc), indent=2) + "\n"
