# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single render invocation
    env: str          # dev/staging/prod
    context: Optional[str]  # composer name (tunnel/talos/gitops)

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(env: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# Composer lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RenderStarted(BaseEvent):
    composer: str

@dataclass(frozen=True)
class RenderSummary(BaseEvent):
    composer: str
    documents: int
    status: str         # "OK" or "FAILED"
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Talos schematics
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SchematicResolved(BaseEvent):
    schematic_id: str
    extensions: List[str]
    overlay: Optional[str]
    nodes: List[str]


# ---------------------------------------------------------------------
# Bootstrap planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ArtifactWritten(BaseEvent):
    path: str
    bytes: int
