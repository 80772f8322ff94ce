# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/gitops/planner.py

from __future__ import annotations

from collections import deque
from typing import Any, List, Dict, Set, Optional, Sequence

from stackgen.gitops.models import InstallStep

# Observer bits
from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import PlanComputed, PlanFailed, new_ctx


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


def _validate_dependencies(steps: Sequence[InstallStep]) -> None:
    names: Set[str] = {s.name for s in steps}
    for s in steps:
        for d in s.dependencies:
            if d not in names:
                raise UnknownDependencyError(
                    f"Step '{s.name}' depends on unknown step '{d}'"
                )


def plan_steps(
    steps: Sequence[InstallStep],
    bus: Optional[EventBus] = None,
    run_ctx: Optional[Dict[str, Any]] = None,
) -> List[InstallStep]:
    """
    Stable topological sort of install steps based on 'dependencies'.
    Ready steps are taken alphabetically so the order is deterministic.
    Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(env="dev", context="gitops")
    try:
        _validate_dependencies(steps)

        by_name: Dict[str, InstallStep] = {s.name: s for s in steps}
        indeg: Dict[str, int] = {s.name: len(set(s.dependencies)) for s in steps}
        graph: Dict[str, Set[str]] = {s.name: set(s.dependencies) for s in steps}

        queue = deque(sorted(n for n, deg in indeg.items() if deg == 0))
        order: List[InstallStep] = []

        while queue:
            n = queue.popleft()
            order.append(by_name[n])
            for m, deps in graph.items():
                if n in deps:
                    indeg[m] -= 1
                    if indeg[m] == 0:
                        queue.append(m)
                        queue = deque(sorted(queue))  # deterministic

        if len(order) != len(steps):
            stuck = sorted(n for n, deg in indeg.items() if deg > 0)
            raise CyclicDependencyError(
                f"Cyclic dependency detected among steps: {', '.join(stuck)}"
            )

        if bus:
            bus.emit(PlanComputed(order=[s.name for s in order], **ctx))
        return order

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
