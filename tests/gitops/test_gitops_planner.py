import pytest

from stackgen.gitops.models import InstallStep
from stackgen.gitops.planner import plan_steps, UnknownDependencyError, CyclicDependencyError
from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import PlanComputed, PlanFailed


def _step(name, deps=()):
    return InstallStep(name=name, kind="manifest", manifest={"kind": "ConfigMap"}, dependencies=list(deps))


def test_plan_orders_dependencies_and_emits_event(capture):
    a, b, c = _step("a"), _step("b", ["a"]), _step("c", ["b"])
    ordered = plan_steps([c, b, a], bus=EventBus([capture]))
    assert [s.name for s in ordered] == ["a", "b", "c"]
    pc = next(e for e in capture.events if isinstance(e, PlanComputed))
    assert pc.order == ["a", "b", "c"]


def test_ready_steps_taken_alphabetically():
    steps = [_step("zeta"), _step("alpha"), _step("mid", ["zeta"])]
    assert [s.name for s in plan_steps(steps)] == ["alpha", "zeta", "mid"]


def test_duplicate_dependency_counted_once():
    steps = [_step("a"), _step("b", ["a", "a"])]
    assert [s.name for s in plan_steps(steps)] == ["a", "b"]


def test_unknown_dep_raises_and_emits_failure(capture):
    with pytest.raises(UnknownDependencyError):
        plan_steps([_step("x", ["missing"])], bus=EventBus([capture]))
    pf = next(e for e in capture.events if isinstance(e, PlanFailed))
    assert "unknown step 'missing'" in pf.error


def test_cycle_detected_and_emits_failure(capture):
    with pytest.raises(CyclicDependencyError, match="a, b"):
        plan_steps([_step("a", ["b"]), _step("b", ["a"]), _step("c")], bus=EventBus([capture]))
    assert any(isinstance(e, PlanFailed) for e in capture.events)
    assert not any(isinstance(e, PlanComputed) for e in capture.events)
