"""
Tests for PipelineRunner: sequencing, stop-on-failure and time accounting.
"""

import time

import pytest

from netshell.config.schema import ClientConfig, ExtractRule, Pipeline, Step
from netshell.engine.events import EventBus, OutputType
from netshell.engine.pipeline_runner import PipelineRunner
from netshell.engine.step_executor import StepExecutor
from netshell.transport.registry import TargetRegistry
from netshell.variables.store import VariableStore

CLIENTS = {name: ClientConfig(execution_method="local") for name in ("a", "b")}


def make_runner(factory, recorder=None):
    bus = EventBus()
    if recorder is not None:
        bus.subscribe(recorder)
    executor = StepExecutor(bus, TargetRegistry(CLIENTS, {}, factory=factory))
    return PipelineRunner(executor, bus)


@pytest.mark.asyncio
async def test_stops_after_first_failing_step(fake_factory, recorder):
    factory = fake_factory(b={"exit_code": 1})
    runner = make_runner(factory, recorder)
    pipeline = Pipeline(name="p", steps=[
        Step(name="A", script="step-a", servers=["a"]),
        Step(name="B", script="step-b", servers=["a", "b"]),
        Step(name="C", script="step-c", servers=["a"]),
    ])

    result = await runner.run(pipeline, VariableStore())

    assert result.overall_success is False
    assert result.steps_run == ["A", "B"]
    assert [(r.step_name, r.target_name) for r in result.step_results] == [
        ("A", "a"), ("B", "a"), ("B", "b"),
    ]
    assert factory.targets["a"].scripts == ["step-a", "step-b"]
    assert any("stopping pipeline" in c for c in recorder.contents(OutputType.LOG))


@pytest.mark.asyncio
async def test_step_time_is_slowest_target(fake_factory):
    factory = fake_factory(a={"elapsed_ms": 1000}, b={"elapsed_ms": 3000})
    runner = make_runner(factory)
    pipeline = Pipeline(name="p", steps=[Step(name="both", script="true", servers=["a", "b"])])

    result = await runner.run(pipeline, VariableStore())

    assert result.overall_success is True
    assert result.total_execution_time_ms == 3000


@pytest.mark.asyncio
async def test_total_time_sums_steps(fake_factory):
    factory = fake_factory(a={"elapsed_ms": 1000}, b={"elapsed_ms": 3000})
    runner = make_runner(factory)
    pipeline = Pipeline(name="p", steps=[
        Step(name="one", script="true", servers=["a", "b"]),
        Step(name="two", script="true", servers=["a"]),
    ])

    result = await runner.run(pipeline, VariableStore())

    assert result.total_execution_time_ms == 4000


@pytest.mark.asyncio
async def test_concurrent_targets_overlap_in_wall_time(fake_factory):
    factory = fake_factory(a={"delay": 0.1}, b={"delay": 0.3})
    runner = make_runner(factory)
    pipeline = Pipeline(name="p", steps=[Step(name="both", script="true", servers=["a", "b"])])

    started = time.monotonic()
    result = await runner.run(pipeline, VariableStore())
    wall = time.monotonic() - started

    # Reported time follows the slowest target, not the sum of both
    assert result.total_execution_time_ms == 300
    assert wall < 0.4


@pytest.mark.asyncio
async def test_later_steps_see_extracted_variables(fake_factory):
    factory = fake_factory(a={"stdout": "token=abc123\n"})
    runner = make_runner(factory)
    pipeline = Pipeline(name="p", steps=[
        Step(name="login", script="login", servers=["a"],
             extract=[ExtractRule(name="token", patterns=[r"token=(\w+)"])]),
        Step(name="use", script="use {{ token }}"),
    ])

    result = await runner.run(pipeline, VariableStore())

    assert result.overall_success
    assert factory.targets["local"].scripts == ["use abc123"]


@pytest.mark.asyncio
async def test_lifecycle_logs(fake_factory, recorder):
    runner = make_runner(fake_factory(), recorder)
    pipeline = Pipeline(name="deploy", steps=[Step(name="only", script="true", servers=["a", "b"])])

    await runner.run(pipeline, VariableStore())

    logs = recorder.contents(OutputType.LOG)
    assert logs[0] == "Starting pipeline 'deploy' with 1 step(s)"
    assert "Step 1/1 'only' on 2 target(s)" in logs
    assert "Step 'only' succeeded" in logs
    assert logs[-1].startswith("Pipeline 'deploy' succeeded in ")
