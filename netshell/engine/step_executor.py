"""
netshell/engine/step_executor.py
Runs one step on all of its targets.

Algorithm:
    1. Render the step's static `variables` against the current store and
       write them; then snapshot the store and render the script. A render
       failure fails every target with a Template error and skips execution.
    2. Resolve targets: the step's `servers`, or the synthetic "local" target.
    3. Emit StepStarted per target, then run one task per target concurrently
       with the step timeout (or the default). Output lines become Stdout /
       Stderr events the moment they arrive.
    4. When all targets are done, walk them in configured order: apply the
       extraction rules to each result and emit StepCompleted.

Per-target failures are data: whatever goes wrong on a target ends up in its
ExecutionResult, never as an exception out of execute().
"""

import asyncio
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

from netshell.config.schema import Step
from netshell.engine.events import EventBus, OutputEvent, OutputType
from netshell.engine.models import LOCAL_TARGET, ExecutionResult, StepResult
from netshell.errors import NetShellError, TemplateError, handle_error
from netshell.template.engine import TemplateEngine
from netshell.transport.registry import TargetRegistry
from netshell.variables.extractor import Extractor
from netshell.variables.store import VariableStore
from netshell.variables.value import Value

logger = logging.getLogger(__name__)

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def export_env(snapshot: Mapping[str, Value]) -> Dict[str, str]:
    """Scalar variables whose names are valid environment variable names."""
    env = {}
    for name, value in snapshot.items():
        if value.is_scalar and _ENV_NAME_RE.match(name):
            env[name] = value.stringify()
    return env


class StepExecutor:
    def __init__(
        self,
        bus: EventBus,
        registry: TargetRegistry,
        template_engine: Optional[TemplateEngine] = None,
        extractor: Optional[Extractor] = None,
        default_timeout: float = 60.0,
        export_variables_to_env: bool = True,
    ):
        self.bus = bus
        self.registry = registry
        self.template_engine = template_engine or TemplateEngine()
        self.extractor = extractor or Extractor()
        self.default_timeout = default_timeout
        self.export_variables_to_env = export_variables_to_env

    @staticmethod
    def target_names(step: Step) -> Tuple[str, ...]:
        return step.servers or (LOCAL_TARGET,)

    def timeout_for(self, step: Step) -> float:
        return step.timeout_seconds if step.timeout_seconds is not None else self.default_timeout

    async def execute(self, pipeline_name: str, step: Step, store: VariableStore) -> List[StepResult]:
        """
        Execute a step on every target.

        Returns:
            One StepResult per target, in configured target order
        """
        names = self.target_names(step)
        script, render_error = self._render(step, store)
        snapshot = store.snapshot()
        variables = store.to_python()

        for name in names:
            self.bus.emit_step_started(pipeline_name, step, name, variables)

        if render_error is not None:
            logger.error(f"[StepExecutor] Step '{step.name}': {render_error.message}")
            results = [ExecutionResult.failure(render_error, script=step.script) for _ in names]
        else:
            env = export_env(snapshot) if self.export_variables_to_env else None
            timeout = self.timeout_for(step)
            results = await asyncio.gather(*(
                self._run_target(pipeline_name, step, name, script, timeout, env, store)
                for name in names
            ))

        step_results = []
        for name, result in zip(names, results):
            if not result.success:
                self.bus.emit_log(
                    pipeline_name,
                    f"Step '{step.name}' failed on {name}: {result.error_message}",
                    step=step,
                    target_name=name,
                    variables=store.to_python(),
                )
            if result.executed and step.extract:
                self.extractor.apply(step.extract, result, store, target_name=name)
            self.bus.emit_step_completed(
                pipeline_name,
                step,
                name,
                self._completion_message(step, name, result),
                store.to_python(),
            )
            step_results.append(StepResult(step.name, name, result))
        return step_results

    def _render(self, step: Step, store: VariableStore) -> Tuple[str, Optional[TemplateError]]:
        try:
            if step.variables:
                overrides = self.template_engine.render_mapping(step.variables, store.snapshot())
                store.update(overrides)
            return self.template_engine.render(step.script, store.snapshot()), None
        except TemplateError as exc:
            return "", exc

    async def _run_target(
        self,
        pipeline_name: str,
        step: Step,
        name: str,
        script: str,
        timeout: float,
        env: Optional[Dict[str, str]],
        store: VariableStore,
    ) -> ExecutionResult:
        def on_line(kind: OutputType, line: str) -> None:
            self.bus.emit(OutputEvent(
                pipeline_name=pipeline_name,
                step=step,
                target_name=name,
                output_type=kind,
                content=line,
                variables=store.to_python(),
            ))

        try:
            target = self.registry.get(name)
            logger.info(f"[StepExecutor] Running step '{step.name}' on {name} (timeout {timeout:g}s)")
            return await target.run(script, timeout, on_line=on_line, env=env)
        except NetShellError as exc:
            logger.error(f"[StepExecutor] {name}: {exc.message}")
            return ExecutionResult.failure(exc, script=script)
        except Exception as e:
            error = handle_error(e, context=f"Step '{step.name}' on {name}")
            logger.exception(f"[StepExecutor] Unexpected error on {name}: {e}")
            return ExecutionResult.failure(error, script=script)

    @staticmethod
    def _completion_message(step: Step, name: str, result: ExecutionResult) -> str:
        if result.success:
            return f"Step '{step.name}' completed on {name} in {result.execution_time_ms} ms"
        return (
            f"Step '{step.name}' failed on {name} after {result.execution_time_ms} ms "
            f"(exit code {result.exit_code})"
        )
