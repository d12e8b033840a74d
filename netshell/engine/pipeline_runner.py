"""Module pipeline_runner: sequential step execution with stop-on-failure."""
#
# PURPOSE:
# Runs the steps of one pipeline in order against one VariableStore. Each
# step sees every variable produced by the steps before it.
#
# LOGIC:
# - After each step, any failed target stops the pipeline; later steps are
#   absent from the result
# - A step's wall time is its slowest target; total time sums those
#

import logging

from netshell.config.schema import Pipeline
from netshell.engine.events import EventBus
from netshell.engine.models import PipelineResult
from netshell.engine.step_executor import StepExecutor
from netshell.variables.store import VariableStore

logger = logging.getLogger(__name__)


class PipelineRunner:
    def __init__(self, step_executor: StepExecutor, bus: EventBus):
        self.step_executor = step_executor
        self.bus = bus

    async def run(self, pipeline: Pipeline, store: VariableStore) -> PipelineResult:
        result = PipelineResult(pipeline_name=pipeline.name)
        logger.info(f"[PipelineRunner] Starting pipeline '{pipeline.name}' ({len(pipeline.steps)} steps)")
        self.bus.emit_log(
            pipeline.name,
            f"Starting pipeline '{pipeline.name}' with {len(pipeline.steps)} step(s)",
            variables=store.to_python(),
        )

        for index, step in enumerate(pipeline.steps, start=1):
            targets = self.step_executor.target_names(step)
            self.bus.emit_log(
                pipeline.name,
                f"Step {index}/{len(pipeline.steps)} '{step.name}' on {len(targets)} target(s)",
                step=step,
                variables=store.to_python(),
            )

            step_results = await self.step_executor.execute(pipeline.name, step, store)
            result.step_results.extend(step_results)
            result.total_execution_time_ms += max(
                (r.execution_result.execution_time_ms for r in step_results), default=0
            )

            failed = [r.target_name for r in step_results if not r.success]
            if failed:
                result.overall_success = False
                logger.warning(
                    f"[PipelineRunner] Pipeline '{pipeline.name}' stopped: step '{step.name}' "
                    f"failed on {', '.join(failed)}"
                )
                self.bus.emit_log(
                    pipeline.name,
                    f"Step '{step.name}' failed on {', '.join(failed)}; stopping pipeline",
                    step=step,
                    variables=store.to_python(),
                )
                break

            self.bus.emit_log(
                pipeline.name,
                f"Step '{step.name}' succeeded",
                step=step,
                variables=store.to_python(),
            )

        status = "succeeded" if result.overall_success else "failed"
        logger.info(
            f"[PipelineRunner] Pipeline '{pipeline.name}' {status} in {result.total_execution_time_ms} ms"
        )
        self.bus.emit_log(
            pipeline.name,
            f"Pipeline '{pipeline.name}' {status} in {result.total_execution_time_ms} ms",
            variables=store.to_python(),
        )
        return result
