"""
netshell/engine/orchestrator.py
Top-level entry point: runs the pipelines of a validated ExecutionConfig.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from netshell.base.config import NetShellConfig, get_config
from netshell.config.schema import ExecutionConfig, Pipeline
from netshell.engine.events import (
    LIFECYCLE_TYPES,
    STREAM_TYPES,
    EventBus,
    EventCallback,
    EventSink,
    OutputType,
)
from netshell.engine.models import PipelineResult
from netshell.engine.pipeline_runner import PipelineRunner
from netshell.engine.step_executor import StepExecutor
from netshell.errors import ConfigError, ErrorCode
from netshell.template.engine import TemplateEngine
from netshell.transport.registry import TargetFactory, TargetRegistry
from netshell.variables.store import VariableStore

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Runs pipelines sequentially, each against a freshly seeded VariableStore.

    The configuration is immutable and passed in explicitly; the orchestrator
    owns the default timeout, the global variables plus caller overrides and
    the event bus.
    """

    def __init__(
        self,
        config: ExecutionConfig,
        variables: Optional[Mapping[str, Any]] = None,
        runtime: Optional[NetShellConfig] = None,
        template_engine: Optional[TemplateEngine] = None,
        target_factory: Optional[TargetFactory] = None,
    ):
        self.config = config
        self.overrides = dict(variables or {})
        self.runtime = runtime or get_config()
        self.template_engine = template_engine or TemplateEngine()
        self.target_factory = target_factory
        self.bus = EventBus()

    @property
    def default_timeout(self) -> float:
        if self.config.default_timeout is not None:
            return self.config.default_timeout
        return self.runtime.execution.default_timeout_seconds

    # --- Observers ---

    def subscribe(self, sink: Any, kinds: Optional[Iterable[OutputType]] = None) -> EventSink:
        return self.bus.subscribe(sink, kinds)

    def unsubscribe(self, sink: EventSink) -> None:
        self.bus.unsubscribe(sink)

    # --- Queries ---

    def get_available_clients(self) -> List[str]:
        return list(self.config.clients)

    def client_exists(self, name: str) -> bool:
        return name in self.config.clients

    def get_available_pipelines(self) -> List[str]:
        return [p.name for p in self.config.pipelines]

    def pipeline_exists(self, name: str) -> bool:
        return self.config.get_pipeline(name) is not None

    # --- Execution ---

    def new_store(self) -> VariableStore:
        return VariableStore.seeded(self.config.variables, self.overrides)

    async def execute_all_pipelines(self) -> List[PipelineResult]:
        """
        Run every configured pipeline in order.

        A failing pipeline does not prevent the next one from running; its
        failure is reported through its PipelineResult.
        """
        return await self._execute(self.config.pipelines)

    async def execute_all_pipelines_with_realtime_output(
        self,
        output_callback: EventCallback,
        lifecycle_callback: Optional[EventCallback] = None,
    ) -> List[PipelineResult]:
        """
        Run every pipeline, streaming events to the given callbacks.

        With one callback it receives every event. With two, the first gets
        Stdout/Stderr/Log and the second StepStarted/StepCompleted.
        """
        sinks = self._attach(output_callback, lifecycle_callback)
        try:
            return await self.execute_all_pipelines()
        finally:
            for sink in sinks:
                self.bus.unsubscribe(sink)

    async def execute_pipeline(
        self,
        name: str,
        output_callback: Optional[EventCallback] = None,
        lifecycle_callback: Optional[EventCallback] = None,
    ) -> PipelineResult:
        """
        Run a single pipeline by name.

        Callbacks are routed as in execute_all_pipelines_with_realtime_output;
        a lifecycle_callback given alone receives StepStarted/StepCompleted.

        Raises:
            ConfigError: no pipeline with that name
        """
        pipeline = self.config.get_pipeline(name)
        if pipeline is None:
            raise ConfigError(
                ErrorCode.CONFIG_UNKNOWN_PIPELINE,
                f"Pipeline '{name}' not found",
                details={"pipeline": name, "available": self.get_available_pipelines()},
            )

        sinks = self._attach(output_callback, lifecycle_callback)
        try:
            results = await self._execute([pipeline])
        finally:
            for sink in sinks:
                self.bus.unsubscribe(sink)
        return results[0]

    def _attach(
        self,
        output_callback: Optional[EventCallback],
        lifecycle_callback: Optional[EventCallback],
    ) -> List[EventSink]:
        if output_callback is None and lifecycle_callback is None:
            return []
        if output_callback is None:
            return [self.bus.subscribe(lifecycle_callback, LIFECYCLE_TYPES)]
        if lifecycle_callback is None:
            return [self.bus.subscribe(output_callback)]
        return [
            self.bus.subscribe(output_callback, STREAM_TYPES),
            self.bus.subscribe(lifecycle_callback, LIFECYCLE_TYPES),
        ]

    async def _execute(self, pipelines: Iterable[Pipeline]) -> List[PipelineResult]:
        registry = TargetRegistry(
            self.config.clients,
            self.new_store().snapshot(),
            template_engine=self.template_engine,
            defaults=self.runtime.execution,
            factory=self.target_factory,
        )
        runner = PipelineRunner(
            StepExecutor(
                self.bus,
                registry,
                template_engine=self.template_engine,
                default_timeout=self.default_timeout,
                export_variables_to_env=self.runtime.execution.export_variables_to_env,
            ),
            self.bus,
        )

        results: List[PipelineResult] = []
        try:
            for pipeline in pipelines:
                results.append(await runner.run(pipeline, self.new_store()))
        finally:
            await registry.close()

        succeeded = sum(1 for r in results if r.overall_success)
        logger.info(f"[Orchestrator] {succeeded}/{len(results)} pipeline(s) succeeded")
        return results
