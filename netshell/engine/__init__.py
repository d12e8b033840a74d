from netshell.engine.events import EventBus, EventSink, OutputEvent, OutputType
from netshell.engine.models import ExecutionResult, PipelineResult, StepResult
