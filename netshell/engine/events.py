"""Module events: real-time output and lifecycle notifications."""
#
# PURPOSE:
# Decouples emission (step executor, pipeline runner) from consumption
# (terminal printers, UIs, test recorders).
#
# LOGIC:
# - OutputEvent: immutable record carrying a step snapshot and a copy of the
#   variables at emission time.
# - EventBus: synchronous observer. Sinks run on the emitting task, in
#   emission order per target; events from concurrent targets interleave.
#   A failing sink is logged and skipped, never propagated.
#

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from netshell.config.schema import Step
from netshell.errors import ErrorCode

logger = logging.getLogger(__name__)


class OutputType(str, Enum):
    STDOUT = "Stdout"
    STDERR = "Stderr"
    LOG = "Log"
    STEP_STARTED = "StepStarted"
    STEP_COMPLETED = "StepCompleted"


STREAM_TYPES: FrozenSet[OutputType] = frozenset({OutputType.STDOUT, OutputType.STDERR, OutputType.LOG})
LIFECYCLE_TYPES: FrozenSet[OutputType] = frozenset({OutputType.STEP_STARTED, OutputType.STEP_COMPLETED})

# Target name used for events not tied to one target
SYSTEM_TARGET = "system"


@dataclass(frozen=True)
class OutputEvent:
    """
    One notification of execution progress.

    Fields:
        pipeline_name: Pipeline being run
        step: Snapshot of the originating step (None for pipeline-level logs)
        target_name: Target that produced it, or "system"
        output_type: Event kind
        content: Output line or log message
        timestamp: Epoch seconds at emission
        variables: Plain-Python copy of the variable store at emission
    """
    pipeline_name: str
    step: Optional[Step]
    target_name: str
    output_type: OutputType
    content: str
    timestamp: float = field(default_factory=time.time)
    variables: Mapping[str, Any] = field(default_factory=dict)

    @property
    def step_name(self) -> str:
        return self.step.name if self.step is not None else SYSTEM_TARGET

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_name": self.pipeline_name,
            "step": self.step.model_dump(mode="json") if self.step is not None else None,
            "target_name": self.target_name,
            "output_type": self.output_type.value,
            "content": self.content,
            "timestamp": self.timestamp,
            "variables": dict(self.variables),
        }


EventCallback = Callable[[OutputEvent], None]


class EventSink(ABC):
    """Observer interface. Implementations must tolerate concurrent targets."""

    @abstractmethod
    def on_event(self, event: OutputEvent) -> None:
        pass


class CallbackSink(EventSink):
    """Adapts a plain callable, optionally restricted to some event kinds."""

    def __init__(self, callback: EventCallback, kinds: Optional[Iterable[OutputType]] = None):
        self.callback = callback
        self.kinds = frozenset(kinds) if kinds is not None else None

    def on_event(self, event: OutputEvent) -> None:
        if self.kinds is None or event.output_type in self.kinds:
            self.callback(event)

    def __repr__(self) -> str:
        return f"CallbackSink({getattr(self.callback, '__name__', self.callback)!r})"


class EventBus:
    """
    Synchronous event bus for execution observability.
    """

    def __init__(self):
        self._sinks: List[EventSink] = []
        self._emitted = 0
        self._failures = 0

    def subscribe(self, sink: Any, kinds: Optional[Iterable[OutputType]] = None) -> EventSink:
        """
        Register a sink (EventSink or callable). Returns the registered sink so
        it can be passed to unsubscribe().
        """
        if not isinstance(sink, EventSink):
            sink = CallbackSink(sink, kinds)
        elif kinds is not None:
            sink = CallbackSink(sink.on_event, kinds)
        self._sinks.append(sink)
        return sink

    def unsubscribe(self, sink: EventSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    @property
    def emitted(self) -> int:
        return self._emitted

    @property
    def failures(self) -> int:
        return self._failures

    def emit(self, event: OutputEvent) -> None:
        """Deliver an event to every sink."""
        self._emitted += 1
        for sink in list(self._sinks):
            try:
                sink.on_event(event)
            except Exception as e:
                self._failures += 1
                logger.error(
                    f"[EventBus] [{ErrorCode.EVENT_SUBSCRIBER_ERROR.value}] "
                    f"Sink {sink!r} failed on {event.output_type.value}: {e}"
                )

    # --- Convenience Methods ---

    def emit_log(self, pipeline_name: str, content: str, step: Optional[Step] = None,
                 target_name: str = SYSTEM_TARGET, variables: Optional[Mapping[str, Any]] = None):
        self.emit(OutputEvent(
            pipeline_name=pipeline_name,
            step=step,
            target_name=target_name,
            output_type=OutputType.LOG,
            content=content,
            variables=variables or {},
        ))

    def emit_step_started(self, pipeline_name: str, step: Step, target_name: str,
                          variables: Mapping[str, Any]):
        self.emit(OutputEvent(
            pipeline_name=pipeline_name,
            step=step,
            target_name=target_name,
            output_type=OutputType.STEP_STARTED,
            content=f"Step '{step.name}' started on {target_name}",
            variables=variables,
        ))

    def emit_step_completed(self, pipeline_name: str, step: Step, target_name: str,
                            content: str, variables: Mapping[str, Any]):
        self.emit(OutputEvent(
            pipeline_name=pipeline_name,
            step=step,
            target_name=target_name,
            output_type=OutputType.STEP_COMPLETED,
            content=content,
            variables=variables,
        ))
