import logging

import pytest

from netshell.config.schema import Step
from netshell.engine.events import (
    LIFECYCLE_TYPES,
    STREAM_TYPES,
    EventBus,
    EventSink,
    OutputEvent,
    OutputType,
)


def make_event(kind=OutputType.STDOUT, content="line"):
    return OutputEvent(
        pipeline_name="p",
        step=Step(name="s", script="true"),
        target_name="local",
        output_type=kind,
        content=content,
    )


def test_callable_subscriber_receives_events(recorder):
    bus = EventBus()
    bus.subscribe(recorder)
    bus.emit(make_event())
    assert recorder.contents(OutputType.STDOUT) == ["line"]
    assert bus.emitted == 1


def test_kind_filter(recorder):
    bus = EventBus()
    bus.subscribe(recorder, LIFECYCLE_TYPES)
    bus.emit(make_event(OutputType.STDOUT))
    bus.emit(make_event(OutputType.STEP_STARTED))
    assert [e.output_type for e in recorder.events] == [OutputType.STEP_STARTED]


def test_event_sink_is_abstract():
    with pytest.raises(TypeError):
        EventSink()


def test_event_sink_subclass():
    class Counter(EventSink):
        def __init__(self):
            self.count = 0

        def on_event(self, event):
            self.count += 1

    bus = EventBus()
    counter = Counter()
    assert bus.subscribe(counter) is counter
    bus.emit(make_event())
    assert counter.count == 1


def test_failing_sink_is_logged_not_raised(recorder, caplog):
    def broken(event):
        raise RuntimeError("boom")

    bus = EventBus()
    bus.subscribe(broken)
    bus.subscribe(recorder)
    with caplog.at_level(logging.ERROR):
        bus.emit(make_event())
    assert len(recorder.events) == 1
    assert bus.failures == 1
    assert "boom" in caplog.text
    assert "EVENT_001" in caplog.text


def test_unsubscribe(recorder):
    bus = EventBus()
    sink = bus.subscribe(recorder)
    bus.unsubscribe(sink)
    bus.emit(make_event())
    assert recorder.events == []


def test_event_to_dict():
    event = make_event(OutputType.STDERR, "oops")
    data = event.to_dict()
    assert data["output_type"] == "Stderr"
    assert data["step"]["name"] == "s"
    assert data["content"] == "oops"
    assert event.step_name == "s"


def test_type_groups_partition_kinds():
    assert STREAM_TYPES | LIFECYCLE_TYPES == set(OutputType)
    assert not STREAM_TYPES & LIFECYCLE_TYPES
