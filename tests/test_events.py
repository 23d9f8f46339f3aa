"""
Tests for the observability hook, sort_tangle and its tracing span.
"""

import json
import logging

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from tanglecore.config import get_config
from tanglecore.errors import MultipleRootsError, TangleSizeError
from tanglecore.tangle import sorter as sorter_module
from tanglecore.tangle.events import (
    HEADS_COMPUTED,
    INDEX_BUILT,
    SORT_COMPLETED,
    TANGLE_FAILED,
    TangleEvent,
    TangleEventLogger,
)
from tanglecore.tangle.sorter import TangleSorter, sort_tangle

from conftest import keys_of


@pytest.fixture
def merged(make_messages):
    return make_messages(("p2", ["a1", "b1"]), ("b1", ["p1"]), ("a1", ["p1"]), ("p1", []))


@pytest.fixture
def span_exporter(monkeypatch):
    """Route tanglecore spans to an in-memory exporter."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(
        sorter_module.trace, "get_tracer",
        lambda name, *args, **kwargs: provider.get_tracer(name),
    )
    return exporter


class TestEventHook:
    """on_event receives milestones and never changes results."""

    def test_milestones(self, merged):
        events = []
        sorter = TangleSorter(merged, "post", on_event=events.append)
        sorter.sort()
        sorter.heads()

        assert [e.name for e in events] == [INDEX_BUILT, SORT_COMPLETED, HEADS_COMPUTED]
        assert all(e.tangle == "post" for e in events)
        assert events[0].attributes["message_count"] == 4
        assert events[0].attributes["edge_count"] == 4
        assert events[1].attributes["max_hops"] == 2
        assert events[2].attributes["head_count"] == 1

    def test_same_result_with_and_without_hook(self, merged):
        plain = keys_of(TangleSorter(list(merged), "post").sort())
        hooked = keys_of(TangleSorter(list(merged), "post", on_event=lambda e: None).sort())
        assert plain == hooked

    def test_failure_event(self, make_messages):
        events = []
        with pytest.raises(MultipleRootsError):
            TangleSorter(make_messages(("a", []), ("b", [])), "post", on_event=events.append)

        assert [e.name for e in events] == [TANGLE_FAILED]
        failure = events[0].attributes
        assert failure["error"] == "MultipleRootsError"
        assert len(failure["identities"]) == 2

    def test_event_to_dict(self):
        event = TangleEvent(name=INDEX_BUILT, tangle="post", attributes={"message_count": 3})
        d = event.to_dict()
        assert d["event"] == INDEX_BUILT
        assert d["tangle"] == "post"
        assert d["message_count"] == 3
        assert "timestamp" in d


class TestTangleEventLogger:
    """The stock hook writes JSON lines."""

    def test_logs_json(self, merged, caplog):
        hook = TangleEventLogger(service_name="reader", extra_labels={"env": "test"})
        with caplog.at_level(logging.INFO, logger="tanglecore.events"):
            TangleSorter(merged, "post", on_event=hook).sort()

        lines = [json.loads(r.getMessage()) for r in caplog.records if r.name == "tanglecore.events"]
        assert [line["event"] for line in lines] == [INDEX_BUILT, SORT_COMPLETED]
        assert lines[0]["service"] == "reader"
        assert lines[0]["labels"] == {"env": "test"}

    def test_failures_logged_as_error(self, make_messages, caplog):
        with caplog.at_level(logging.INFO, logger="tanglecore.events"):
            with pytest.raises(MultipleRootsError):
                TangleSorter(make_messages(("a", []), ("b", [])), "post", on_event=TangleEventLogger())

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert json.loads(errors[0].getMessage())["event_type"] == TANGLE_FAILED


class TestSortTangle:
    """The one-shot entry point."""

    def test_returns_order_and_heads(self, merged):
        ordered, heads = sort_tangle(merged, "post")
        assert keys_of(ordered) == ["p1", "a1", "b1", "p2"]
        assert [h.hash for h in heads] == [b"p2"]

    def test_input_untouched(self, merged):
        before = keys_of(merged)
        sort_tangle(merged, "post")
        assert keys_of(merged) == before

    def test_default_tangle_from_config(self, merged):
        get_config(default_tangle="thread")
        events = []
        sort_tangle(merged, on_event=events.append)
        assert events[0].tangle == "thread"

    def test_size_bound(self, merged):
        get_config(max_messages=3)
        with pytest.raises(TangleSizeError) as exc:
            sort_tangle(merged, "post")
        assert exc.value.count == 4
        assert exc.value.limit == 3

    def test_span(self, merged, span_exporter):
        sort_tangle(merged, "post")

        spans = span_exporter.get_finished_spans()
        assert [s.name for s in spans] == ["tangle.sort"]
        attrs = spans[0].attributes
        assert attrs["tangle.name"] == "post"
        assert attrs["tangle.message_count"] == 4
        assert attrs["tangle.head_count"] == 1

    def test_span_records_failure(self, make_messages, span_exporter):
        with pytest.raises(MultipleRootsError):
            sort_tangle(make_messages(("a", []), ("b", [])), "post")

        span = span_exporter.get_finished_spans()[0]
        assert span.status.status_code == StatusCode.ERROR
        assert any(e.name == "exception" for e in span.events)
