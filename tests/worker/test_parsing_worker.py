"""
Unit tests for ParsingWorker request handling, driven in-process.
"""

import queue

import pytest

from casedash.errors import ModuleLoadError
from casedash.matpower import MatpowerSyntaxError, parse_case
from casedash.worker.loader import LoaderState
from casedash.worker.parsing import CHANNEL_CLOSED, LOADER_SETTLED, ParsingWorker


class StubLoader:
    """Loader whose state the test controls."""

    def __init__(self, parser=parse_case):
        self.state = LoaderState.LOADING
        self.error = None
        self._parser = parser

    @property
    def settled(self):
        return self.state in (LoaderState.READY, LoaderState.FAILED)

    @property
    def parser(self):
        if self.state is not LoaderState.READY:
            raise self.error or ModuleLoadError("not loaded")
        return self._parser

    def ready(self):
        self.state = LoaderState.READY

    def fail(self, message="binary failed to instantiate"):
        self.state = LoaderState.FAILED
        self.error = ModuleLoadError(message)


@pytest.fixture
def posted():
    return []


@pytest.fixture
def loader():
    return StubLoader()


@pytest.fixture
def worker(loader, posted):
    return ParsingWorker(loader, posted.append)


# ─────────────────────────────────────────────────────────────────────────────
# Queueing before initialization
# ─────────────────────────────────────────────────────────────────────────────

def test_submit_when_loader_loading_then_queues_without_responding(worker, posted, three_bus_text):
    worker.submit({"id": 1, "data": three_bus_text})
    worker.submit({"id": 2, "data": three_bus_text})

    assert posted == []
    assert worker.backlog_size == 2


def test_drain_when_loader_becomes_ready_then_answers_in_arrival_order(worker, loader, posted, three_bus_text, case9_text):
    worker.submit({"id": 7, "data": case9_text})
    worker.submit({"id": 3, "data": three_bus_text})

    loader.ready()
    worker.drain()

    assert [r["id"] for r in posted] == [7, 3]
    assert posted[0]["data"]["name"] == "case9"
    assert posted[1]["data"]["name"] == "case3"
    assert all(r["error"] is None for r in posted)
    assert worker.backlog_size == 0


def test_drain_when_loader_failed_then_every_request_gets_module_load_error(worker, loader, posted, three_bus_text):
    worker.submit({"id": 1, "data": three_bus_text})
    worker.submit({"id": 2, "data": three_bus_text})

    loader.fail()
    worker.drain()
    worker.submit({"id": 3, "data": three_bus_text})

    assert [r["id"] for r in posted] == [1, 2, 3]
    assert all(r["error"]["kind"] == "ModuleLoadError" for r in posted)
    assert all(r["data"] is None for r in posted)


# ─────────────────────────────────────────────────────────────────────────────
# Parse outcomes
# ─────────────────────────────────────────────────────────────────────────────

def test_submit_when_ready_and_valid_then_posts_case(worker, loader, posted, three_bus_text):
    loader.ready()

    worker.submit({"id": 1, "data": three_bus_text})

    data = posted[0]["data"]
    assert len(data["buses"]) == 3
    assert len(data["generators"]) == 1
    assert len(data["branches"]) == 2


def test_submit_when_malformed_then_parse_error_with_position_and_worker_keeps_serving(
    worker, loader, posted, malformed_text, three_bus_text
):
    loader.ready()

    worker.submit({"id": 1, "data": malformed_text})
    worker.submit({"id": 2, "data": three_bus_text})

    error = posted[0]["error"]
    assert error["kind"] == "ParseError"
    assert error["line"] == 8
    assert error["column"] == 6
    assert error["snippet"].startswith("\t2\t2\tabc")
    assert posted[1]["error"] is None
    assert worker.handled == 2


def test_submit_when_reference_broken_then_validation_error(worker, loader, posted, missing_gen_bus_text):
    loader.ready()

    worker.submit({"id": 1, "data": missing_gen_bus_text})

    error = posted[0]["error"]
    assert error["kind"] == "ValidationError"
    assert "generator 1 references missing bus 7" in error["problems"]


def test_submit_when_parser_returns_none_then_parse_error(posted):
    loader = StubLoader(parser=lambda text: None)
    loader.ready()
    worker = ParsingWorker(loader, posted.append)

    worker.submit({"id": 1, "data": "anything"})

    assert posted[0]["error"]["kind"] == "ParseError"
    assert "no result" in posted[0]["error"]["message"]


def test_submit_when_parser_raises_unexpected_error_then_parse_error(posted):
    def broken(text):
        raise ZeroDivisionError("division by zero")

    loader = StubLoader(parser=broken)
    loader.ready()
    worker = ParsingWorker(loader, posted.append)

    worker.submit({"id": 1, "data": "anything"})

    assert posted[0]["error"] == {
        "kind": "ParseError",
        "message": "division by zero",
        "line": None,
        "column": None,
        "snippet": None,
        "problems": [],
    }


def test_submit_when_message_has_id_but_no_text_then_parse_error(worker, loader, posted):
    loader.ready()

    worker.submit({"id": 5})

    assert posted[0]["id"] == 5
    assert posted[0]["error"]["kind"] == "ParseError"


def test_submit_when_message_has_no_id_then_drops_it(worker, loader, posted):
    loader.ready()

    worker.submit("not a request")

    assert posted == []


# ─────────────────────────────────────────────────────────────────────────────
# Event loop
# ─────────────────────────────────────────────────────────────────────────────

def test_serve_when_settled_marker_arrives_then_drains_queued_requests(worker, loader, posted, three_bus_text):
    inbox = queue.Queue()
    inbox.put({"id": 1, "data": three_bus_text})
    inbox.put({"id": 2, "data": three_bus_text})
    inbox.put(LOADER_SETTLED)
    inbox.put(None)

    # Loader settles before the marker is processed, as with the real callback
    loader.ready()
    worker.serve(inbox)

    assert [r["id"] for r in posted] == [1, 2]


def test_serve_when_channel_closed_then_returns(worker):
    inbox = queue.Queue()
    inbox.put(CHANNEL_CLOSED)

    worker.serve(inbox)

    assert worker.handled == 0


def test_serve_when_response_channel_broken_then_stops(loader, three_bus_text):
    def post(message):
        raise BrokenPipeError("pipe closed")

    worker = ParsingWorker(loader, post)
    loader.ready()
    inbox = queue.Queue()
    inbox.put({"id": 1, "data": three_bus_text})
    inbox.put({"id": 2, "data": three_bus_text})

    worker.serve(inbox)

    assert inbox.qsize() == 1


def test_matpower_syntax_error_fields_match_worker_expectations():
    err = MatpowerSyntaxError("bad", 3, 4)
    assert (err.message, err.line, err.column) == ("bad", 3, 4)
