"""
Parsing Worker
==============

Runs inside the worker process. Receives parse requests over the pipe,
queues them until the parser module has loaded, then answers each one in
arrival order with exactly one response.

Threads inside the worker process:
- reader thread: moves pipe messages into the inbox queue
- loader thread: loads the parser module, then drops a marker in the inbox
- main thread: the only one that parses and posts responses
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from typing import Any, Callable, Deque, Optional

from pydantic import ValidationError as PydanticValidationError

from ..case.models import CaseModel
from ..case.validation import build_case, reference_problems
from ..errors import CaseBridgeError, ParseError, ValidationError
from ..logging_utils import configure_worker_logging
from ..messages import ParseRequest, ParseResponse
from .loader import LoaderState, ModuleLoader

logger = logging.getLogger(__name__)

LOADER_SETTLED = object()
CHANNEL_CLOSED = object()


class ParsingWorker:
    """
    Request handler for one worker instance.

    Not thread-safe: `submit`, `drain` and `serve` must all run on the
    worker's main thread.

    Attributes:
        loader: Module loader backing the parser
        handled: Number of responses posted so far
    """

    def __init__(self, loader: ModuleLoader, post: Callable[[dict], None]):
        self.loader = loader
        self._post = post
        self._backlog: Deque[ParseRequest] = deque()
        self.handled = 0

    @property
    def backlog_size(self) -> int:
        return len(self._backlog)

    def submit(self, message: Any) -> None:
        """Queue one incoming message and process whatever is ready."""
        try:
            request = ParseRequest.model_validate(message)
        except PydanticValidationError:
            request_id = message.get("id") if isinstance(message, dict) else None
            if isinstance(request_id, int):
                self._respond(ParseResponse.failure(request_id, ParseError("Malformed parse request")))
            else:
                logger.warning("Dropping message without a correlation id: %r", type(message))
            return

        self._backlog.append(request)
        if not self.loader.settled:
            logger.debug("Request %d queued until the parser loads (%d waiting)", request.id, len(self._backlog))
        self.drain()

    def drain(self) -> None:
        """Handle queued requests in order, once the loader has settled."""
        if not self.loader.settled:
            return
        while self._backlog:
            request = self._backlog.popleft()
            self._respond(self.handle(request))

    def handle(self, request: ParseRequest) -> ParseResponse:
        """Parse one request. Never raises."""
        if self.loader.state is LoaderState.FAILED:
            return ParseResponse.failure(request.id, self.loader.error)

        try:
            case = self._parse(request.data)
        except CaseBridgeError as e:
            logger.info("Request %d rejected: %s (%s)", request.id, e.kind, e)
            return ParseResponse.failure(request.id, e)

        logger.debug(
            "Request %d parsed '%s': %d buses, %d generators, %d branches",
            request.id, case.name, len(case.buses), len(case.generators), len(case.branches),
        )
        return ParseResponse(id=request.id, data=case.model_dump())

    def _parse(self, text: str) -> CaseModel:
        parser = self.loader.parser
        try:
            raw = parser(text)
        except CaseBridgeError:
            raise
        except Exception as e:
            raise ParseError(
                getattr(e, "message", None) or str(e) or type(e).__name__,
                line=getattr(e, "line", None),
                column=getattr(e, "column", None),
                snippet=getattr(e, "snippet", None),
            ) from e

        if raw is None:
            raise ParseError("Unable to build case: parser returned no result")
        if isinstance(raw, CaseModel):
            problems = reference_problems(raw)
            if problems:
                raise ValidationError(f"Case '{raw.name}' is inconsistent: {problems[0]}", problems)
            return raw
        if not isinstance(raw, dict):
            raise ParseError(f"Unable to build case: parser returned {type(raw).__name__}")
        return build_case(raw)

    def _respond(self, response: ParseResponse) -> None:
        self._post(response.model_dump())
        self.handled += 1

    def serve(self, inbox: "queue.Queue[Any]") -> None:
        """
        Event loop: consume the inbox until shutdown or channel close.

        Inbox items are request dicts, LOADER_SETTLED, CHANNEL_CLOSED or
        None (shutdown).
        """
        while True:
            item = inbox.get()
            if item is None or item is CHANNEL_CLOSED:
                logger.debug("Worker stopping (%d handled, %d unhandled)", self.handled, len(self._backlog))
                return
            try:
                if item is LOADER_SETTLED:
                    self.drain()
                else:
                    self.submit(item)
            except (BrokenPipeError, EOFError, OSError) as e:
                logger.warning("Response channel closed: %s", e)
                return


def _pump(conn, inbox: "queue.Queue[Any]") -> None:
    while True:
        try:
            message = conn.recv()
        except (EOFError, OSError):
            inbox.put(CHANNEL_CLOSED)
            return
        inbox.put(message)
        if message is None:
            return


def run_worker(conn, target: str, log_queue: Optional[Any] = None, log_level: str = "INFO") -> None:
    """
    Worker process entry point.

    Args:
        conn: Worker end of a multiprocessing Pipe
        target: Parser entry point, ``'module:function'``
        log_queue: Multiprocessing queue for log records (None = local logging)
        log_level: Log level name
    """
    configure_worker_logging(log_queue, log_level)

    inbox: "queue.Queue[Any]" = queue.Queue()
    loader = ModuleLoader(target)
    worker = ParsingWorker(loader, conn.send)

    loader.initialize().add_done_callback(lambda _f: inbox.put(LOADER_SETTLED))
    threading.Thread(target=_pump, args=(conn, inbox), name="channel-reader", daemon=True).start()

    logger.info("Parsing worker started (parser: %s)", target)
    try:
        worker.serve(inbox)
    finally:
        conn.close()
