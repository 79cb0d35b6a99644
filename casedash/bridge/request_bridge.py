"""
Request Bridge
==============

Main-process proxy for the parsing worker.

``parse(text)`` returns a future immediately; a listener thread reads
responses off the pipe and settles the matching future. Every pending
operation ends exactly once:

    Pending --> Resolved   (case received)
    Pending --> Rejected   (error response, or worker lost)

There is no built-in timeout. Liveness comes from the worker answering
every request once, and from the listener failing all pending futures
with WorkerLostError when the pipe closes.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import multiprocessing
import threading
from concurrent.futures import Future, InvalidStateError
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..case.models import CaseModel
from ..config import BridgeSettings
from ..errors import CaseBridgeError, ParseError, ValidationError, WorkerLostError
from ..logging_utils import start_log_listener
from ..messages import ParseRequest, ParseResponse
from ..worker.parsing import run_worker

logger = logging.getLogger(__name__)


class RequestBridge:
    """
    Sends parse requests to a worker process and correlates the responses.

    Usage:
        with RequestBridge() as bridge:
            case = bridge.parse(text).result()

    Attributes:
        settings: Bridge settings (parser target, start method, ...)
    """

    def __init__(self, settings: Optional[BridgeSettings] = None):
        self.settings = settings or BridgeSettings()
        self._ctx = multiprocessing.get_context(self.settings.start_method)
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: Dict[int, Future] = {}
        self._conn = None
        self._process = None
        self._listener: Optional[threading.Thread] = None
        self._log_queue = None
        self._log_listener = None
        self._lost: Optional[WorkerLostError] = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "RequestBridge":
        """Spawn the worker process and the response listener."""
        with self._lock:
            if self._started:
                return self
            self._started = True

        self._log_queue = self._ctx.Queue()
        self._log_listener = start_log_listener(self._log_queue)

        parent_conn, child_conn = self._ctx.Pipe(duplex=True)
        self._process = self._ctx.Process(
            target=run_worker,
            args=(child_conn, self.settings.parser_target, self._log_queue, self.settings.log_level),
            name="case-parser",
            daemon=True,
        )
        self._process.start()
        # Only the worker may hold its end, so its exit shows up as EOF here
        child_conn.close()
        self._conn = parent_conn

        self._listener = threading.Thread(target=self._listen, name="bridge-listener", daemon=True)
        self._listener.start()
        logger.info("Parsing worker started (pid %s)", self._process.pid)
        return self

    def close(self) -> None:
        """Ask the worker to stop, wait for it, and release resources."""
        if self._process is None:
            return
        if self._lost is None:
            try:
                self._conn.send(None)
            except (BrokenPipeError, EOFError, OSError):
                pass
        self._process.join(self.settings.join_timeout_s)
        if self._process.is_alive():
            logger.warning("Worker did not exit within %.1fs, terminating", self.settings.join_timeout_s)
            self._process.terminate()
            self._process.join()
        self._shutdown_listeners()

    def terminate(self) -> None:
        """Kill the worker immediately. Pending requests fail with WorkerLostError."""
        if self._process is None:
            return
        self._process.terminate()
        self._process.join()
        self._shutdown_listeners()

    def _shutdown_listeners(self) -> None:
        if self._listener is not None and self._listener is not threading.current_thread():
            self._listener.join(self.settings.join_timeout_s)
        self._mark_lost(WorkerLostError("Parsing worker was shut down"))
        if self._conn is not None:
            self._conn.close()
        if self._log_listener is not None:
            self._log_listener.stop()
            self._log_listener = None
        if self._log_queue is not None:
            self._log_queue.close()
            self._log_queue = None

    def __enter__(self) -> "RequestBridge":
        return self.start()

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def is_alive(self) -> bool:
        return self._lost is None and self._process is not None and self._process.is_alive()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def parse(self, text: str) -> Future:
        """
        Parse case text in the worker.

        Never raises; every outcome arrives through the returned future.

        Returns:
            Future resolving to a CaseModel, or failing with ParseError,
            ValidationError, ModuleLoadError or WorkerLostError
        """
        future: Future = Future()
        if not isinstance(text, str):
            future.set_exception(ParseError(f"Case text must be a string, got {type(text).__name__}"))
            return future
        if not self._started:
            try:
                self.start()
            except OSError as e:
                self._mark_lost(WorkerLostError(f"Could not start parsing worker: {e}"))

        with self._lock:
            if self._lost is not None:
                future.set_exception(self._lost)
                return future
            request_id = next(self._ids)
            self._pending[request_id] = future
            try:
                self._conn.send(ParseRequest(id=request_id, data=text).model_dump())
            except (BrokenPipeError, EOFError, OSError) as e:
                self._pending.pop(request_id, None)
                future.set_exception(WorkerLostError(f"Parsing worker unreachable: {e}"))
                return future
        logger.debug("Request %d sent (%d chars)", request_id, len(text))
        return future

    async def parse_async(self, text: str) -> CaseModel:
        """Awaitable form of `parse` for asyncio callers."""
        return await asyncio.wrap_future(self.parse(text))

    def parse_file(self, path: str) -> Future:
        """Read a UTF-8 case file and parse its contents. Never raises."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            future: Future = Future()
            future.set_exception(ParseError(f"Cannot read case file '{path}': {e}"))
            return future
        return self.parse(text)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _listen(self) -> None:
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                break
            try:
                response = ParseResponse.model_validate(message)
            except PydanticValidationError as e:
                logger.error("Discarding malformed response from worker: %s", e)
                continue
            self._settle(response)

        exitcode = self._process.exitcode if self._process is not None else None
        self._mark_lost(WorkerLostError(f"Parsing worker exited (exit code {exitcode})"))

    def _settle(self, response: ParseResponse) -> None:
        with self._lock:
            future = self._pending.pop(response.id, None)
        if future is None:
            logger.debug("Discarding response %d: no pending request", response.id)
            return

        if response.error is not None:
            outcome = response.error.to_error()
            self._set(future, error=outcome)
            return

        try:
            case = CaseModel.model_validate(response.data)
        except PydanticValidationError as e:
            self._set(future, error=ValidationError("Worker returned an invalid case", [str(e)]))
            return
        self._set(future, result=case)

    @staticmethod
    def _set(future: Future, result: Optional[CaseModel] = None, error: Optional[CaseBridgeError] = None) -> None:
        # The caller may have cancelled the future; its outcome is then dropped
        try:
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)
        except InvalidStateError:
            pass

    def _mark_lost(self, error: WorkerLostError) -> None:
        with self._lock:
            if self._lost is None:
                self._lost = error
            pending = list(self._pending.values())
            self._pending.clear()
        if pending:
            logger.warning("Failing %d pending request(s): %s", len(pending), error)
        for future in pending:
            self._set(future, error=error)
