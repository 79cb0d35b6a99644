"""
Module Loader
=============

Loads the parser module exactly once per worker lifetime.

State machine::

    IDLE --initialize()--> LOADING --+--> READY
                                     +--> FAILED

The transition out of LOADING happens once and is never undone. A failed
load is permanent for the worker instance; there is no retry.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Optional

from ..errors import ModuleLoadError

logger = logging.getLogger(__name__)

ParserFn = Callable[[str], Any]


class LoaderState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def split_target(target: str) -> tuple:
    """Split ``'module:function'`` into its two parts."""
    module, sep, func = target.rpartition(":")
    if not sep or not module or not func:
        raise ModuleLoadError(f"Invalid parser target '{target}', expected 'module:function'")
    return module, func


def _import_module(location: str) -> ModuleType:
    # A path (source file or compiled extension) or a dotted import name
    if location.endswith((".py", ".so", ".pyd")) or "/" in location or "\\" in location:
        path = Path(location)
        if not path.exists():
            raise FileNotFoundError(f"Parser module not found: {location}")
        spec = importlib.util.spec_from_file_location(path.stem.split(".")[0], path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load parser module from {location}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(location)


class ModuleLoader:
    """
    Loads ``target`` on a background thread and exposes its parse function.

    Usage:
        loader = ModuleLoader("casedash.matpower:parse_case")
        loader.initialize().add_done_callback(on_settled)
        ...
        result = loader.parser(text)

    Attributes:
        target: Parser entry point, ``'module:function'``
    """

    def __init__(self, target: str):
        self.target = target
        self._lock = threading.Lock()
        self._state = LoaderState.IDLE
        self._future: Optional[Future] = None
        self._parser: Optional[ParserFn] = None
        self._error: Optional[ModuleLoadError] = None
        self.load_attempts = 0

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def settled(self) -> bool:
        return self._state in (LoaderState.READY, LoaderState.FAILED)

    @property
    def error(self) -> Optional[ModuleLoadError]:
        return self._error

    @property
    def parser(self) -> ParserFn:
        """The loaded parse function. Raises ModuleLoadError unless READY."""
        if self._state is LoaderState.READY and self._parser is not None:
            return self._parser
        if self._error is not None:
            raise self._error
        raise ModuleLoadError(f"Parser module is not loaded (state: {self._state.value})")

    def initialize(self) -> Future:
        """
        Start loading, or join a load already in progress.

        Every caller gets the same future. It resolves to the parse function,
        or fails with ModuleLoadError.
        """
        with self._lock:
            if self._future is None:
                self._future = Future()
                self._state = LoaderState.LOADING
                self.load_attempts += 1
                threading.Thread(target=self._load, name="module-loader", daemon=True).start()
            return self._future

    def wait(self, timeout: Optional[float] = None) -> ParserFn:
        """Block until loaded; convenience for scripts and tests."""
        return self.initialize().result(timeout=timeout)

    def _load(self) -> None:
        started = time.perf_counter()
        try:
            module_name, func_name = split_target(self.target)
            module = _import_module(module_name)
            parser = getattr(module, func_name, None)
            if not callable(parser):
                raise AttributeError(f"{module_name} has no callable '{func_name}'")
            hook = getattr(module, "initialize", None)
            if callable(hook) and hook is not parser:
                hook()
        except BaseException as e:
            # SystemExit from a module must still settle the future
            error = e if isinstance(e, ModuleLoadError) else ModuleLoadError(
                f"Failed to load parser '{self.target}': {str(e) or type(e).__name__}"
            )
            with self._lock:
                self._error = error
                self._state = LoaderState.FAILED
            logger.error("Parser module failed to load: %s", error)
            self._future.set_exception(error)
            return

        with self._lock:
            self._parser = parser
            self._state = LoaderState.READY
        logger.info("Parser '%s' ready in %.3fs", self.target, time.perf_counter() - started)
        self._future.set_result(parser)
