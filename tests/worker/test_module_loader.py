"""
Unit tests for the ModuleLoader state machine.
"""

import threading

import pytest

from casedash.errors import ModuleLoadError
from casedash.matpower import parse_case
from casedash.worker.loader import LoaderState, ModuleLoader, split_target


class TestModuleLoader:
    """Tests for one-time, asynchronous parser loading."""

    # ─────────────────────────────────────────────────────────────────────────
    # Successful loads
    # ─────────────────────────────────────────────────────────────────────────

    def test_initialize_when_import_target_then_becomes_ready(self):
        loader = ModuleLoader("casedash.matpower:parse_case")
        assert loader.state is LoaderState.IDLE

        parser = loader.initialize().result(timeout=10)

        assert parser is parse_case
        assert loader.state is LoaderState.READY
        assert loader.parser is parse_case

    def test_initialize_when_file_target_then_loads_module_from_path(self, write_parser_module):
        target = write_parser_module("""
            def parse_case(text):
                return {"echo": text}
        """)
        loader = ModuleLoader(target)

        parser = loader.wait(timeout=10)

        assert parser("x") == {"echo": "x"}

    def test_initialize_when_module_has_initialize_hook_then_calls_it_once(self, write_parser_module, tmp_path):
        marker = tmp_path / "hook_calls.txt"
        target = write_parser_module(f"""
            def initialize():
                with open({str(marker)!r}, "a") as f:
                    f.write("x")

            def parse_case(text):
                return None
        """)
        loader = ModuleLoader(target)

        loader.wait(timeout=10)
        loader.wait(timeout=10)

        assert marker.read_text() == "x"

    def test_initialize_when_called_concurrently_then_loads_once(self, write_parser_module, tmp_path):
        """Concurrent callers share one instantiation and one outcome."""
        marker = tmp_path / "imports.txt"
        target = write_parser_module(f"""
            import time
            with open({str(marker)!r}, "a") as f:
                f.write("x")
            time.sleep(0.2)

            def parse_case(text):
                return None
        """)
        loader = ModuleLoader(target)
        futures = []
        barrier = threading.Barrier(8)

        def call():
            barrier.wait()
            futures.append(loader.initialize())

        threads = [threading.Thread(target=call) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(f) for f in futures}) == 1
        results = {id(f.result(timeout=10)) for f in futures}
        assert len(results) == 1
        assert loader.load_attempts == 1
        assert marker.read_text() == "x"

    def test_initialize_when_already_ready_then_returns_settled_future(self):
        loader = ModuleLoader("casedash.matpower:parse_case")
        loader.wait(timeout=10)

        future = loader.initialize()

        assert future.done()
        assert loader.load_attempts == 1

    # ─────────────────────────────────────────────────────────────────────────
    # Failures
    # ─────────────────────────────────────────────────────────────────────────

    def test_initialize_when_module_missing_then_fails_permanently(self):
        loader = ModuleLoader("casedash.no_such_parser:parse_case")

        with pytest.raises(ModuleLoadError, match="no_such_parser"):
            loader.initialize().result(timeout=10)

        assert loader.state is LoaderState.FAILED
        assert isinstance(loader.error, ModuleLoadError)
        # No retry: the same failed future is returned
        with pytest.raises(ModuleLoadError):
            loader.initialize().result(timeout=1)
        assert loader.load_attempts == 1

    def test_initialize_when_function_missing_then_fails(self):
        loader = ModuleLoader("casedash.matpower:no_such_function")

        with pytest.raises(ModuleLoadError, match="no_such_function"):
            loader.wait(timeout=10)

    def test_initialize_when_module_raises_on_import_then_fails(self, write_parser_module):
        target = write_parser_module("""
            raise RuntimeError("unsupported environment")
        """)
        loader = ModuleLoader(target)

        with pytest.raises(ModuleLoadError, match="unsupported environment"):
            loader.wait(timeout=10)

    def test_initialize_when_module_exits_on_import_then_fails(self, write_parser_module):
        target = write_parser_module("""
            import sys
            sys.exit("unsupported environment")
        """)
        loader = ModuleLoader(target)

        with pytest.raises(ModuleLoadError, match="unsupported environment"):
            loader.wait(timeout=10)

        assert loader.state is LoaderState.FAILED

    def test_initialize_when_hook_exits_then_fails(self, write_parser_module):
        target = write_parser_module("""
            import sys

            def initialize():
                sys.exit()

            def parse_case(text):
                return None
        """)
        loader = ModuleLoader(target)

        with pytest.raises(ModuleLoadError, match="SystemExit"):
            loader.wait(timeout=10)

    def test_initialize_when_file_missing_then_fails(self, tmp_path):
        loader = ModuleLoader(f"{(tmp_path / 'missing.py').as_posix()}:parse_case")

        with pytest.raises(ModuleLoadError, match="not found"):
            loader.wait(timeout=10)

    def test_parser_when_not_loaded_then_raises(self):
        loader = ModuleLoader("casedash.matpower:parse_case")

        with pytest.raises(ModuleLoadError, match="idle"):
            loader.parser

    def test_split_target_when_no_colon_then_raises(self):
        with pytest.raises(ModuleLoadError, match="module:function"):
            split_target("casedash.matpower")
