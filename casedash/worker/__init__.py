"""
Worker Layer
============

Code that runs inside the isolated parsing process:
- ModuleLoader: one-time, asynchronous parser module load
- ParsingWorker: FIFO request handling, one response per request
"""

from .loader import LoaderState, ModuleLoader
from .parsing import ParsingWorker, run_worker

__all__ = ["LoaderState", "ModuleLoader", "ParsingWorker", "run_worker"]
