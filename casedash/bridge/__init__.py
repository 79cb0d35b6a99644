"""
Bridge Layer
============

Main-process side of the parsing worker: request/response correlation
over the worker pipe.
"""

from .request_bridge import RequestBridge

__all__ = ["RequestBridge"]
