"""
Error Taxonomy
==============

Errors raised while loading the parser module, parsing case text,
validating the parsed case, or talking to the worker process.

Errors never cross the process boundary as exception objects. The worker
turns them into plain descriptors (see `ErrorDescriptor`) and the bridge
rebuilds the matching exception on the main side.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Type


class CaseBridgeError(Exception):
    """Base class for every error surfaced by the parsing bridge."""

    kind = "CaseBridgeError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_descriptor(self) -> dict:
        """Plain-dict form suitable for sending over the worker channel."""
        return {"kind": self.kind, "message": self.message}


class ModuleLoadError(CaseBridgeError):
    """The parser module failed to load. Fatal for the worker instance."""

    kind = "ModuleLoadError"


def caret_excerpt(snippet: str, column: Optional[int]) -> str:
    """
    Source line with a ``^`` under `column` (1-based).

    Tabs before the column are kept so the marker lines up in a terminal.
    """
    if column is None or column < 1:
        return snippet
    padding = "".join(c if c == "\t" else " " for c in snippet[:column - 1])
    return f"{snippet}\n{padding}^"


class ParseError(CaseBridgeError):
    """
    The input text is not a well-formed case description.

    Recoverable: the worker keeps serving later requests.

    Attributes:
        line: 1-based line of the problem, when the parser reports one
        column: 1-based column of the problem, when the parser reports one
        snippet: The offending source line, when the parser reports one
    """

    kind = "ParseError"

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        snippet: Optional[str] = None,
    ):
        super().__init__(message)
        self.line = line
        self.column = column
        self.snippet = snippet

    def __str__(self) -> str:
        if self.line is None:
            text = self.message
        elif self.column is None:
            text = f"{self.message} (line {self.line})"
        else:
            text = f"{self.message} (line {self.line}, column {self.column})"
        if self.snippet is not None:
            text += "\n\n" + caret_excerpt(self.snippet, self.column)
        return text

    def to_descriptor(self) -> dict:
        d = super().to_descriptor()
        d["line"] = self.line
        d["column"] = self.column
        d["snippet"] = self.snippet
        return d


class ValidationError(ParseError):
    """
    Parsing succeeded but the case breaks a referential invariant
    (e.g. a generator attached to a bus that does not exist).

    Subclasses `ParseError` so callers can handle both the same way.
    """

    kind = "ValidationError"

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = list(problems or [])

    def to_descriptor(self) -> dict:
        d = super().to_descriptor()
        d["problems"] = list(self.problems)
        return d


class WorkerLostError(CaseBridgeError):
    """The worker became unreachable while a request was pending."""

    kind = "WorkerLostError"


_ERROR_KINDS: Dict[str, Type[CaseBridgeError]] = {
    cls.kind: cls
    for cls in (CaseBridgeError, ModuleLoadError, ParseError, ValidationError, WorkerLostError)
}


def error_from_descriptor(descriptor: dict) -> CaseBridgeError:
    """
    Rebuild an exception from a descriptor produced by `to_descriptor`.

    Unknown kinds fall back to `CaseBridgeError` so a newer worker can
    never crash an older bridge.
    """
    kind = descriptor.get("kind", "")
    message = descriptor.get("message") or kind or "unknown error"
    cls = _ERROR_KINDS.get(kind, CaseBridgeError)

    if cls is ValidationError:
        return ValidationError(message, problems=descriptor.get("problems"))
    if cls is ParseError:
        return ParseError(
            message,
            line=descriptor.get("line"),
            column=descriptor.get("column"),
            snippet=descriptor.get("snippet"),
        )
    return cls(message)
