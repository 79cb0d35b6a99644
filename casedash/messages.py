"""
Worker Channel Messages
=======================

Main -> worker: ``{"id": int, "data": str}`` (``None`` asks the worker to stop)
Worker -> main: ``{"id": int, "data": dict | None, "error": dict | None}``

Messages travel as plain dicts; these models validate both ends.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .errors import CaseBridgeError, error_from_descriptor


class ParseRequest(BaseModel):
    id: int = Field(..., description="Correlation identifier, unique among pending requests.")
    data: str = Field(..., description="Raw case text.")


class ErrorDescriptor(BaseModel):
    kind: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    snippet: Optional[str] = None
    problems: List[str] = Field(default_factory=list)

    @classmethod
    def from_error(cls, error: CaseBridgeError) -> "ErrorDescriptor":
        return cls.model_validate(error.to_descriptor())

    def to_error(self) -> CaseBridgeError:
        return error_from_descriptor(self.model_dump())


class ParseResponse(BaseModel):
    id: int
    data: Optional[Dict[str, Any]] = Field(None, description="CaseModel as a plain dict.")
    error: Optional[ErrorDescriptor] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "ParseResponse":
        if (self.data is None) == (self.error is None):
            raise ValueError("ParseResponse needs exactly one of data or error")
        return self

    @classmethod
    def failure(cls, request_id: int, error: CaseBridgeError) -> "ParseResponse":
        return cls(id=request_id, error=ErrorDescriptor.from_error(error))
