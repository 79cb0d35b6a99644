"""
Tests for the error taxonomy and the worker channel messages.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from casedash.errors import (
    CaseBridgeError,
    ModuleLoadError,
    ParseError,
    ValidationError,
    WorkerLostError,
    caret_excerpt,
    error_from_descriptor,
)
from casedash.messages import ErrorDescriptor, ParseRequest, ParseResponse


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

def test_parse_error_str_when_position_known_then_includes_it():
    assert str(ParseError("Invalid number 'abc'", 8, 6)) == "Invalid number 'abc' (line 8, column 6)"
    assert str(ParseError("Missing mpc.bus matrix", 4)) == "Missing mpc.bus matrix (line 4)"
    assert str(ParseError("Missing mpc.bus matrix")) == "Missing mpc.bus matrix"


def test_parse_error_str_when_snippet_known_then_marks_column():
    err = ParseError("Invalid number 'x1'", 3, 5, snippet="1  2 x1  4;")

    assert str(err) == "Invalid number 'x1' (line 3, column 5)\n\n1  2 x1  4;\n    ^"


def test_caret_excerpt_when_tabs_before_column_then_keeps_them():
    assert caret_excerpt("\t1\tx", 4) == "\t1\tx\n\t \t^"
    assert caret_excerpt("abc", None) == "abc"


def test_error_from_descriptor_when_validation_error_then_keeps_problems():
    original = ValidationError("Case 'x' is inconsistent", ["branch 1 from bus 4 does not exist"])

    rebuilt = error_from_descriptor(original.to_descriptor())

    assert type(rebuilt) is ValidationError
    assert rebuilt.problems == ["branch 1 from bus 4 does not exist"]
    assert isinstance(rebuilt, ParseError)


@pytest.mark.parametrize("cls", [ModuleLoadError, WorkerLostError])
def test_error_from_descriptor_when_plain_kind_then_rebuilds_same_class(cls):
    rebuilt = error_from_descriptor(cls("boom").to_descriptor())

    assert type(rebuilt) is cls
    assert rebuilt.message == "boom"


def test_error_from_descriptor_when_unknown_kind_then_falls_back_to_base():
    rebuilt = error_from_descriptor({"kind": "QuotaExceeded", "message": "too many"})

    assert type(rebuilt) is CaseBridgeError
    assert rebuilt.message == "too many"


# ─────────────────────────────────────────────────────────────────────────────
# Messages
# ─────────────────────────────────────────────────────────────────────────────

def test_parse_request_when_data_missing_then_rejected():
    with pytest.raises(PydanticValidationError):
        ParseRequest.model_validate({"id": 1})


def test_parse_response_when_both_outcomes_set_then_rejected():
    with pytest.raises(PydanticValidationError, match="exactly one"):
        ParseResponse(id=1, data={}, error=ErrorDescriptor(kind="ParseError", message="x"))


def test_parse_response_when_neither_outcome_set_then_rejected():
    with pytest.raises(PydanticValidationError, match="exactly one"):
        ParseResponse(id=1)


def test_parse_response_failure_when_parse_error_then_descriptor_round_trips():
    response = ParseResponse.failure(3, ParseError("Invalid number 'abc'", 8, 6, snippet="\t2\t2\tabc"))

    dumped = response.model_dump()
    error = ParseResponse.model_validate(dumped).error.to_error()

    assert dumped["id"] == 3
    assert dumped["data"] is None
    assert isinstance(error, ParseError)
    assert (error.line, error.column) == (8, 6)
    assert error.snippet == "\t2\t2\tabc"
