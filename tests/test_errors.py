import pytest

from cadence.errors import (
    ErrorResponse,
    LineOutOfRangeError,
    McpError,
    NoteNotFoundError,
    NotATaskError,
    StaleTaskError,
    TaskAddressError,
    error_response,
    success_response,
)


def test_error_response_serializes_details():
    error = ErrorResponse(code="PATH_TRAVERSAL", message="Nope", details={"path": ".."})

    assert error.to_dict() == {
        "code": "PATH_TRAVERSAL",
        "message": "Nope",
        "details": {"path": ".."},
    }


def test_mcp_error_defaults_details():
    exc = McpError("INVALID_TYPE", "Bad path")

    assert exc.error.to_dict() == {
        "code": "INVALID_TYPE",
        "message": "Bad path",
        "details": {},
    }


@pytest.mark.parametrize(
    ("error_class", "code"),
    [
        (TaskAddressError, "INVALID_ADDRESS"),
        (NoteNotFoundError, "NOTE_NOT_FOUND"),
        (LineOutOfRangeError, "LINE_OUT_OF_RANGE"),
        (NotATaskError, "NOT_A_TASK"),
        (StaleTaskError, "STALE_TASK"),
    ],
)
def test_task_address_errors_carry_fixed_codes(error_class, code):
    exc = error_class("Task problem", {"line": 3})

    assert isinstance(exc, McpError)
    assert exc.error.code == code
    assert exc.error.details == {"line": 3}
    assert str(exc) == "Task problem"


def test_response_envelopes():
    assert success_response({"count": 1}) == {"ok": True, "data": {"count": 1}}
    assert error_response(ErrorResponse("GIT_ERROR", "failed")) == {
        "ok": False,
        "error": {"code": "GIT_ERROR", "message": "failed", "details": {}},
    }
