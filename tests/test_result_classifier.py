"""Tests for interpretation of stored procedure messages."""

import pytest

from exam_api.core.exceptions import (
    AppError,
    ConflictError,
    InputValidationError,
    NotFoundError,
    ProcedureError,
)
from exam_api.services.result_classifier import (
    Outcome,
    classify_message,
    extract_message,
    raise_for_message,
    raise_for_procedure_error,
    raise_for_status_row,
    require_first_row,
    require_rows,
)


@pytest.mark.parametrize("message, expected", [
    ("Course does not exist", Outcome.NOT_FOUND),
    ("Student not found", Outcome.NOT_FOUND),
    ("Course code already exists", Outcome.CONFLICT),
    ("Instructor is already assigned to this course", Outcome.CONFLICT),
    ("Duplicate key value", Outcome.CONFLICT),
    ("Invalid exam ID", Outcome.FAILED),
    ("Exam grade is not valid", Outcome.FAILED),
    ("Error: question not in exam", Outcome.FAILED),
    ("Answer submitted successfully", Outcome.SUCCESS),
    ("Exam grade is VALID", Outcome.VALID),
    ("Something else", Outcome.UNKNOWN),
])
def test_classify_message(message, expected):
    assert classify_message(message) is expected


def test_invalid_is_never_read_as_valid():
    assert classify_message("Total grade is invalid") is Outcome.FAILED


def test_not_found_wins_over_later_groups():
    assert classify_message("Error: exam does not exist") is Outcome.NOT_FOUND


def test_non_text_is_unknown():
    assert classify_message(None) is Outcome.UNKNOWN
    assert classify_message(42) is Outcome.UNKNOWN


class TestExtractMessage:
    def test_prefers_named_columns(self):
        row = {"Exam_ID": 3, "Result": "Exam generated successfully"}
        assert extract_message(row) == "Exam generated successfully"

    def test_explicit_columns(self):
        row = {"message": "fallback", "status": "chosen"}
        assert extract_message(row, "status") == "chosen"

    def test_falls_back_to_first_text_column(self):
        assert extract_message({"": "Answer submitted successfully"}) == "Answer submitted successfully"

    def test_no_text(self):
        assert extract_message({"count": 3}) is None
        assert extract_message(None) is None


class TestRaiseForMessage:
    def test_not_found(self):
        with pytest.raises(NotFoundError) as exc_info:
            raise_for_message("Course does not exist", not_found_message="Course not found")
        assert exc_info.value.message == "Course not found"

    def test_conflict_keeps_procedure_text_by_default(self):
        with pytest.raises(ConflictError) as exc_info:
            raise_for_message("Track already exists")
        assert exc_info.value.message == "Track already exists"
        assert exc_info.value.status_code == 400

    def test_failed(self):
        with pytest.raises(InputValidationError):
            raise_for_message("Invalid track ID")

    def test_failed_can_pass_through(self):
        assert raise_for_message("Invalid track ID", check_failed=False) is Outcome.FAILED

    def test_success_passes_through(self):
        assert raise_for_message("Branch added successfully") is Outcome.SUCCESS
        assert raise_for_message(None) is Outcome.UNKNOWN


class TestRaiseForStatusRow:
    def test_failure_reports_database_error_text(self):
        row = {"message": "Error occurred", "errormessage": "null value in column \"tr_name\""}
        with pytest.raises(InputValidationError) as exc_info:
            raise_for_status_row(row)
        assert exc_info.value.message == "null value in column \"tr_name\""

    def test_outcome_comes_from_message_column(self):
        row = {"message": "Track inserted successfully", "errormessage": "previous error ignored"}
        assert raise_for_status_row(row) is Outcome.SUCCESS

    def test_conflict_message(self):
        with pytest.raises(ConflictError) as exc_info:
            raise_for_status_row({"message": "Relation already exists"}, conflict_message="Already assigned")
        assert exc_info.value.message == "Already assigned"

    def test_failure_without_error_text(self):
        with pytest.raises(InputValidationError) as exc_info:
            raise_for_status_row({"message": "Invalid manager ID"})
        assert exc_info.value.message == "Invalid manager ID"


class TestRaiseForProcedureError:
    def test_conflict(self):
        error = ProcedureError("duplicate key value violates unique constraint", procedure="sp_insert_course")
        with pytest.raises(ConflictError) as exc_info:
            raise_for_procedure_error(error, conflict_message="Course code already exists")
        assert exc_info.value.message == "Course code already exists"
        assert exc_info.value.detail == error.message

    def test_not_found(self):
        with pytest.raises(NotFoundError):
            raise_for_procedure_error(ProcedureError("Course not found"))

    def test_unclassified_is_reraised(self):
        error = ProcedureError("deadlock detected")
        with pytest.raises(ProcedureError) as exc_info:
            raise_for_procedure_error(error)
        assert exc_info.value is error


def test_require_rows():
    assert require_rows([]) == []
    with pytest.raises(AppError):
        require_rows(None)


def test_require_first_row():
    assert require_first_row([{"a": 1}, {"a": 2}]) == {"a": 1}
    with pytest.raises(AppError):
        require_first_row([])
