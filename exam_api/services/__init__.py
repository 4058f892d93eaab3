"""
Services module initialization
"""

from exam_api.services.result_classifier import (
    Outcome,
    classify_message,
    extract_message,
    raise_for_message,
    raise_for_procedure_error,
    require_first_row,
    require_rows,
)
from exam_api.services.exam_service import (
    ExamService,
    SubmissionOutcome,
    AnswerFailure,
)

__all__ = [
    "Outcome",
    "classify_message",
    "extract_message",
    "raise_for_message",
    "raise_for_procedure_error",
    "require_first_row",
    "require_rows",
    "ExamService",
    "SubmissionOutcome",
    "AnswerFailure",
]
