"""
Stored Procedure Message Classification

The stored procedures report outcomes as human-readable text rather than
status codes. This module is the only place that interprets that text.
Any change to the wording on the database side must be mirrored here.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, NoReturn, Optional

from exam_api.core.exceptions import (
    AppError,
    ConflictError,
    InputValidationError,
    NotFoundError,
    ProcedureError,
)

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class Outcome(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    FAILED = "FAILED"
    SUCCESS = "SUCCESS"
    VALID = "VALID"
    UNKNOWN = "UNKNOWN"


# Checked in order; the first matching group wins.
_PATTERNS = (
    (Outcome.NOT_FOUND, ("does not exist", "not found")),
    (Outcome.CONFLICT, ("already exists", "already assigned", "duplicate")),
    (Outcome.FAILED, ("invalid", "not valid", "error")),
    (Outcome.SUCCESS, ("successfully",)),
    (Outcome.VALID, ("valid",)),
)

MESSAGE_COLUMNS = ("message", "Result", "errormessage")


def classify_message(message: Optional[str]) -> Outcome:
    """
    Classify a procedure message by substring (case-insensitive)

    Args:
        message: Text returned by a stored procedure

    Returns:
        The Outcome of the first matching pattern group, else UNKNOWN
    """
    if not isinstance(message, str):
        return Outcome.UNKNOWN
    text = message.lower()
    for outcome, needles in _PATTERNS:
        if any(needle in text for needle in needles):
            return outcome
    return Outcome.UNKNOWN


def extract_message(row: Optional[Mapping[str, Any]], *columns: str) -> Optional[str]:
    """
    Find the status message in a result row

    Looks at the given columns (default: message, Result, errormessage)
    and falls back to the first column of the row.
    """
    if not row:
        return None
    for column in columns or MESSAGE_COLUMNS:
        value = row.get(column)
        if value:
            return str(value)
    first = next(iter(row.values()), None)
    return first if isinstance(first, str) else None


def raise_for_message(
    message: Optional[str],
    not_found_message: Optional[str] = None,
    conflict_message: Optional[str] = None,
    check_failed: bool = True,
) -> Outcome:
    """
    Raise the AppError matching a procedure message, if any

    Args:
        message: Procedure message (None passes through)
        not_found_message: Client message for NOT_FOUND (default: the procedure's)
        conflict_message: Client message for CONFLICT (default: the procedure's)
        check_failed: Whether FAILED messages raise InputValidationError

    Returns:
        The outcome when it does not map to an error
    """
    outcome = classify_message(message)
    if outcome is Outcome.NOT_FOUND:
        raise NotFoundError(not_found_message or message)
    if outcome is Outcome.CONFLICT:
        raise ConflictError(conflict_message or message)
    if outcome is Outcome.FAILED and check_failed:
        logger.info(f"Procedure reported failure: {message}")
        raise InputValidationError(message)
    return outcome


def raise_for_status_row(
    row: Mapping[str, Any],
    not_found_message: Optional[str] = None,
    conflict_message: Optional[str] = None,
) -> Outcome:
    """
    Raise for an insert row that carries a message column

    The outcome is read from `message`; `errormessage` holds the database
    error text and is only used as the client message for FAILED rows.
    """
    message = row.get("message")
    outcome = raise_for_message(
        message,
        not_found_message=not_found_message,
        conflict_message=conflict_message,
        check_failed=False,
    )
    if outcome is Outcome.FAILED:
        client_message = row.get("errormessage") or message
        logger.info(f"Procedure reported failure: {client_message}")
        raise InputValidationError(str(client_message))
    return outcome


def require_rows(rows: Optional[List[Row]]) -> List[Row]:
    """Rows of a result set that must exist (it may be empty)"""
    if rows is None:
        raise AppError("No response from database")
    return rows


def require_first_row(rows: Optional[List[Row]]) -> Row:
    """First row of a result set that must contain at least one row"""
    if not rows:
        raise AppError("No response from database")
    return rows[0]


def raise_for_procedure_error(
    error: ProcedureError,
    not_found_message: Optional[str] = None,
    conflict_message: Optional[str] = None,
) -> NoReturn:
    """
    Re-raise a procedure failure as NotFound/Conflict when its text says so

    Procedures that signal problems with RAISE EXCEPTION surface as ProcedureError;
    anything unclassified is re-raised unchanged.
    """
    outcome = classify_message(error.message)
    if outcome is Outcome.NOT_FOUND:
        raise NotFoundError(not_found_message or error.message, detail=error.message) from error
    if outcome is Outcome.CONFLICT:
        raise ConflictError(conflict_message or error.message, detail=error.message) from error
    raise error
