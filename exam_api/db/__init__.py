"""
Database module initialization
"""

from exam_api.db.database import create_engine_from_settings
from exam_api.db.gateway import (
    ProcedureGateway,
    ProcedureParam,
    ProcedureResult,
    build_call_statement,
    refcursor_columns,
    run_call,
)

__all__ = [
    "create_engine_from_settings",
    "ProcedureGateway",
    "ProcedureParam",
    "ProcedureResult",
    "build_call_statement",
    "refcursor_columns",
    "run_call",
]
