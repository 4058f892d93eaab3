"""
Tests for the stored procedure gateway

Statement building is checked against the PostgreSQL dialect; pool
lifecycle is exercised on an in-memory aiosqlite engine.
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy import text
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.types import Boolean, Date, Integer, String, Unicode, UnicodeText

from exam_api.core.exceptions import DatabaseConnectionError, ProcedureError
from exam_api.db.gateway import (
    REFCURSOR_OID,
    ProcedureGateway,
    ProcedureParam,
    ProcedureResult,
    build_call_statement,
    refcursor_columns,
    run_call,
)


class EngineFactory:
    """Counts engines handed out to the gateway"""

    def __init__(self, url: str = "sqlite+aiosqlite://"):
        self.url = url
        self.created = []

    def __call__(self):
        engine = create_async_engine(self.url)
        self.created.append(engine)
        return engine


def _refuse():
    raise AssertionError("engine must not be created")


# ============================================
# Statement building
# ============================================

class TestBuildCallStatement:
    def test_inputs_use_named_notation_with_casts(self):
        statement, outputs = build_call_statement("sp_update_student", {
            "student_id": ProcedureParam(Integer(), 4),
            "student_name": ProcedureParam(String(100), "Mona"),
            "date_of_birth": ProcedureParam(Date(), date(2001, 5, 2)),
        }, postgresql.dialect())

        sql = str(statement)
        assert sql == (
            "SELECT * FROM sp_update_student("
            "student_id => CAST(:p_student_id AS INTEGER), "
            "student_name => CAST(:p_student_name AS VARCHAR(100)), "
            "date_of_birth => CAST(:p_date_of_birth AS DATE))"
        )
        assert outputs == []

    def test_bind_values_are_kept(self):
        statement, _ = build_call_statement("sp_select_course", {
            "id": ProcedureParam(Integer(), 9),
        }, postgresql.dialect())

        assert statement.compile(dialect=postgresql.dialect()).params == {"p_id": 9}

    def test_outputs_switch_to_call(self):
        statement, outputs = build_call_statement("sp_count", {
            "course_id": ProcedureParam(Integer(), 1),
            "total": ProcedureParam(Integer(), output=True),
        }, postgresql.dialect())

        assert str(statement) == (
            "CALL sp_count(course_id => CAST(:p_course_id AS INTEGER), "
            "total => CAST(NULL AS INTEGER))"
        )
        assert outputs == ["total"]

    def test_no_params(self):
        statement, _ = build_call_statement("sp_select_branches", {}, postgresql.dialect())
        assert str(statement) == "SELECT * FROM sp_select_branches()"

    def test_type_classes_are_accepted(self):
        statement, _ = build_call_statement("exam.sp_text", {
            "body": ProcedureParam(UnicodeText, "x"),
        }, postgresql.dialect())
        assert "CAST(:p_body AS TEXT)" in str(statement)

    @pytest.mark.parametrize("name", ["", "sp x", "sp;drop", "1sp", "a.b.c"])
    def test_rejects_bad_procedure_names(self, name):
        with pytest.raises(ValueError):
            build_call_statement(name, {}, postgresql.dialect())

    def test_rejects_bad_parameter_names(self):
        with pytest.raises(ValueError):
            build_call_statement("sp_x", {
                "id; --": ProcedureParam(Integer(), 1),
            }, postgresql.dialect())

    def test_rejects_unsupported_types(self):
        with pytest.raises(ValueError):
            build_call_statement("sp_x", {
                "flag": ProcedureParam(Boolean(), True),
            }, postgresql.dialect())


def test_refcursor_columns():
    description = [
        ("course", REFCURSOR_OID, None, None, None, None, None),
        ("count", 23, None, None, None, None, None),
        ("topics", REFCURSOR_OID, None, None, None, None, None),
    ]
    assert refcursor_columns(description) == ["course", "topics"]
    assert refcursor_columns(None) == []


def test_procedure_result_accessors():
    empty = ProcedureResult()
    assert empty.recordset is None
    assert empty.first() is None

    result = ProcedureResult(recordsets=[[{"id": 1}, {"id": 2}], [{"topic": "SQL"}]])
    assert result.recordset == [{"id": 1}, {"id": 2}]
    assert result.first() == {"id": 1}


# ============================================
# Result collection
# ============================================

@pytest.mark.asyncio
async def test_run_call_returns_single_result_set():
    engine = create_async_engine("sqlite+aiosqlite://")
    try:
        async with engine.begin() as conn:
            result = await run_call(conn, text("SELECT 1 AS value UNION ALL SELECT 2"))
    finally:
        await engine.dispose()

    assert result.recordsets == [[{"value": 1}, {"value": 2}]]
    assert result.output == {}


@pytest.mark.asyncio
async def test_run_call_maps_output_row():
    engine = create_async_engine("sqlite+aiosqlite://")
    try:
        async with engine.begin() as conn:
            result = await run_call(conn, text("SELECT 5 AS total"), ["total"])
    finally:
        await engine.dispose()

    assert result.output == {"total": 5}
    assert result.recordsets == []


@pytest.mark.asyncio
async def test_run_call_without_rows():
    engine = create_async_engine("sqlite+aiosqlite://")
    try:
        async with engine.begin() as conn:
            result = await run_call(conn, text("CREATE TABLE t (x INTEGER)"), ["total"])
    finally:
        await engine.dispose()

    assert result.output == {"total": None}
    assert result.recordset is None


# ============================================
# Pool lifecycle
# ============================================

@pytest.mark.asyncio
async def test_concurrent_callers_share_one_engine():
    factory = EngineFactory()
    gateway = ProcedureGateway(engine_factory=factory)
    try:
        engines = await asyncio.gather(*(gateway.get_engine() for _ in range(5)))
    finally:
        await gateway.close()

    assert len(factory.created) == 1
    assert all(engine is engines[0] for engine in engines)


@pytest.mark.asyncio
async def test_close_is_idempotent_and_engine_is_recreated():
    factory = EngineFactory()
    gateway = ProcedureGateway(engine_factory=factory)

    await gateway.close()
    first = await gateway.get_engine()
    await gateway.close()
    await gateway.close()
    assert not gateway.is_connected

    second = await gateway.get_engine()
    await gateway.close()

    assert first is not second
    assert len(factory.created) == 2


@pytest.mark.asyncio
async def test_invalidated_connection_replaces_engine():
    factory = EngineFactory()
    gateway = ProcedureGateway(engine_factory=factory)
    try:
        engine = await gateway.get_engine()
        async with engine.connect() as conn:
            await conn.invalidate()
        assert not gateway.is_connected

        replacement = await gateway.get_engine()
        assert replacement is not engine
        assert gateway.is_connected
    finally:
        await gateway.close()

    assert len(factory.created) == 2


@pytest.mark.asyncio
async def test_unreachable_database():
    factory = EngineFactory("sqlite+aiosqlite:////nonexistent-directory/exam.db")
    gateway = ProcedureGateway(engine_factory=factory)

    with pytest.raises(DatabaseConnectionError) as exc_info:
        await gateway.get_engine()

    assert exc_info.value.status_code == 503
    assert not gateway.is_connected


@pytest.mark.asyncio
async def test_ping():
    gateway = ProcedureGateway(engine_factory=EngineFactory())
    try:
        assert await gateway.ping() is True
    finally:
        await gateway.close()


# ============================================
# Execution
# ============================================

@pytest.mark.asyncio
async def test_preconditions_are_checked_before_connecting():
    gateway = ProcedureGateway(engine_factory=_refuse)

    with pytest.raises(ValueError):
        await gateway.execute("sp_x; DROP TABLE students")
    with pytest.raises(ValueError):
        await gateway.execute("sp_x", {"flag": ProcedureParam(Boolean(), True)})


@pytest.mark.asyncio
async def test_database_error_becomes_procedure_error():
    # SQLite has no stored routines, so the call itself fails in the database
    gateway = ProcedureGateway(engine_factory=EngineFactory())
    try:
        with pytest.raises(ProcedureError) as exc_info:
            await gateway.execute("sp_select_course", {
                "id": ProcedureParam(Integer(), 1),
            })
    finally:
        await gateway.close()

    assert exc_info.value.procedure == "sp_select_course"
    assert exc_info.value.message


def test_unicode_is_a_supported_string_type():
    statement, _ = build_call_statement("sp_add_course_topic", {
        "topic_name": ProcedureParam(Unicode(150), "Joins"),
    }, postgresql.dialect())
    assert "CAST(:p_topic_name AS VARCHAR(150))" in str(statement)
