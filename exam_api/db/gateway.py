"""
Stored Procedure Gateway

Executes named database routines with typed parameters over a single,
lazily created SQLAlchemy async engine. The engine is re-created after the
pool reports an invalidated (dropped) connection.

Routines are PostgreSQL functions called with named notation. A routine
that produces several result sets returns one refcursor per set; a
procedure with OUT parameters is invoked with CALL and its single result
row becomes the output values.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import bindparam, event, text
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import Date, Integer, String, TypeEngine

from exam_api.core.config import settings
from exam_api.core.exceptions import DatabaseConnectionError, ProcedureError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PROCEDURE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# String covers VARCHAR with or without a length, Text and UnicodeText
SUPPORTED_TYPES = (Integer, String, Date)

# pg_type OID of refcursor, as reported in cursor.description
REFCURSOR_OID = 1790

Row = Dict[str, Any]


@dataclass(frozen=True)
class ProcedureParam:
    """A single named procedure argument"""
    type_: TypeEngine
    value: Any = None
    output: bool = False


@dataclass
class ProcedureResult:
    """All result sets produced by one procedure call, in order"""
    recordsets: List[List[Row]] = field(default_factory=list)
    output: Dict[str, Any] = field(default_factory=dict)

    @property
    def recordset(self) -> Optional[List[Row]]:
        """First result set, or None if the procedure produced none"""
        return self.recordsets[0] if self.recordsets else None

    def first(self) -> Optional[Row]:
        """First row of the first result set"""
        rows = self.recordset
        return rows[0] if rows else None


# ============================================
# Statement building
# ============================================

def _check_param(name: str, param: ProcedureParam) -> None:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid parameter name: {name!r}")
    type_ = param.type_
    if isinstance(type_, type):
        type_ = type_()
    if not isinstance(type_, SUPPORTED_TYPES):
        raise ValueError(
            f"Unsupported type {type_!r} for parameter {name!r}"
        )


def _check_procedure(name: str) -> None:
    if not name or not _PROCEDURE_NAME.match(name):
        raise ValueError(f"Invalid procedure name: {name!r}")


def build_call_statement(
    name: str,
    params: Mapping[str, ProcedureParam],
    dialect: Dialect,
) -> Tuple[TextClause, List[str]]:
    """
    Build the statement that calls a routine

    Every argument is passed in named notation and CAST to its exact
    declared type, so overload resolution never depends on the driver's
    guess. Output arguments are passed as typed NULLs and switch the call
    from SELECT to CALL.

    Args:
        name: Routine name, optionally schema-qualified
        params: Ordered mapping of parameter name to ProcedureParam
        dialect: Dialect used to render the SQL types

    Returns:
        Tuple of (statement, output parameter names)
    """
    _check_procedure(name)

    arguments: List[str] = []
    binds = []
    outputs: List[str] = []

    for key, param in params.items():
        _check_param(key, param)
        type_ = param.type_() if isinstance(param.type_, type) else param.type_
        sql_type = type_.compile(dialect=dialect)
        if param.output:
            arguments.append(f"{key} => CAST(NULL AS {sql_type})")
            outputs.append(key)
        else:
            arguments.append(f"{key} => CAST(:p_{key} AS {sql_type})")
            binds.append(bindparam(f"p_{key}", param.value, type_=type_))

    call = f"{name}({', '.join(arguments)})"
    sql = f"CALL {call}" if outputs else f"SELECT * FROM {call}"
    return text(sql).bindparams(*binds), outputs


def refcursor_columns(description: Optional[Sequence[Sequence[Any]]]) -> List[str]:
    """Names of the result columns that hold refcursors"""
    if not description:
        return []
    return [column[0] for column in description if column[1] == REFCURSOR_OID]


def _driver_message(error: DBAPIError) -> str:
    # The adapted async driver wraps the native exception; prefer its text
    orig = error.orig
    if orig is None:
        return str(error)
    return str(orig.__cause__ or orig)


async def _fetch_cursor(conn: AsyncConnection, cursor_name: str) -> List[Row]:
    quoted = '"' + cursor_name.replace('"', '""') + '"'
    result = await conn.exec_driver_sql(f"FETCH ALL FROM {quoted}")
    return [dict(row._mapping) for row in result]


async def run_call(
    conn: AsyncConnection,
    statement: TextClause,
    outputs: Sequence[str] = (),
) -> ProcedureResult:
    """
    Execute a call statement inside an open transaction and collect its results

    Refcursor columns are fetched, in row order, as separate result sets;
    they are only valid until the transaction ends.
    """
    result = await conn.execute(statement)
    if not result.returns_rows:
        return ProcedureResult(output={key: None for key in outputs})

    cursors = refcursor_columns(result.cursor.description)
    rows = [dict(row._mapping) for row in result]

    if outputs:
        output = rows[0] if rows else {key: None for key in outputs}
        recordsets = []
        for column in cursors:
            if output.get(column):
                recordsets.append(await _fetch_cursor(conn, output[column]))
        return ProcedureResult(recordsets=recordsets, output=output)

    if cursors:
        recordsets = []
        for row in rows:
            for column in cursors:
                if row.get(column):
                    recordsets.append(await _fetch_cursor(conn, row[column]))
        return ProcedureResult(recordsets=recordsets)

    return ProcedureResult(recordsets=[rows])


# ============================================
# Gateway
# ============================================

def _default_engine_factory() -> AsyncEngine:
    from exam_api.db.database import create_engine_from_settings
    return create_engine_from_settings()


class ProcedureGateway:
    """
    Owns the connection pool and runs stored procedures on it

    The engine is created on first use. Pool invalidation (a dropped
    connection) marks it failed, and the next caller replaces it.
    """

    def __init__(
        self,
        engine_factory: Optional[Callable[[], AsyncEngine]] = None,
        request_timeout: Optional[float] = None,
    ):
        self._engine_factory = engine_factory or _default_engine_factory
        self._request_timeout = (
            request_timeout if request_timeout is not None
            else settings.db_request_timeout_seconds
        )
        self._engine: Optional[AsyncEngine] = None
        self._engine_failed = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._engine is not None and not self._engine_failed

    async def get_engine(self) -> AsyncEngine:
        """
        Return the shared engine, creating it if absent or invalidated

        Raises:
            DatabaseConnectionError: the database could not be reached
        """
        if self.is_connected:
            return self._engine

        async with self._lock:
            if self.is_connected:
                return self._engine

            stale = self._engine
            self._engine = None
            if stale is not None:
                logger.warning("Replacing invalidated database pool")
                await self._dispose_quietly(stale)

            engine = self._engine_factory()
            try:
                async with engine.connect() as conn:
                    await conn.exec_driver_sql("SELECT 1")
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Database connection failed: {e}")
                await self._dispose_quietly(engine)
                raise DatabaseConnectionError(detail=str(e)) from e

            self._watch(engine)
            self._engine = engine
            self._engine_failed = False
            logger.info("Database connected successfully")
            return engine

    def _watch(self, engine: AsyncEngine) -> None:
        def on_invalidate(dbapi_connection, connection_record, exception):
            if self._engine is engine and not self._engine_failed:
                logger.error(f"Database pool error: {exception}")
                self._engine_failed = True

        event.listen(engine.sync_engine.pool, "invalidate", on_invalidate)

    async def _dispose_quietly(self, engine: AsyncEngine) -> None:
        try:
            await engine.dispose()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Error disposing database pool: {e}")

    async def execute(
        self,
        name: str,
        params: Optional[Mapping[str, ProcedureParam]] = None,
    ) -> ProcedureResult:
        """
        Execute a stored procedure and return all of its result sets

        Args:
            name: Procedure name
            params: Ordered mapping of parameter name to ProcedureParam

        Returns:
            ProcedureResult with every result set and output parameter

        Raises:
            ValueError: invalid procedure name, parameter name or type
            DatabaseConnectionError: pool unavailable or connection dropped
            ProcedureError: the procedure raised, or the call timed out
        """
        params = params or {}
        # Validate before touching the pool
        _check_procedure(name)
        for key, param in params.items():
            _check_param(key, param)

        engine = await self.get_engine()
        statement, outputs = build_call_statement(name, params, engine.dialect)

        try:
            return await asyncio.wait_for(
                self._run(engine, name, statement, outputs),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout executing stored procedure {name}")
            raise ProcedureError(
                f"Request timed out after {self._request_timeout}s",
                procedure=name,
            ) from e

    async def _run(
        self,
        engine: AsyncEngine,
        name: str,
        statement: TextClause,
        outputs: List[str],
    ) -> ProcedureResult:
        try:
            async with engine.begin() as conn:
                return await run_call(conn, statement, outputs)
        except DBAPIError as e:
            message = _driver_message(e)
            if e.connection_invalidated:
                # The pool's invalidate event has already marked the engine failed
                logger.error(f"Connection lost executing stored procedure {name}: {message}")
                raise DatabaseConnectionError(detail=message) from e
            logger.error(f"Error executing stored procedure {name}: {message}")
            raise ProcedureError(message, procedure=name) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database unavailable executing stored procedure {name}: {e}")
            raise DatabaseConnectionError(detail=str(e)) from e

    async def ping(self) -> bool:
        """Obtain the pool and run a trivial query"""
        engine = await self.get_engine()
        try:
            async with engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(detail=str(e)) from e
        return True

    async def server_version(self) -> str:
        """Return the database server's version banner"""
        engine = await self.get_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.exec_driver_sql("SELECT version()")
                return result.scalar_one()
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(detail=str(e)) from e

    async def close(self) -> None:
        """Dispose the pool; safe to call when no pool exists"""
        async with self._lock:
            engine = self._engine
            self._engine = None
            self._engine_failed = False
            if engine is None:
                return
            await engine.dispose()
            logger.info("Database connection closed")
