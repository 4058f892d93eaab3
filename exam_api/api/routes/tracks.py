"""
Track API Routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, String
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway
from exam_api.api.responses import list_response, success_response
from exam_api.core.exceptions import InputValidationError, NotFoundError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import Role, TrackRequest
from exam_api.services.result_classifier import (
    raise_for_message,
    raise_for_status_row,
    require_first_row,
    require_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]


def _track(row: dict) -> dict:
    return {
        "id": row.get("tr_id"),
        "name": row.get("tr_name"),
        "managerId": row.get("manager_id"),
        "managerName": row.get("manager_name") or None,
        "managerEmail": row.get("manager_email") or None,
    }


@router.get("", dependencies=[Depends(authenticate)])
async def get_all_tracks(gateway: ProcedureGateway = Depends(get_gateway)):
    """List all tracks with their managers"""
    result = await gateway.execute("sp_select_tracks")
    rows = require_rows(result.recordset)
    return list_response([_track(row) for row in rows])


@router.get("/{track_id}", dependencies=[Depends(authenticate)])
async def get_track_by_id(track_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_select_tracks_byid", {
        "tr_id": ProcedureParam(Integer(), track_id),
    })
    row = result.first()
    if row is None:
        raise NotFoundError("Track not found")
    raise_for_message(row.get("message"), not_found_message="Track not found")
    return success_response(data=_track(row))


@router.post("", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def create_track(body: TrackRequest, gateway: ProcedureGateway = Depends(get_gateway)):
    """Create a track managed by an instructor (Instructor only)"""
    if not body.name or not body.manager_id:
        raise InputValidationError("Please provide track name and manager ID")

    result = await gateway.execute("sp_insert_track", {
        "tr_name": ProcedureParam(String(100), body.name),
        "manager_id": ProcedureParam(Integer(), body.manager_id),
    })
    row = require_first_row(result.recordset)
    if row.get("message"):
        raise_for_status_row(row)

    logger.info(f"Track created: {row.get('tr_name')}")
    return success_response(
        data={
            "id": row.get("tr_id"),
            "name": row.get("tr_name"),
            "managerId": row.get("manager_id"),
        },
        message="Track created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{track_id}", dependencies=instructor_only)
async def update_track(
    track_id: int,
    body: TrackRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Update a track's name and/or manager (Instructor only)"""
    if not body.name and not body.manager_id:
        raise InputValidationError("Please provide at least track name or manager ID")

    result = await gateway.execute("sp_update_track", {
        "tr_id": ProcedureParam(Integer(), track_id),
        "tr_name": ProcedureParam(String(100), body.name or None),
        "manager_id": ProcedureParam(Integer(), body.manager_id or None),
    })
    row = require_first_row(result.recordset)
    raise_for_message(row.get("message"), not_found_message="Track not found", check_failed=False)

    return success_response(
        data={"id": track_id, "name": body.name, "managerId": body.manager_id},
        message="Track updated successfully",
    )


@router.delete("/{track_id}", dependencies=instructor_only)
async def delete_track(track_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_delete_track", {
        "tr_id": ProcedureParam(Integer(), track_id),
    })
    row = require_first_row(result.recordset)
    raise_for_message(row.get("message"), not_found_message="Track not found", check_failed=False)

    logger.info(f"Track deleted: {track_id}")
    return success_response(message="Track deleted successfully")
