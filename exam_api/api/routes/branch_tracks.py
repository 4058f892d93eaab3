"""
Branch-Track API Routes
Which tracks are offered at which branches
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway
from exam_api.api.responses import list_response, success_response
from exam_api.core.exceptions import InputValidationError, NotFoundError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import BranchTrackRequest, BranchTrackUpdateRequest, Role
from exam_api.services.result_classifier import (
    raise_for_message,
    raise_for_status_row,
    require_first_row,
    require_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]


def _relation(row: dict) -> dict:
    return {"branchId": row.get("br_id"), "trackId": row.get("tr_id")}


@router.get("", dependencies=[Depends(authenticate)])
async def get_all_branch_track_relations(gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_branch_track_select")
    rows = require_rows(result.recordset)
    return list_response([_relation(row) for row in rows])


@router.get("/{branch_id}/{track_id}", dependencies=[Depends(authenticate)])
async def get_branch_track_relation(
    branch_id: int,
    track_id: int,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    result = await gateway.execute("sp_branch_track_selectbypk", {
        "br_id": ProcedureParam(Integer(), branch_id),
        "tr_id": ProcedureParam(Integer(), track_id),
    })
    row = result.first()
    if row is None:
        raise NotFoundError("Branch-track relation not found")
    raise_for_message(row.get("message"), not_found_message="Branch-track relation not found")
    return success_response(data=_relation(row))


@router.post("", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def assign_track_to_branch(
    body: BranchTrackRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Offer a track at a branch (Instructor only)"""
    if not body.branch_id or not body.track_id:
        raise InputValidationError("Please provide both branch ID and track ID")

    result = await gateway.execute("sp_branch_track_insert", {
        "br_id": ProcedureParam(Integer(), body.branch_id),
        "tr_id": ProcedureParam(Integer(), body.track_id),
    })
    row = require_first_row(result.recordset)
    if row.get("message"):
        raise_for_status_row(
            row,
            conflict_message="This track is already assigned to this branch",
        )

    logger.info(f"Track {body.track_id} assigned to branch {body.branch_id}")
    return success_response(
        data={"branchId": body.branch_id, "trackId": body.track_id},
        message="Track assigned to branch successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{branch_id}/{track_id}", dependencies=instructor_only)
async def update_branch_track_relation(
    branch_id: int,
    track_id: int,
    body: BranchTrackUpdateRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Move a relation to another branch and/or track (Instructor only)"""
    if not body.new_branch_id and not body.new_track_id:
        raise InputValidationError("Please provide at least new branch ID or new track ID")

    result = await gateway.execute("sp_branch_track_update", {
        "br_id": ProcedureParam(Integer(), branch_id),
        "tr_id": ProcedureParam(Integer(), track_id),
        "new_br_id": ProcedureParam(Integer(), body.new_branch_id or None),
        "new_tr_id": ProcedureParam(Integer(), body.new_track_id or None),
    })
    row = require_first_row(result.recordset)
    raise_for_message(row.get("message"), check_failed=False)

    return success_response(
        data={
            "oldBranchId": branch_id,
            "oldTrackId": track_id,
            "newBranchId": body.new_branch_id or branch_id,
            "newTrackId": body.new_track_id or track_id,
        },
        message="Branch-track relation updated successfully",
    )


@router.delete("/{branch_id}/{track_id}", dependencies=instructor_only)
async def remove_track_from_branch(
    branch_id: int,
    track_id: int,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    result = await gateway.execute("sp_branch_track_delete", {
        "br_id": ProcedureParam(Integer(), branch_id),
        "tr_id": ProcedureParam(Integer(), track_id),
    })
    row = require_first_row(result.recordset)
    raise_for_message(
        row.get("message"),
        not_found_message="Branch-track relation not found",
        check_failed=False,
    )

    return success_response(message="Track removed from branch successfully")
