"""
Branch API Routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, String
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway
from exam_api.api.responses import list_response, success_response
from exam_api.core.exceptions import InputValidationError, NotFoundError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import BranchRequest, Role
from exam_api.services.result_classifier import (
    raise_for_message,
    raise_for_status_row,
    require_first_row,
    require_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]


def _branch(row: dict) -> dict:
    return {"id": row.get("br_id"), "name": row.get("br_name")}


@router.get("", dependencies=[Depends(authenticate)])
async def get_all_branches(gateway: ProcedureGateway = Depends(get_gateway)):
    """List all branches"""
    result = await gateway.execute("sp_select_branches")
    rows = require_rows(result.recordset)
    return list_response([_branch(row) for row in rows])


@router.get("/{branch_id}", dependencies=[Depends(authenticate)])
async def get_branch_by_id(branch_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Get a single branch"""
    result = await gateway.execute("sp_select_branches_byid", {
        "br_id": ProcedureParam(Integer(), branch_id),
    })
    row = result.first()
    if row is None:
        raise NotFoundError("Branch not found")
    raise_for_message(row.get("message"), not_found_message="Branch not found")
    return success_response(data=_branch(row))


@router.post("", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def create_branch(body: BranchRequest, gateway: ProcedureGateway = Depends(get_gateway)):
    """Create a branch (Instructor only)"""
    if not body.name:
        raise InputValidationError("Please provide branch name")

    result = await gateway.execute("sp_insert_branch", {
        "br_name": ProcedureParam(String(100), body.name),
    })
    row = require_first_row(result.recordset)
    if row.get("message"):
        raise_for_status_row(row)

    logger.info(f"Branch created: {row.get('br_name')}")
    return success_response(
        data=_branch(row),
        message="Branch created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{branch_id}", dependencies=instructor_only)
async def update_branch(
    branch_id: int,
    body: BranchRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Rename a branch (Instructor only)"""
    if not body.name:
        raise InputValidationError("Please provide branch name")

    result = await gateway.execute("sp_update_branch", {
        "br_id": ProcedureParam(Integer(), branch_id),
        "br_name": ProcedureParam(String(100), body.name),
    })
    row = require_first_row(result.recordset)
    raise_for_message(row.get("message"), not_found_message="Branch not found", check_failed=False)

    return success_response(
        data={"id": branch_id, "name": body.name},
        message="Branch updated successfully",
    )


@router.delete("/{branch_id}", dependencies=instructor_only)
async def delete_branch(branch_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Delete a branch (Instructor only)"""
    result = await gateway.execute("sp_delete_branch", {
        "br_id": ProcedureParam(Integer(), branch_id),
    })
    row = require_first_row(result.recordset)
    raise_for_message(row.get("message"), not_found_message="Branch not found", check_failed=False)

    logger.info(f"Branch deleted: {branch_id}")
    return success_response(message="Branch deleted successfully")
