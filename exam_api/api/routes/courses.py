"""
Course API Routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, Unicode
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway
from exam_api.api.responses import list_response, success_response
from exam_api.core.exceptions import InputValidationError, NotFoundError, ProcedureError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import CourseRequest, Role
from exam_api.services.result_classifier import raise_for_procedure_error, require_rows

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]


def _course(row: dict) -> dict:
    return {
        "id": row.get("course_id"),
        "name": row.get("course_name"),
        "code": row.get("course_code"),
        "duration": row.get("duration"),
    }


@router.get("", dependencies=[Depends(authenticate)])
async def get_all_courses(gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_select_courses")
    rows = require_rows(result.recordset)
    return list_response([_course(row) for row in rows])


@router.get("/{course_id}", dependencies=[Depends(authenticate)])
async def get_course_by_id(course_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_select_course", {
        "id": ProcedureParam(Integer(), course_id),
    })
    row = result.first()
    if row is None:
        raise NotFoundError("Course not found")
    return success_response(data=_course(row))


@router.post("", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def create_course(body: CourseRequest, gateway: ProcedureGateway = Depends(get_gateway)):
    """Create a course (Instructor only)"""
    if not body.name or not body.code or body.duration is None:
        raise InputValidationError("Please provide course name, code, and duration")
    if body.duration <= 0:
        raise InputValidationError("Duration must be a positive number")

    try:
        await gateway.execute("sp_insert_course", {
            "name": ProcedureParam(Unicode(150), body.name),
            "code": ProcedureParam(Unicode(50), body.code),
            "duration": ProcedureParam(Integer(), body.duration),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, conflict_message="Course code already exists")

    logger.info(f"Course created: {body.code}")
    return success_response(
        data={"name": body.name, "code": body.code, "duration": body.duration},
        message="Course created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{course_id}", dependencies=instructor_only)
async def update_course(
    course_id: int,
    body: CourseRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Update any of a course's name, code or duration (Instructor only)"""
    if not body.name and not body.code and body.duration is None:
        raise InputValidationError("Please provide at least one field to update")
    if body.duration is not None and body.duration <= 0:
        raise InputValidationError("Duration must be a positive number")

    try:
        await gateway.execute("sp_update_course", {
            "id": ProcedureParam(Integer(), course_id),
            "name": ProcedureParam(Unicode(100), body.name or None),
            "code": ProcedureParam(Unicode(150), body.code or None),
            "duration": ProcedureParam(Integer(), body.duration),
        })
    except ProcedureError as e:
        raise_for_procedure_error(
            e,
            not_found_message="Course not found",
            conflict_message="Course code already exists",
        )

    data = {"id": course_id, "name": body.name, "code": body.code}
    if body.duration is not None:
        data["duration"] = body.duration
    return success_response(data=data, message="Course updated successfully")


@router.delete("/{course_id}", dependencies=instructor_only)
async def delete_course(course_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    try:
        await gateway.execute("sp_delete_course", {
            "id": ProcedureParam(Integer(), course_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Course not found")

    logger.info(f"Course deleted: {course_id}")
    return success_response(message="Course deleted successfully")
