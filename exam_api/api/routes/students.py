"""
Student API Routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Date, Integer, String
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway, get_identity
from exam_api.api.responses import list_response, success_response
from exam_api.api.routes.auth import EMAIL_PATTERN, parse_date
from exam_api.core.exceptions import InputValidationError, ProcedureError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import RequestIdentity, Role, StudentCourseRequest, StudentUpdateRequest
from exam_api.services.result_classifier import raise_for_procedure_error, require_rows

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]
any_role = [Depends(authenticate), Depends(authorize(Role.STUDENT, Role.INSTRUCTOR))]


@router.get("", dependencies=instructor_only)
async def get_all_students(gateway: ProcedureGateway = Depends(get_gateway)):
    result = await gateway.execute("sp_select_students")
    rows = require_rows(result.recordset)
    return list_response([
        {
            "id": row.get("student_id"),
            "name": row.get("student_name"),
            "email": row.get("student_email"),
            "dateOfBirth": row.get("date_of_birth"),
            "trackName": row.get("tr_name"),
        }
        for row in rows
    ])


# =========================================
# Enrollment
# =========================================

async def _student_courses(
    identity: RequestIdentity,
    student_id: Optional[int],
    gateway: ProcedureGateway,
):
    # Students only ever see their own enrollment
    if identity.role is Role.STUDENT:
        student_id = identity.subject_id
    if not student_id:
        raise InputValidationError("Student ID is required")

    result = await gateway.execute("sp_get_student_courses", {
        "student_id": ProcedureParam(Integer(), student_id),
    })
    rows = require_rows(result.recordset)
    return list_response([
        {
            "id": row.get("course_id"),
            "name": row.get("course_name"),
            "code": row.get("course_code"),
            "duration": row.get("duration"),
            "enrollDate": row.get("enroll_date"),
        }
        for row in rows
    ])


@router.get("/courses", dependencies=any_role)
async def get_own_courses(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Courses of the logged-in student (instructors must name a student)"""
    return await _student_courses(identity, None, gateway)


@router.get("/courses/{student_id}", dependencies=any_role)
async def get_student_courses(
    student_id: int,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Courses of a student; a student caller always gets their own"""
    return await _student_courses(identity, student_id, gateway)


@router.post("/assign-course", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def assign_course_to_student(
    body: StudentCourseRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    if not body.student_id or not body.course_id:
        raise InputValidationError("Please provide student ID and course ID")

    try:
        await gateway.execute("sp_assign_course_to_student", {
            "student_id": ProcedureParam(Integer(), body.student_id),
            "course_id": ProcedureParam(Integer(), body.course_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, conflict_message="Course is already assigned to this student")

    logger.info(f"Course {body.course_id} assigned to student {body.student_id}")
    return success_response(
        data={"studentId": body.student_id, "courseId": body.course_id},
        message="Course assigned to student successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/assign-course/{student_id}/{course_id}", dependencies=instructor_only)
async def remove_course_from_student(
    student_id: int,
    course_id: int,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    try:
        await gateway.execute("sp_remove_course_from_student", {
            "student_id": ProcedureParam(Integer(), student_id),
            "course_id": ProcedureParam(Integer(), course_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e)

    return success_response(message="Course removed from student successfully")


# =========================================
# Student records
# =========================================

@router.put("/{student_id}", dependencies=instructor_only)
async def update_student(
    student_id: int,
    body: StudentUpdateRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Replace a student's profile (Instructor only)"""
    if not body.name or not body.email or not body.date_of_birth or not body.track_id:
        raise InputValidationError("Please provide name, email, date of birth, and track ID")
    if not EMAIL_PATTERN.match(body.email):
        raise InputValidationError("Please provide a valid email address")

    try:
        await gateway.execute("sp_update_student", {
            "student_id": ProcedureParam(Integer(), student_id),
            "student_name": ProcedureParam(String(100), body.name),
            "student_email": ProcedureParam(String(100), body.email),
            "date_of_birth": ProcedureParam(Date(), parse_date(body.date_of_birth)),
            "tr_id": ProcedureParam(Integer(), body.track_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Student not found")

    return success_response(
        data={
            "id": student_id,
            "name": body.name,
            "email": body.email,
            "dateOfBirth": body.date_of_birth,
            "trackId": body.track_id,
        },
        message="Student updated successfully",
    )


@router.delete("/{student_id}", dependencies=instructor_only)
async def delete_student(student_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    try:
        await gateway.execute("sp_delete_student", {
            "student_id": ProcedureParam(Integer(), student_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Student not found")

    logger.info(f"Student deleted: {student_id}")
    return success_response(message="Student deleted successfully")
