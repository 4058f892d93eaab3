"""
Instructor Course API Routes
Course assignments, course topics and track assignments for instructors
"""

from typing import Dict
from urllib.parse import unquote

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, Unicode
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway, get_identity
from exam_api.api.responses import list_response, success_response
from exam_api.core.exceptions import ForbiddenError, InputValidationError, NotFoundError, ProcedureError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import (
    CourseTopicRequest,
    InstructorCourseRequest,
    InstructorTrackRequest,
    RequestIdentity,
    Role,
)
from exam_api.services.result_classifier import raise_for_procedure_error, require_rows

logger = logging.getLogger(__name__)

# Every route here is instructor-only
router = APIRouter(dependencies=[Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))])

# Procedures in this group report a refusal as a row {result: -1, message}
REFUSED = -1


def _course(row: dict) -> dict:
    return {
        "id": row.get("course_id"),
        "name": row.get("course_name"),
        "code": row.get("course_code"),
        "duration": row.get("duration"),
    }


# =========================================
# Current instructor
# =========================================

@router.get("/my-courses")
async def get_instructor_courses(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Courses taught by the logged-in instructor"""
    result = await gateway.execute("sp_get_instructor_courses", {
        "instructor_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = require_rows(result.recordset)
    if rows and rows[0].get("result") == REFUSED:
        raise NotFoundError(rows[0].get("message"))
    return list_response([_course(row) for row in rows])


@router.get("/my-courses-with-topics")
async def get_instructor_courses_with_topics(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Courses taught by the logged-in instructor, each with its topic names"""
    result = await gateway.execute("sp_get_instructor_courses_with_topics", {
        "instructor_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = require_rows(result.recordset)
    if rows and rows[0].get("result") == REFUSED:
        raise NotFoundError(rows[0].get("message"))

    # One row per (course, topic); fold into one entry per course, in first-seen order
    courses: Dict[int, dict] = {}
    for row in rows:
        course = courses.get(row.get("course_id"))
        if course is None:
            course = _course(row)
            course["topics"] = []
            courses[row.get("course_id")] = course
        if row.get("topic_name"):
            course["topics"].append(row["topic_name"])

    return list_response(list(courses.values()))


@router.get("/my-courses/{course_id}")
async def get_instructor_course_details(
    course_id: int,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Details of one of the instructor's courses

    The procedure returns two result sets: the course with its instructor,
    then the course topics.
    """
    result = await gateway.execute("sp_get_instructor_course_details", {
        "instructor_id": ProcedureParam(Integer(), identity.subject_id),
        "course_id": ProcedureParam(Integer(), course_id),
    })
    if not result.recordsets:
        raise NotFoundError("Course not found")

    details = result.recordsets[0]
    if details and details[0].get("result") == REFUSED:
        raise ForbiddenError(details[0].get("message"))
    if not details:
        raise NotFoundError("Course not found")

    course = details[0]
    topics = result.recordsets[1] if len(result.recordsets) > 1 else []

    data = _course(course)
    data["instructor"] = {
        "id": course.get("instructor_id"),
        "name": course.get("instructor_name"),
        "email": course.get("instructor_email"),
    }
    data["topics"] = [topic.get("topic_name") for topic in topics]
    return success_response(data=data)


# =========================================
# Assignments
# =========================================

@router.post("/assign-course", status_code=status.HTTP_201_CREATED)
async def assign_instructor_to_course(
    body: InstructorCourseRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    if not body.instructor_id or not body.course_id:
        raise InputValidationError("Please provide both instructor ID and course ID")

    try:
        await gateway.execute("sp_assign_instructor_to_course", {
            "instructor_id": ProcedureParam(Integer(), body.instructor_id),
            "course_id": ProcedureParam(Integer(), body.course_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, conflict_message="Instructor is already assigned to this course")

    logger.info(f"Instructor {body.instructor_id} assigned to course {body.course_id}")
    return success_response(
        data={"instructorId": body.instructor_id, "courseId": body.course_id},
        message="Instructor assigned to course successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/assign-course/{instructor_id}/{course_id}")
async def deassign_instructor_from_course(
    instructor_id: int,
    course_id: int,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    try:
        await gateway.execute("sp_deassign_instructor_to_course", {
            "instructor_id": ProcedureParam(Integer(), instructor_id),
            "course_id": ProcedureParam(Integer(), course_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e)

    return success_response(message="Instructor removed from course successfully")


@router.post("/assign-track", status_code=status.HTTP_201_CREATED)
async def assign_instructor_to_track(
    body: InstructorTrackRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    if not body.instructor_id or not body.track_id:
        raise InputValidationError("Please provide both instructor ID and track ID")

    try:
        await gateway.execute("sp_assign_instructor_to_track", {
            "instructor_id": ProcedureParam(Integer(), body.instructor_id),
            "track_id": ProcedureParam(Integer(), body.track_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, conflict_message="Instructor is already assigned to this track")

    logger.info(f"Instructor {body.instructor_id} assigned to track {body.track_id}")
    return success_response(
        data={"instructorId": body.instructor_id, "trackId": body.track_id},
        message="Instructor assigned to track successfully",
        status_code=status.HTTP_201_CREATED,
    )


# =========================================
# Course topics
# =========================================

@router.post("/course-topic", status_code=status.HTTP_201_CREATED)
async def add_course_topic(
    body: CourseTopicRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    if not body.course_id or not body.topic_name:
        raise InputValidationError("Please provide both course ID and topic name")

    try:
        await gateway.execute("sp_add_course_topic", {
            "course_id": ProcedureParam(Integer(), body.course_id),
            "topic_name": ProcedureParam(Unicode(150), body.topic_name),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e)

    return success_response(
        data={"courseId": body.course_id, "topicName": body.topic_name},
        message="Topic added to course successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.delete("/course-topic/{course_id}/{topic_name}")
async def delete_course_topic(
    course_id: int,
    topic_name: str,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    # Clients may double-encode topic names that contain reserved characters
    topic = unquote(topic_name)

    try:
        await gateway.execute("sp_delete_course_topic", {
            "course_id": ProcedureParam(Integer(), course_id),
            "topic_name": ProcedureParam(Unicode(150), topic),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e)

    return success_response(message="Topic removed from course successfully")
