"""
Exam API Routes
Generation, grading and finalization for instructors; taking and correcting for students
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, Unicode
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway, get_identity
from exam_api.api.responses import error_response, list_response, success_response
from exam_api.core.exceptions import AppError, InputValidationError, NotFoundError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import (
    ExamGenerateRequest,
    QuestionGradeRequest,
    RequestIdentity,
    Role,
    SubmitAnswersRequest,
)
from exam_api.services.exam_service import ExamService
from exam_api.services.result_classifier import (
    Outcome,
    classify_message,
    extract_message,
    require_first_row,
    require_rows,
)

logger = logging.getLogger(__name__)

router = APIRouter()

instructor_only = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))]
student_only = [Depends(authenticate), Depends(authorize(Role.STUDENT))]
any_role = [Depends(authenticate), Depends(authorize(Role.INSTRUCTOR, Role.STUDENT))]


def _choices(row: dict) -> dict:
    return {f"choice{i}": row.get(f"choice{i}") or None for i in range(1, 5)}


def _status_message(row: dict, column: str) -> str:
    message = extract_message(row, column, "message")
    if message is None:
        raise AppError("Unexpected response from database")
    return message


# =========================================
# Instructor routes
# =========================================

@router.post("/generate", dependencies=instructor_only, status_code=status.HTTP_201_CREATED)
async def generate_exam(
    body: ExamGenerateRequest,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Generate an exam by drawing random TF/MCQ questions from a course

    The procedure answers with a `Result` column on success; anything else
    is a refusal whose text is passed back to the client.
    """
    if not body.title or not body.type or not body.duration or not body.exam_grade or not body.course_id:
        raise InputValidationError(
            "Please provide title, type, duration, exam grade, and course ID"
        )
    if body.tf_count is None or body.mcq_count is None:
        raise InputValidationError("Please provide TF count and MCQ count")

    result = await gateway.execute("sp_exam_genration", {
        "title": ProcedureParam(Unicode(150), body.title),
        "type": ProcedureParam(Unicode(50), body.type),
        "exam_duration": ProcedureParam(Integer(), body.duration),
        "tf_count": ProcedureParam(Integer(), body.tf_count),
        "mcq_count": ProcedureParam(Integer(), body.mcq_count),
        "Exam_Grade": ProcedureParam(Integer(), body.exam_grade),
        "created_by": ProcedureParam(Integer(), identity.subject_id),
        "course_id": ProcedureParam(Integer(), body.course_id),
    })
    row = require_first_row(result.recordset)

    if not row.get("Result"):
        return error_response(extract_message(row) or "Exam generation failed", status.HTTP_400_BAD_REQUEST)

    logger.info(f"Exam {row.get('Exam_ID')} generated by instructor {identity.subject_id}")
    return success_response(
        data={
            "examId": row.get("Exam_ID"),
            "title": body.title,
            "type": body.type,
            "duration": body.duration,
            "tfCount": body.tf_count,
            "mcqCount": body.mcq_count,
            "examGrade": body.exam_grade,
            "courseId": body.course_id,
        },
        message=row["Result"],
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/instructor/my-exams", dependencies=instructor_only)
async def get_instructor_exams(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    result = await gateway.execute("sp_get_instructor_exams", {
        "instructor_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = require_rows(result.recordset)
    if rows and rows[0].get("message"):
        raise NotFoundError(rows[0]["message"])

    return list_response([
        {
            "id": row.get("exam_id"),
            "title": row.get("exam_title"),
            "type": row.get("exam_type"),
            "duration": row.get("exam_duration"),
            "grade": row.get("Exam_Grade"),
            "isFinalized": row.get("is_finalized"),
            "createdAt": row.get("created_at"),
            "courseName": row.get("course_name"),
            "questionsCount": row.get("questions_count"),
        }
        for row in rows
    ])


@router.post("/assign-grade", dependencies=instructor_only)
async def assign_question_grade(
    body: QuestionGradeRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Set the grade of one question within an exam"""
    if not body.exam_id or not body.question_id or body.question_grade is None:
        raise InputValidationError("Please provide exam ID, question ID, and question grade")

    result = await gateway.execute("sp_assign_question_grade", {
        "exam_id": ProcedureParam(Integer(), body.exam_id),
        "question_id": ProcedureParam(Integer(), body.question_id),
        "question_grade": ProcedureParam(Integer(), body.question_grade),
    })
    message = _status_message(require_first_row(result.recordset), "message")

    if classify_message(message) is not Outcome.SUCCESS:
        return error_response(message, status.HTTP_400_BAD_REQUEST)

    return success_response(
        data={
            "examId": body.exam_id,
            "questionId": body.question_id,
            "questionGrade": body.question_grade,
        },
        message=message,
    )


@router.get("/{exam_id}/validate", dependencies=instructor_only)
async def validate_exam_grade(exam_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Check that the question grades add up to the exam grade"""
    result = await gateway.execute("sp_validate_exam_grade", {
        "exam_id": ProcedureParam(Integer(), exam_id),
    })
    message = _status_message(require_first_row(result.recordset), "Result")

    if classify_message(message) in (Outcome.VALID, Outcome.SUCCESS):
        return success_response(message=message)
    return error_response(message, status.HTTP_400_BAD_REQUEST)


@router.post("/{exam_id}/finalize", dependencies=instructor_only)
async def finalize_exam(exam_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Lock an exam; the verdict is the last row the procedure returns"""
    result = await gateway.execute("sp_finalize_exam", {
        "exam_id": ProcedureParam(Integer(), exam_id),
    })
    rows = result.recordset
    if not rows:
        raise AppError("No response from database")
    message = _status_message(rows[-1], "Result")

    if classify_message(message) is Outcome.SUCCESS:
        logger.info(f"Exam finalized: {exam_id}")
        return success_response(message=message)
    return error_response(message, status.HTTP_400_BAD_REQUEST)


# =========================================
# Student routes
# =========================================

@router.get("/student/available", dependencies=student_only)
async def get_available_exams(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    result = await gateway.execute("sp_get_available_exams_for_student", {
        "student_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = require_rows(result.recordset)
    return list_response([
        {
            "id": row.get("exam_id"),
            "title": row.get("exam_title"),
            "type": row.get("exam_type"),
            "duration": row.get("exam_duration"),
            "grade": row.get("Exam_Grade"),
            "createdAt": row.get("created_at"),
            "createdBy": row.get("created_by_name"),
            "courseName": row.get("course_name"),
        }
        for row in rows
    ])


@router.get("/student/my-exams", dependencies=student_only)
async def get_student_exams(
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    result = await gateway.execute("sp_select_student_exams", {
        "student_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = require_rows(result.recordset)
    return list_response([
        {
            "id": row.get("exam_id"),
            "title": row.get("exam_title"),
            "grade": row.get("Exam_Grade"),
            "duration": row.get("exam_duration"),
            "isFinalized": row.get("is_finalized"),
            "createdBy": row.get("created_by"),
        }
        for row in rows
    ])


@router.post("/student/submit-answers", dependencies=student_only, status_code=status.HTTP_201_CREATED)
async def submit_exam_answers(
    body: SubmitAnswersRequest,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Submit all answers of an exam at once

    Returns:
        201 when every answer is stored, 207 when only some are,
        400 when none are. Stored answers are kept in every case.
    """
    if not body.exam_id or not body.answers:
        raise InputValidationError("Please provide exam ID and an array of answers")
    for answer in body.answers:
        if not answer.question_id or not answer.student_answer:
            raise InputValidationError("Each answer must have questionId and studentAnswer")

    outcome = await ExamService(gateway).submit_answers(
        body.exam_id, identity.subject_id, body.answers
    )
    errors = [failure.to_dict() for failure in outcome.errors]

    data: dict = {
        "examId": outcome.exam_id,
        "totalAnswers": outcome.total,
        "successCount": outcome.success_count,
    }
    if outcome.all_succeeded:
        return success_response(
            data=data,
            message=f"All {outcome.success_count} answers submitted successfully",
            status_code=status.HTTP_201_CREATED,
        )
    if outcome.partially_succeeded:
        data["errors"] = errors
        return success_response(
            data=data,
            message=f"{outcome.success_count} answers submitted, {len(errors)} failed",
            status_code=status.HTTP_207_MULTI_STATUS,
        )
    return error_response("Failed to submit answers", status.HTTP_400_BAD_REQUEST, errors=errors)


@router.get("/student/{exam_id}/correct", dependencies=student_only)
async def correct_exam(
    exam_id: int,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Grade the student's answers and return the per-question breakdown"""
    result = await gateway.execute("exam_correction", {
        "exam_id": ProcedureParam(Integer(), exam_id),
        "student_id": ProcedureParam(Integer(), identity.subject_id),
    })
    rows = result.recordset
    if not rows:
        raise NotFoundError("No exam data found")

    questions = []
    for row in rows:
        question: dict = {
            "questionId": row.get("question_id"),
            "questionText": row.get("question_text"),
            "questionType": row.get("question_type"),
        }
        question.update(_choices(row))
        question.update({
            "correctAnswer": row.get("correct_ans"),
            "studentAnswer": row.get("student_answer"),
            "result": row.get("result"),
        })
        questions.append(question)

    return success_response(
        data={"finalGrade": rows[0].get("final_grade"), "questions": questions},
        message="Exam corrected successfully",
    )


# =========================================
# Shared routes
# =========================================

@router.get("/{exam_id}/questions", dependencies=any_role)
async def get_exam_questions(
    exam_id: int,
    identity: RequestIdentity = Depends(get_identity),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """Questions of an exam; per-question grades are only shown to instructors"""
    result = await gateway.execute("sp_select_exam_question", {
        "exam_id": ProcedureParam(Integer(), exam_id),
    })
    rows = result.recordset
    if not rows:
        raise NotFoundError("No questions found for this exam")

    show_grades = identity.role is Role.INSTRUCTOR
    questions = []
    for row in rows:
        question: dict = {
            "questionId": row.get("question_id"),
            "questionText": row.get("question_text"),
            "questionType": row.get("question_type"),
        }
        if show_grades:
            question["questionGrade"] = row.get("question_grade")
        question.update(_choices(row))
        questions.append(question)

    return list_response(questions)
