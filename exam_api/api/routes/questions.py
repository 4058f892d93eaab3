"""
Question Bank API Routes
MCQ and true/false questions with up to four choices
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Integer, Unicode, UnicodeText
import logging

from exam_api.api.deps import authenticate, authorize, get_gateway
from exam_api.api.responses import success_response
from exam_api.core.exceptions import InputValidationError, NotFoundError, ProcedureError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import QuestionRequest, QuestionType, Role
from exam_api.services.result_classifier import raise_for_procedure_error

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(authenticate), Depends(authorize(Role.INSTRUCTOR))])

MIN_MCQ_CHOICES = 2


def _validate_question(body: QuestionRequest) -> None:
    """Type must be MCQ or TF; MCQ needs at least two non-empty choices"""
    if body.question_type not in {t.value for t in QuestionType}:
        raise InputValidationError("Question type must be either 'MCQ' or 'TF'")
    if body.question_type == QuestionType.MCQ.value and len(body.choices) < MIN_MCQ_CHOICES:
        raise InputValidationError(f"MCQ questions must have at least {MIN_MCQ_CHOICES} choices")


def _question_params(body: QuestionRequest) -> dict:
    return {
        "question_text": ProcedureParam(UnicodeText(), body.question_text),
        "question_type": ProcedureParam(Unicode(50), body.question_type),
        "correct_ans": ProcedureParam(Unicode(255), body.correct_answer),
    }


def _choice_params(body: QuestionRequest) -> dict:
    return {
        f"choice{i}": ProcedureParam(Unicode(255), getattr(body, f"choice{i}") or None)
        for i in range(1, 5)
    }


def _response_choices(body: QuestionRequest):
    return body.choices if body.question_type == QuestionType.MCQ.value else None


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_question(body: QuestionRequest, gateway: ProcedureGateway = Depends(get_gateway)):
    """Add a question, with its choices when it is an MCQ"""
    if not body.question_text or not body.question_type or not body.correct_answer or not body.course_id:
        raise InputValidationError(
            "Please provide question text, type, correct answer, and course ID"
        )
    _validate_question(body)

    params = _question_params(body)
    params["course_id"] = ProcedureParam(Integer(), body.course_id)
    params.update(_choice_params(body))

    try:
        await gateway.execute("sp_add_question", params)
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Course not found")

    logger.info(f"Question added to course {body.course_id}")
    return success_response(
        data={
            "questionText": body.question_text,
            "questionType": body.question_type,
            "correctAnswer": body.correct_answer,
            "courseId": body.course_id,
            "choices": _response_choices(body),
        },
        message="Question added successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{question_id}")
async def get_question_details(question_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Question with its choices as a list (one row per choice)"""
    result = await gateway.execute("sp_get_question_details", {
        "question_id": ProcedureParam(Integer(), question_id),
    })
    rows = result.recordset
    if not rows:
        raise NotFoundError("Question not found")

    first = rows[0]
    return success_response(data={
        "id": first.get("question_id"),
        "text": first.get("question_text"),
        "type": first.get("question_type"),
        "correctAnswer": first.get("Correct_Ans"),
        "courseId": first.get("course_id"),
        "choices": [
            {"id": row["choice_id"], "text": row.get("choice_text")}
            for row in rows
            if row.get("choice_id")
        ],
    })


@router.get("/{question_id}/v2")
async def get_question_details_v2(question_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    """Question with its choices pivoted into choice1..choice4"""
    result = await gateway.execute("sp_get_question_details_v2", {
        "question_id": ProcedureParam(Integer(), question_id),
    })
    row = result.first()
    if row is None:
        raise NotFoundError("Question not found")

    data = {
        "id": row.get("question_id"),
        "text": row.get("question_text"),
        "type": row.get("question_type"),
        "correctAnswer": row.get("Correct_Ans"),
        "courseId": row.get("course_id"),
    }
    for i in range(1, 5):
        data[f"choice{i}"] = row.get(f"choice{i}") or None
    return success_response(data=data)


@router.put("/{question_id}")
async def update_question(
    question_id: int,
    body: QuestionRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    if not body.question_text or not body.question_type or not body.correct_answer:
        raise InputValidationError("Please provide question text, type, and correct answer")
    _validate_question(body)

    params = {"question_id": ProcedureParam(Integer(), question_id)}
    params.update(_question_params(body))
    params.update(_choice_params(body))

    try:
        await gateway.execute("sp_update_question", params)
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Question not found")

    return success_response(
        data={
            "id": question_id,
            "questionText": body.question_text,
            "questionType": body.question_type,
            "correctAnswer": body.correct_answer,
            "choices": _response_choices(body),
        },
        message="Question updated successfully",
    )


@router.delete("/{question_id}")
async def delete_question(question_id: int, gateway: ProcedureGateway = Depends(get_gateway)):
    try:
        await gateway.execute("sp_delete_question", {
            "question_id": ProcedureParam(Integer(), question_id),
        })
    except ProcedureError as e:
        raise_for_procedure_error(e, not_found_message="Question not found")

    logger.info(f"Question deleted: {question_id}")
    return success_response(message="Question deleted successfully")
