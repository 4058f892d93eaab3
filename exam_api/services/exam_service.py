"""
Exam Service
Answer submission for students, one stored procedure call per answer
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from sqlalchemy.types import Integer, Unicode

from exam_api.core.exceptions import GatewayError
from exam_api.db.gateway import ProcedureGateway, ProcedureParam
from exam_api.schemas import AnswerItem

logger = logging.getLogger(__name__)


@dataclass
class AnswerFailure:
    question_id: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"questionId": self.question_id, "error": self.error}


@dataclass
class SubmissionOutcome:
    """
    Per-answer results of a batch submission

    The batch is not atomic: answers that succeeded stay stored even when
    others in the same batch fail.
    """
    exam_id: int
    total: int
    success_count: int = 0
    errors: List[AnswerFailure] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.errors

    @property
    def partially_succeeded(self) -> bool:
        return bool(self.errors) and self.success_count > 0


class ExamService:
    """Student-side exam operations that span several procedure calls"""

    def __init__(self, gateway: ProcedureGateway):
        self.gateway = gateway

    async def submit_answers(
        self,
        exam_id: int,
        student_id: int,
        answers: Sequence[AnswerItem],
    ) -> SubmissionOutcome:
        """
        Submit each answer in order and record its outcome

        An answer fails when the procedure's message does not report success
        or when the call itself raises.
        """
        outcome = SubmissionOutcome(exam_id=exam_id, total=len(answers))

        for answer in answers:
            try:
                result = await self.gateway.execute("sp_submit_exam_answers", {
                    "exam_id": ProcedureParam(Integer(), exam_id),
                    "student_id": ProcedureParam(Integer(), student_id),
                    "question_id": ProcedureParam(Integer(), answer.question_id),
                    "student_answer": ProcedureParam(Unicode(255), answer.student_answer),
                })
            except GatewayError as e:
                outcome.errors.append(AnswerFailure(answer.question_id, e.detail or e.message))
                continue

            row = result.first()
            message = next(iter(row.values()), None) if row else None
            if isinstance(message, str) and "successfully" not in message:
                outcome.errors.append(AnswerFailure(answer.question_id, message))
            else:
                outcome.success_count += 1

        logger.info(
            f"Student {student_id} submitted exam {exam_id}: "
            f"{outcome.success_count}/{outcome.total} answers stored"
        )
        return outcome
