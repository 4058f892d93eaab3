"""
Pydantic Schemas for API Request Validation and Identity
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any
from dataclasses import dataclass
from enum import Enum


# ============================================
# Enums
# ============================================

class Role(str, Enum):
    STUDENT = "Student"
    INSTRUCTOR = "Instructor"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Case-insensitive lookup; raises ValueError for unknown roles"""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for role in cls:
            if role.value.lower() == text:
                return role
        raise ValueError(f"Unknown role: {value!r}")


class QuestionType(str, Enum):
    MCQ = "MCQ"
    TF = "TF"


# ============================================
# Identity
# ============================================

@dataclass(frozen=True)
class RequestIdentity:
    """Identity decoded from a bearer token, scoped to one request"""
    subject_id: int
    role: Role


# ============================================
# Request bodies
# ============================================
# Fields are optional so that missing values reach the route handlers,
# which answer with the enumerated validation messages.

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class StudentRegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    date_of_birth: Optional[str] = None
    track_id: Optional[int] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class InstructorRegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    date_of_birth: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class BranchRequest(CamelModel):
    name: Optional[str] = None


class TrackRequest(CamelModel):
    name: Optional[str] = None
    manager_id: Optional[int] = None


class BranchTrackRequest(CamelModel):
    branch_id: Optional[int] = None
    track_id: Optional[int] = None


class BranchTrackUpdateRequest(CamelModel):
    new_branch_id: Optional[int] = None
    new_track_id: Optional[int] = None


class CourseRequest(CamelModel):
    name: Optional[str] = None
    code: Optional[str] = None
    duration: Optional[int] = None


class InstructorCourseRequest(CamelModel):
    instructor_id: Optional[int] = None
    course_id: Optional[int] = None


class InstructorTrackRequest(CamelModel):
    instructor_id: Optional[int] = None
    track_id: Optional[int] = None


class CourseTopicRequest(CamelModel):
    course_id: Optional[int] = None
    topic_name: Optional[str] = None


class StudentUpdateRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[str] = None
    track_id: Optional[int] = None


class StudentCourseRequest(CamelModel):
    student_id: Optional[int] = None
    course_id: Optional[int] = None


class QuestionRequest(CamelModel):
    question_text: Optional[str] = None
    question_type: Optional[str] = None
    correct_answer: Optional[str] = None
    course_id: Optional[int] = None
    choice1: Optional[str] = None
    choice2: Optional[str] = None
    choice3: Optional[str] = None
    choice4: Optional[str] = None

    @property
    def choices(self) -> List[str]:
        return [c for c in (self.choice1, self.choice2, self.choice3, self.choice4) if c]


class ExamGenerateRequest(CamelModel):
    title: Optional[str] = None
    type: Optional[str] = None
    duration: Optional[int] = None
    tf_count: Optional[int] = None
    mcq_count: Optional[int] = None
    exam_grade: Optional[int] = None
    course_id: Optional[int] = None


class QuestionGradeRequest(CamelModel):
    exam_id: Optional[int] = None
    question_id: Optional[int] = None
    question_grade: Optional[int] = None


class AnswerItem(CamelModel):
    question_id: Optional[int] = None
    student_answer: Optional[str] = None


class SubmitAnswersRequest(CamelModel):
    exam_id: Optional[int] = None
    answers: Optional[List[AnswerItem]] = None


# ============================================
# Responses
# ============================================

class UserSummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    role: str


class AuthPayload(BaseModel):
    token: str
    user: UserSummary


class HealthCheckResponse(BaseModel):
    success: bool
    message: str
    timestamp: str
    database: str = Field(description="connected or disconnected")
