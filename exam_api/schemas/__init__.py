"""
Schemas module initialization
"""

from exam_api.schemas.schemas import (
    # Enums
    Role,
    QuestionType,
    # Identity
    RequestIdentity,
    # Auth
    LoginRequest,
    StudentRegisterRequest,
    InstructorRegisterRequest,
    ChangePasswordRequest,
    AuthPayload,
    UserSummary,
    # Branches / tracks / courses
    BranchRequest,
    TrackRequest,
    BranchTrackRequest,
    BranchTrackUpdateRequest,
    CourseRequest,
    InstructorCourseRequest,
    InstructorTrackRequest,
    CourseTopicRequest,
    # Students
    StudentUpdateRequest,
    StudentCourseRequest,
    # Questions / exams
    QuestionRequest,
    ExamGenerateRequest,
    QuestionGradeRequest,
    AnswerItem,
    SubmitAnswersRequest,
    # Health
    HealthCheckResponse,
)

__all__ = [
    "Role",
    "QuestionType",
    "RequestIdentity",
    "LoginRequest",
    "StudentRegisterRequest",
    "InstructorRegisterRequest",
    "ChangePasswordRequest",
    "AuthPayload",
    "UserSummary",
    "BranchRequest",
    "TrackRequest",
    "BranchTrackRequest",
    "BranchTrackUpdateRequest",
    "CourseRequest",
    "InstructorCourseRequest",
    "InstructorTrackRequest",
    "CourseTopicRequest",
    "StudentUpdateRequest",
    "StudentCourseRequest",
    "QuestionRequest",
    "ExamGenerateRequest",
    "QuestionGradeRequest",
    "AnswerItem",
    "SubmitAnswersRequest",
    "HealthCheckResponse",
]
