"""
API Routes initialization
"""

from exam_api.api.routes.auth import router as auth_router
from exam_api.api.routes.branches import router as branches_router
from exam_api.api.routes.tracks import router as tracks_router
from exam_api.api.routes.branch_tracks import router as branch_tracks_router
from exam_api.api.routes.courses import router as courses_router
from exam_api.api.routes.instructor_course import router as instructor_course_router
from exam_api.api.routes.students import router as students_router
from exam_api.api.routes.questions import router as questions_router
from exam_api.api.routes.exams import router as exams_router
from exam_api.api.routes.health import router as health_router

__all__ = [
    "auth_router",
    "branches_router",
    "tracks_router",
    "branch_tracks_router",
    "courses_router",
    "instructor_course_router",
    "students_router",
    "questions_router",
    "exams_router",
    "health_router",
]
