"""
API module initialization
"""

from exam_api.api.routes import (
    auth_router,
    branches_router,
    tracks_router,
    branch_tracks_router,
    courses_router,
    instructor_course_router,
    students_router,
    questions_router,
    exams_router,
    health_router,
)

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
