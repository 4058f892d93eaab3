"""
Authentication API Routes
Registration, login, profile and password changes for students and instructors
"""

from datetime import date
from typing import Any, Dict, Optional
import logging
import re

from fastapi import APIRouter, Depends, status
from sqlalchemy.types import Date, Integer, String

from exam_api.api.deps import authenticate, get_gateway
from exam_api.api.responses import success_response
from exam_api.core.exceptions import (
    AppError,
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
)
from exam_api.core.rate_limit import enforce_auth_rate_limit
from exam_api.core.security import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    get_password_hash,
    password_too_long,
    verify_password,
)
from exam_api.db.gateway import ProcedureGateway, ProcedureParam, ProcedureResult
from exam_api.schemas import (
    AuthPayload,
    ChangePasswordRequest,
    InstructorRegisterRequest,
    LoginRequest,
    RequestIdentity,
    Role,
    StudentRegisterRequest,
    UserSummary,
)
from exam_api.services.result_classifier import Outcome, classify_message

logger = logging.getLogger(__name__)

# Failed responses on any auth route count towards this limit, see main.py
router = APIRouter(dependencies=[Depends(enforce_auth_rate_limit)])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def _validate_credentials(email: str, password: str) -> None:
    if not EMAIL_PATTERN.match(email):
        raise InputValidationError("Please provide a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if password_too_long(password):
        raise InputValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")


def parse_date(value: str, field_name: str = "date of birth") -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise InputValidationError(f"Please provide a valid {field_name}")


def _issue_token(user: Dict[str, Any]) -> Dict[str, Any]:
    role = Role.parse(user["role"])
    token = create_access_token(user["user_id"], role)
    payload = AuthPayload(
        token=token,
        user=UserSummary(
            id=user["user_id"],
            name=user.get("full_name"),
            email=user.get("email"),
            role=role.value,
        ),
    )
    return payload.model_dump()


def _registration_result(result: ProcedureResult) -> Dict[str, Any]:
    data = result.first()
    if data is None:
        raise AppError("No response from database")
    # result == -1 signals a rejected registration (e.g. duplicate email)
    if data.get("result") == -1:
        message = data.get("message") or "Registration failed"
        if classify_message(message) is Outcome.CONFLICT:
            raise ConflictError(message)
        raise InputValidationError(message)
    return data


# ============================================
# Registration
# ============================================

@router.post("/add-user/student", status_code=status.HTTP_201_CREATED)
async def add_user_student(
    body: StudentRegisterRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Register a student and return a token for the new account
    """
    if not (body.name and body.email and body.password and body.date_of_birth and body.track_id):
        raise InputValidationError(
            "Please provide name, email, password, date of birth, and track ID"
        )
    _validate_credentials(body.email, body.password)
    date_of_birth = parse_date(body.date_of_birth)

    result = await gateway.execute("sp_add_user_student", {
        "student_name": ProcedureParam(String(100), body.name),
        "student_email": ProcedureParam(String(100), body.email),
        "password": ProcedureParam(String(255), get_password_hash(body.password)),
        "date_of_birth": ProcedureParam(Date(), date_of_birth),
        "tr_id": ProcedureParam(Integer(), body.track_id),
        "phone": ProcedureParam(String(20), body.phone or None),
        "address": ProcedureParam(String(255), body.address or None),
    })
    data = _registration_result(result)

    logger.info(f"Student registered: {data.get('email')}")
    return success_response(
        data=_issue_token(data),
        message="Student added successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/add-user/instructor", status_code=status.HTTP_201_CREATED)
async def add_user_instructor(
    body: InstructorRegisterRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Register an instructor and return a token for the new account
    """
    if not (body.name and body.email and body.password and body.date_of_birth):
        raise InputValidationError(
            "Please provide name, email, password, and date of birth"
        )
    _validate_credentials(body.email, body.password)
    date_of_birth = parse_date(body.date_of_birth)

    result = await gateway.execute("sp_add_user_instructor", {
        "instructor_name": ProcedureParam(String(100), body.name),
        "instructor_email": ProcedureParam(String(100), body.email),
        "password": ProcedureParam(String(255), get_password_hash(body.password)),
        "date_of_birth": ProcedureParam(Date(), date_of_birth),
        "phone": ProcedureParam(String(20), body.phone or None),
        "specialization": ProcedureParam(String(100), body.specialization or None),
    })
    data = _registration_result(result)

    logger.info(f"Instructor registered: {data.get('email')}")
    return success_response(
        data=_issue_token(data),
        message="Instructor added successfully",
        status_code=status.HTTP_201_CREATED,
    )


# ============================================
# Login
# ============================================

@router.post("/login")
async def login(
    body: LoginRequest,
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Login for students and instructors
    """
    if not body.email or not body.password:
        raise InputValidationError("Please provide email and password")

    def reject() -> AppError:
        return AppError("Invalid email or password", status_code=status.HTTP_401_UNAUTHORIZED)

    result = await gateway.execute("sp_login", {
        "email": ProcedureParam(String(100), body.email),
    })
    user = result.first()
    if user is None:
        raise reject()

    if not user.get("is_active"):
        raise ForbiddenError("Your account has been deactivated. Please contact support.")

    if not verify_password(body.password, user.get("password") or ""):
        logger.warning(f"Failed login for {body.email}")
        raise reject()

    return success_response(data=_issue_token(user), message="Login successful")


# ============================================
# Profile
# ============================================

@router.get("/me")
async def get_profile(
    identity: RequestIdentity = Depends(authenticate),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Profile of the authenticated user, without the password hash
    """
    profile: Optional[Dict[str, Any]]
    if identity.role is Role.STUDENT:
        result = await gateway.execute("sp_select_students")
        rows = result.recordset or []
        profile = next((s for s in rows if s.get("student_id") == identity.subject_id), None)
        if profile is None:
            raise NotFoundError("Student not found")
    else:
        result = await gateway.execute("sp_select_instructor", {
            "id": ProcedureParam(Integer(), identity.subject_id),
        })
        profile = result.first()
        if profile is None:
            raise NotFoundError("User not found")

    profile = {key: value for key, value in profile.items() if key != "password"}
    return success_response(data=profile)


@router.put("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    identity: RequestIdentity = Depends(authenticate),
    gateway: ProcedureGateway = Depends(get_gateway),
):
    """
    Change the authenticated user's password after checking the current one
    """
    if not body.current_password or not body.new_password:
        raise InputValidationError("Please provide current password and new password")
    if len(body.new_password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if password_too_long(body.new_password):
        raise InputValidationError(
            f"New password must be at most {MAX_PASSWORD_BYTES} bytes long"
        )

    kind = "student" if identity.role is Role.STUDENT else "instructor"
    result = await gateway.execute(f"sp_get_{kind}_password", {
        "id": ProcedureParam(Integer(), identity.subject_id),
    })
    user = result.first()
    if user is None:
        raise NotFoundError("User not found")

    if not verify_password(body.current_password, user.get("password") or ""):
        raise AppError("Current password is incorrect", status_code=status.HTTP_401_UNAUTHORIZED)

    await gateway.execute(f"sp_update_{kind}_password", {
        "id": ProcedureParam(Integer(), identity.subject_id),
        "password": ProcedureParam(String(255), get_password_hash(body.new_password)),
    })

    logger.info(f"Password changed for {kind} {identity.subject_id}")
    return success_response(message="Password changed successfully")
