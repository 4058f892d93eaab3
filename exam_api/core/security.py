"""
Security utilities for JWT token management and password hashing
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import logging

from exam_api.core.config import settings
from exam_api.core.exceptions import (
    AuthInternalError,
    ExpiredCredentialError,
    InvalidCredentialError,
    MissingCredentialError,
)
from exam_api.schemas import RequestIdentity, Role

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
# bcrypt only hashes this many bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


def create_access_token(
    subject_id: int,
    role: Role,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed JWT carrying the user id and role

    Args:
        subject_id: Student or instructor id
        role: Role of the subject
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    to_encode: Dict[str, Any] = {
        "userId": subject_id,
        "role": Role.parse(role).value,
        "iat": now,
        "exp": now + expires_delta,
    }

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an Authorization header value

    Raises:
        MissingCredentialError: header absent, wrong scheme or empty token
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingCredentialError()

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MissingCredentialError("Access denied. Invalid token format.")
    return token


def decode_access_token(token: str) -> RequestIdentity:
    """
    Verify a JWT and decode the identity it carries

    Args:
        token: JWT token string

    Returns:
        RequestIdentity with the subject id and normalized role

    Raises:
        InvalidCredentialError: signature mismatch
        ExpiredCredentialError: token past its expiry
        AuthInternalError: malformed token or claims
    """
    try:
        jwt.get_unverified_header(token)
    except JWTError as e:
        logger.warning(f"Malformed token rejected: {e}")
        raise AuthInternalError(detail=str(e))

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except ExpiredSignatureError:
        raise ExpiredCredentialError()
    except JWTError as e:
        raise InvalidCredentialError(detail=str(e))

    subject_id = payload.get("userId")
    if not isinstance(subject_id, int) or isinstance(subject_id, bool):
        raise AuthInternalError(detail="Token is missing a numeric userId claim")

    try:
        role = Role.parse(payload.get("role"))
    except ValueError as e:
        raise AuthInternalError(detail=str(e))

    return RequestIdentity(subject_id=subject_id, role=role)


def password_too_long(password: str) -> bool:
    return len(password.encode('utf-8')) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        if password_too_long(plain_password):
            return False
        password_bytes = plain_password.encode('utf-8')
        hash_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except (ValueError, TypeError, AttributeError):
        return False


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')
