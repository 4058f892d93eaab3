"""
Request dependencies: gateway injection, authentication and authorization
"""

from typing import Callable, Optional

from fastapi import Request
import logging

from exam_api.core.exceptions import (
    AuthenticationError,
    AuthInternalError,
    ForbiddenError,
    UnauthenticatedError,
)
from exam_api.core.security import decode_access_token, extract_bearer_token
from exam_api.db.gateway import ProcedureGateway
from exam_api.schemas import RequestIdentity, Role

logger = logging.getLogger(__name__)


def get_gateway(request: Request) -> ProcedureGateway:
    """Gateway owned by the application"""
    return request.app.state.gateway


async def authenticate(request: Request) -> RequestIdentity:
    """
    Validate the bearer token and attach the identity to the request

    Raises:
        MissingCredentialError / InvalidCredentialError /
        ExpiredCredentialError: rejected credential (401)
        AuthInternalError: malformed token or unexpected failure (500)
    """
    try:
        token = extract_bearer_token(request.headers.get("Authorization"))
        identity = decode_access_token(token)
    except AuthenticationError:
        raise
    except Exception as e:
        logger.error(f"Authentication error: {e}", exc_info=True)
        raise AuthInternalError(detail=str(e)) from e

    request.state.identity = identity
    return identity


def get_identity(request: Request) -> RequestIdentity:
    """Identity attached by `authenticate`"""
    identity: Optional[RequestIdentity] = getattr(request.state, "identity", None)
    if identity is None:
        logger.error(f"Authorization ran before authentication on {request.url.path}")
        raise UnauthenticatedError()
    return identity


def authorize(*allowed_roles: Role) -> Callable[[Request], RequestIdentity]:
    """
    Build a dependency that admits only the given roles

    Must be listed after `authenticate` in a route's dependencies.
    """
    allowed = tuple(Role.parse(role) for role in allowed_roles)
    names = ", ".join(role.value for role in allowed)

    def check_role(request: Request) -> RequestIdentity:
        identity = get_identity(request)
        if identity.role not in allowed:
            raise ForbiddenError(
                f"Access denied. Only {names} can access this resource."
            )
        return identity

    return check_role
