"""
Health Check Routes
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
import logging

from exam_api.api.deps import get_gateway
from exam_api.core.exceptions import GatewayError
from exam_api.db.gateway import ProcedureGateway
from exam_api.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthCheckResponse)
async def health_check(gateway: ProcedureGateway = Depends(get_gateway)):
    """
    Health check endpoint

    Reports whether the database pool can be obtained and answers a trivial
    query. Returns 503 when it cannot.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await gateway.ping()
    except GatewayError as e:
        logger.error(f"Database health check failed: {e.detail or e.message}")
        body = HealthCheckResponse(
            success=False,
            message="Service unavailable",
            timestamp=timestamp,
            database="disconnected",
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(),
        )

    return HealthCheckResponse(
        success=True,
        message="Server is running",
        timestamp=timestamp,
        database="connected",
    )
