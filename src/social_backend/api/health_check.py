"""Health check API endpoints."""

from fastapi import APIRouter, Depends
from loguru import logger

from social_backend.api.dependencies import service
from social_backend.services.health_check_service import HealthCheckResult, HealthCheckService

router = APIRouter(tags=["System"])

# Define the dependencies as module-level variables
health_service_dependency = Depends(service(HealthCheckService))


@router.get("/health-check", response_model=HealthCheckResult)
async def health_check(health_service: HealthCheckService = health_service_dependency) -> HealthCheckResult:
    """
    Health check endpoint.

    Returns:
        HealthCheckResult: Broker connection state and cache reachability.
    """
    logger.debug("Health check requested")
    return await health_service.perform_health_check()
