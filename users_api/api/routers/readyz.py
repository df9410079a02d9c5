from fastapi import APIRouter

from users_api import db
from users_api.schemas.common import ErrorResponse, OkResponse
from users_api.services.health import HealthService

router = APIRouter(prefix="/readyz", tags=["health"])


@router.get(
    "",
    response_model=OkResponse,
    summary="Readiness probe",
    description="Runs SELECT 1 against the database (503 when unreachable)",
    responses={503: {"model": ErrorResponse}},
)
async def readyz():
    async with db.SessionLocal() as session:
        svc = HealthService(session)
        return await svc.ok()
