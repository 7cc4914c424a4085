from fastapi import APIRouter, status

from app.schemas.my_base_model import CustomBaseModel

router = APIRouter()
group_tags = ["Health"]


class HealthCheck(CustomBaseModel):
    status: str = "oke"


@router.get(
    "/health",
    tags=group_tags,
    response_model=HealthCheck,
    status_code=status.HTTP_200_OK,
)
def get_health() -> HealthCheck:
    """Liveness probe, no authentication."""
    return HealthCheck(status="oke")
