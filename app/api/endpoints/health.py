from fastapi import status

from app.core.router_decorated import APIRouter
from app.schemas.my_base_model import CustomBaseModel

router = APIRouter()


class HealthCheck(CustomBaseModel):
    status: str = "oke"


@router.get(
    "/health",
    tags=["Health"],
    response_model=HealthCheck,
    status_code=status.HTTP_200_OK,
)
def get_health() -> HealthCheck:
    return HealthCheck(status="oke")
