from fastapi import APIRouter, Depends

from rumori.api.dependencies import get_services, require_user
from rumori.container import Services
from rumori.models import UserStats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=UserStats)
async def user_stats(_: str = Depends(require_user), services: Services = Depends(get_services)):
    return await services.stats.get_user_stats()
