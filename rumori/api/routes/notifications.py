from typing import List

from fastapi import APIRouter, Depends

from rumori.api.dependencies import get_services, require_user
from rumori.container import Services
from rumori.models import NotificationItem

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationItem])
async def list_notifications(_: str = Depends(require_user), services: Services = Depends(get_services)):
    """Uploads and received feedback, newest first."""
    return await services.notifications.get_notifications()
