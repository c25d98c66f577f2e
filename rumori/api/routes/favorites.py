from typing import List

from fastapi import APIRouter, Depends

from rumori.api.dependencies import get_services, require_user
from rumori.api.schemas import FavoriteStatus
from rumori.container import Services
from rumori.models import Project

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("", response_model=List[Project])
async def list_favorites(_: str = Depends(require_user), services: Services = Depends(get_services)):
    return await services.favorites.get_favorite_projects()


@router.get("/{project_id}", response_model=FavoriteStatus)
async def favorite_status(
    project_id: str,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    favorited = await services.favorites.is_project_favorited(project_id)
    return FavoriteStatus(project_id=project_id, favorited=favorited)


@router.post("/{project_id}/toggle", response_model=FavoriteStatus)
async def toggle_favorite(
    project_id: str,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    favorited = await services.favorites.toggle_favorite(project_id)
    return FavoriteStatus(project_id=project_id, favorited=favorited)
