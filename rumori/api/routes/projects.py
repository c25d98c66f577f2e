"""
Project routes: upload, listing, owner edits and deletion.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from rumori.api.dependencies import get_services, require_user
from rumori.api.schemas import ProjectUpdate
from rumori.container import Services
from rumori.logger import get_logger
from rumori.models import Project
from rumori.services.project_service import MediaUpload

logger = get_logger("project_routes")
router = APIRouter(prefix="/projects", tags=["projects"])


async def _to_upload(file: Optional[UploadFile]) -> Optional[MediaUpload]:
    if file is None or not file.filename:
        return None
    return MediaUpload(filename=file.filename, data=await file.read(), content_type=file.content_type)


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def upload_project(
    title: str = Form(..., description="Project title"),
    description: Optional[str] = Form(None, description="Project description"),
    image: Optional[UploadFile] = File(None, description="Optional cover image"),
    audio: Optional[UploadFile] = File(None, description="Optional audio file"),
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    """
    Upload a project.

    Stores the image (compressed to JPEG) and the audio file first, then
    creates the record. Stored files are removed again if the record
    cannot be created.
    """
    return await services.projects.upload_project(
        title=title,
        description=description,
        image=await _to_upload(image),
        audio=await _to_upload(audio),
    )


@router.get("", response_model=List[Project])
async def list_my_projects(_: str = Depends(require_user), services: Services = Depends(get_services)):
    return await services.projects.get_projects()


@router.get("/review", response_model=List[Project])
async def list_projects_for_review(_: str = Depends(require_user), services: Services = Depends(get_services)):
    """Other users' projects waiting for feedback."""
    return await services.projects.get_projects_for_review()


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str, services: Services = Depends(get_services)):
    return await services.projects.get_project(project_id)


@router.get("/{project_id}/media")
async def get_project_media(project_id: str, services: Services = Depends(get_services)):
    """Public URLs of the project's stored files."""
    project = await services.projects.get_project(project_id)
    return {
        "project_id": project.id,
        "file_type": project.file_type,
        "image_url": services.projects.get_public_url(project.image_path),
        "audio_url": services.projects.get_public_url(project.audio_path),
    }


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Apply owner edits one field at a time."""
    project = None
    if data.title is not None:
        project = await services.projects.update_project_title(project_id, data.title)
    if "description" in data.model_fields_set:
        project = await services.projects.update_project_description(project_id, data.description)
    if data.status is not None:
        project = await services.projects.update_project_status(project_id, data.status)
    if project is None:
        project = await services.projects.get_owned_project(project_id)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    await services.projects.delete_project(project_id)
