"""
Feedback routes: reviews, seen tracking and helpful ratings.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from rumori.api.dependencies import get_services, require_user
from rumori.api.schemas import (
    FeedbackCreate, HelpfulRatingUpdate, SeenResponse, UnreadCountResponse,
)
from rumori.container import Services
from rumori.models import Feedback

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=Feedback, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    data: FeedbackCreate,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Review someone else's project; earns the review reward."""
    return await services.feedback.submit_feedback(data.project_id, data.comment)


@router.get("/mine", response_model=List[Feedback])
async def my_feedback(user_id: str = Depends(require_user), services: Services = Depends(get_services)):
    return await services.feedback.get_feedback_by_user(user_id)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(_: str = Depends(require_user), services: Services = Depends(get_services)):
    return UnreadCountResponse(unread=await services.feedback.get_unread_feedback_count())


@router.get("/project/{project_id}", response_model=List[Feedback])
async def feedback_for_project(project_id: str, services: Services = Depends(get_services)):
    return await services.feedback.get_feedback_for_project(project_id)


@router.post("/project/{project_id}/seen", response_model=SeenResponse)
async def mark_project_feedback_seen(
    project_id: str,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    marked = await services.feedback.mark_project_feedback_seen(project_id)
    return SeenResponse(marked=marked, unread=services.feedback.unread_count)


@router.post("/{feedback_id}/seen", status_code=status.HTTP_204_NO_CONTENT)
async def mark_feedback_seen(
    feedback_id: str,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    await services.feedback.mark_feedback_as_seen(feedback_id)


@router.put("/{feedback_id}/rating", response_model=Feedback)
async def rate_feedback(
    feedback_id: str,
    data: HelpfulRatingUpdate,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    return await services.feedback.update_helpful_rating(feedback_id, data.rating)
