"""
Authentication routes: sign-in, sign-up, session state and profile edits.
"""
from fastapi import APIRouter, Depends, File, UploadFile, status

from rumori.api.dependencies import get_session, require_user
from rumori.api.schemas import (
    AuthStateResponse, PasswordResetRequest, ProfileUpdate, SignInRequest,
    SignUpRequest, UsernameAvailability,
)
from rumori.exceptions import NotFoundError
from rumori.logger import get_logger
from rumori.models import Profile, User
from rumori.session import SessionProvider

logger = get_logger("auth_routes")
router = APIRouter(prefix="/auth", tags=["authentication"])


def _state_response(session: SessionProvider) -> AuthStateResponse:
    user = session.current_user
    return AuthStateResponse(
        state=session.auth_state.value,
        user_id=user.id if user else None,
        email=user.email if user else None,
        username=user.username if user else None,
    )


@router.post("/sign-in", response_model=User)
async def sign_in(credentials: SignInRequest, session: SessionProvider = Depends(get_session)):
    """Authenticate with email and password."""
    return await session.sign_in(credentials.email, credentials.password)


@router.post("/sign-up", response_model=AuthStateResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(data: SignUpRequest, session: SessionProvider = Depends(get_session)):
    """Register a new account; the state tells whether email verification is pending."""
    await session.sign_up(data.email, data.password, data.username)
    return _state_response(session)


@router.get("/state", response_model=AuthStateResponse)
async def auth_state(session: SessionProvider = Depends(get_session)):
    """Re-check the persisted session."""
    await session.check_auth_state()
    return _state_response(session)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(session: SessionProvider = Depends(get_session)):
    await session.sign_out()


@router.post("/reset-password", status_code=status.HTTP_202_ACCEPTED)
async def reset_password(data: PasswordResetRequest, session: SessionProvider = Depends(get_session)):
    await session.reset_password(data.email)
    return {"message": "If the account exists, a reset email is on its way"}


@router.get("/profile", response_model=Profile)
async def get_profile(
    user_id: str = Depends(require_user),
    session: SessionProvider = Depends(get_session),
):
    profile = await session.fetch_profile(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


@router.patch("/profile", response_model=Profile)
async def update_profile(
    data: ProfileUpdate,
    user_id: str = Depends(require_user),
    session: SessionProvider = Depends(get_session),
):
    """Apply username and bio edits, then return the re-fetched profile."""
    profile = None
    if data.username is not None:
        profile = await session.update_username(data.username)
    if "bio" in data.model_fields_set:
        profile = await session.update_bio(data.bio)
    if profile is None:
        profile = await get_profile(user_id, session)
    return profile


@router.post("/profile/image", response_model=Profile)
async def upload_profile_image(
    image: UploadFile = File(..., description="New profile picture"),
    _: str = Depends(require_user),
    session: SessionProvider = Depends(get_session),
):
    data = await image.read()
    return await session.upload_profile_image(
        data,
        filename=image.filename or "avatar.jpg",
        content_type=image.content_type or "image/jpeg",
    )


@router.get("/username-available", response_model=UsernameAvailability)
async def username_available(username: str, session: SessionProvider = Depends(get_session)):
    available = await session.check_username_availability(username)
    return UsernameAvailability(username=username, available=available)
