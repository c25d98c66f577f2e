"""
Session and identity provider.

Owns the authenticated user and their profile. Every resource service asks
this provider for the current user id.
"""
import asyncio
import re
from enum import Enum
from typing import Any, Optional

from rumori.backend import Backend, decode_one, first_row
from rumori.config import Settings, get_settings
from rumori.exceptions import (
    BackendError, ConflictError, EmailAlreadyExistsError, EmailNotVerifiedError,
    NotAuthenticatedError, RumoriError, ValidationError,
)
from rumori.logger import get_logger
from rumori.models import Profile, User
from rumori.scope import run_to_completion
from rumori.services.storage_service import IMAGE, StorageService
from rumori.state import (
    AUTH_STATE, CURRENT_PROFILE, CURRENT_USER, SESSION_SCOPED_KEYS, StateStore,
)
from rumori.utils import isoformat

logger = get_logger("session")

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_VERIFICATION = "pending_verification"
    AUTHENTICATED = "authenticated"


def validate_username(username: str) -> str:
    username = (username or "").strip()
    if not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "Username must be 3-30 characters: letters, numbers, '.', '_' or '-'"
        )
    return username


def _user_from_auth(auth_user: Any, fallback_username: Optional[str] = None) -> User:
    metadata = getattr(auth_user, "user_metadata", None) or {}
    email = getattr(auth_user, "email", None) or ""
    username = metadata.get("username") or fallback_username or (email.split("@")[0] if email else None)
    return User(
        id=str(auth_user.id),
        email=email,
        username=username,
        created_at=getattr(auth_user, "created_at", None),
    )


def _is_confirmed(auth_user: Any) -> bool:
    return getattr(auth_user, "email_confirmed_at", None) is not None


class SessionProvider:
    """Process-wide identity state, created once and shared by all services."""

    def __init__(
        self,
        backend: Backend,
        state: StateStore,
        storage: StorageService,
        settings: Optional[Settings] = None,
    ):
        self.backend = backend
        self.state = state
        self.storage = storage
        self.settings = settings or get_settings()
        self.state.set(AUTH_STATE, AuthState.UNAUTHENTICATED)

    # Current state
    @property
    def auth_state(self) -> AuthState:
        return self.state.get(AUTH_STATE, AuthState.UNAUTHENTICATED)

    @property
    def current_user(self) -> Optional[User]:
        return self.state.get(CURRENT_USER)

    @property
    def current_profile(self) -> Optional[Profile]:
        return self.state.get(CURRENT_PROFILE)

    @property
    def is_authenticated(self) -> bool:
        return self.auth_state == AuthState.AUTHENTICATED

    def require_user_id(self) -> str:
        """Current user id, or ``NotAuthenticatedError``."""
        user = self.current_user
        if not self.is_authenticated or user is None:
            raise NotAuthenticatedError("You need to sign in first")
        return user.id

    def _set_state(self, auth_state: AuthState, user: Optional[User] = None) -> None:
        if user is not None:
            self.state.set(CURRENT_USER, user)
        self.state.set(AUTH_STATE, auth_state)

    def _clear(self) -> None:
        self.state.reset(SESSION_SCOPED_KEYS)
        self.state.set(AUTH_STATE, AuthState.UNAUTHENTICATED)

    # Session lifecycle
    async def check_auth_state(self) -> AuthState:
        """Re-derive user and profile from the persisted session."""
        try:
            session = await self.backend.read(
                lambda: self.backend.auth.get_session(), name="get_session"
            )
            auth_user = getattr(session, "user", None) if session else None
            if auth_user is None:
                if self.auth_state == AuthState.PENDING_VERIFICATION:
                    logger.info("No session yet, still waiting for email verification")
                    return self.auth_state
                self._clear()
                return AuthState.UNAUTHENTICATED

            user = _user_from_auth(auth_user)
            if not _is_confirmed(auth_user):
                if self.auth_state == AuthState.PENDING_VERIFICATION:
                    self._set_state(AuthState.PENDING_VERIFICATION, user)
                    return self.auth_state
                logger.warning(f"Session for unconfirmed user {user.id} ignored")
                self._clear()
                return AuthState.UNAUTHENTICATED

            self.state.set(CURRENT_USER, user)
            await self._ensure_profile(user)
            self._set_state(AuthState.AUTHENTICATED)
            logger.info(f"Session restored for user: {user.id}")
            return AuthState.AUTHENTICATED

        except RumoriError as e:
            logger.error(f"Error checking auth state: {e.message}")
            self._clear()
            return AuthState.UNAUTHENTICATED

    async def sign_in(self, email: str, password: str) -> User:
        """Authenticate with email and password."""
        logger.info(f"Sign in attempt for email: {email}")
        response = await self.backend.write(
            lambda: self.backend.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
            name="sign_in",
        )
        auth_user = getattr(response, "user", None)
        if auth_user is None:
            raise BackendError("Sign in returned no user")
        if not _is_confirmed(auth_user):
            raise EmailNotVerifiedError("Please verify your email before signing in")

        user = _user_from_auth(auth_user)
        self.state.set(CURRENT_USER, user)
        try:
            await self._ensure_profile(user)
        except RumoriError as e:
            logger.warning(f"Signed in but profile could not be loaded: {e.message}")
        self._set_state(AuthState.AUTHENTICATED)
        logger.info(f"User signed in successfully: {user.id}")
        return user

    async def sign_up(self, email: str, password: str, username: str) -> AuthState:
        """Register a new account; local state only changes on success."""
        username = validate_username(username)
        logger.info(f"Sign up attempt for email: {email}")
        response = await self.backend.write(
            lambda: self.backend.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"username": username}},
            }),
            name="sign_up",
        )
        auth_user = getattr(response, "user", None)
        if auth_user is None:
            raise BackendError("Sign up returned no user")

        # An already registered email comes back as a user without identities
        identities = getattr(auth_user, "identities", None)
        if identities is not None and len(identities) == 0:
            raise EmailAlreadyExistsError("An account with this email already exists")

        user = _user_from_auth(auth_user, fallback_username=username)
        if not _is_confirmed(auth_user):
            logger.info(f"User {user.id} needs email verification")
            self._set_state(AuthState.PENDING_VERIFICATION, user)
            return AuthState.PENDING_VERIFICATION

        self.state.set(CURRENT_USER, user)
        try:
            await self._ensure_profile(user)
        except RumoriError as e:
            logger.warning(f"Profile setup failed for new user {user.id}, signing out: {e.message}")
            try:
                await self.sign_out()
            except RumoriError as sign_out_error:
                logger.warning(f"Remote sign out failed: {sign_out_error.message}")
            raise
        self._set_state(AuthState.AUTHENTICATED)
        return AuthState.AUTHENTICATED

    async def sign_out(self) -> None:
        """Sign out remotely and drop every piece of session state."""
        try:
            await self.backend.write(lambda: self.backend.auth.sign_out(), name="sign_out")
        finally:
            self._clear()
            logger.info("Signed out, session state cleared")

    async def reset_password(self, email: str) -> None:
        await self.backend.write(
            lambda: self.backend.auth.reset_password_for_email(email), name="reset_password"
        )
        logger.info(f"Password reset requested for: {email}")

    # Profile
    async def fetch_profile(self, user_id: Optional[str] = None) -> Optional[Profile]:
        """Load a profile by id; publishes it when it is the current user's."""
        user_id = user_id or self.require_user_id()
        response = await self.backend.read(
            lambda: self.backend.table("profiles").select("*").eq("id", user_id).execute(),
            name="fetch_profile",
        )
        row = first_row(response)
        profile = decode_one(Profile, row) if row else None
        current = self.current_user
        if current is not None and current.id == user_id:
            if profile is None:
                self.state.clear(CURRENT_PROFILE)
            else:
                self.state.set(CURRENT_PROFILE, profile)
        return profile

    async def _ensure_profile(self, user: User) -> Profile:
        profile = await self.fetch_profile(user.id)
        if profile is not None:
            return profile

        logger.info(f"No profile found for {user.id}, creating one")
        now = isoformat()
        try:
            await self.backend.write(
                lambda: self.backend.table("profiles").insert({
                    "id": user.id,
                    "username": user.username,
                    "created_at": now,
                    "updated_at": now,
                }).execute(),
                name="create_profile",
            )
        except ConflictError:
            # Another client may have created it in the meantime
            logger.warning(f"Profile insert for {user.id} conflicted, re-fetching")

        profile = await self.fetch_profile(user.id)
        if profile is None:
            raise ConflictError(f"Username '{user.username}' is already taken")
        return profile

    async def check_username_availability(self, username: str) -> bool:
        """Advisory check; the unique constraint on write is authoritative."""
        username = validate_username(username)
        response = await self.backend.read(
            lambda: self.backend.table("profiles").select("id").eq("username", username).execute(),
            name="check_username",
        )
        current = self.current_user
        return all(current is not None and row.get("id") == current.id for row in (response.data or []))

    async def _update_profile(self, values: dict, name: str) -> Profile:
        user_id = self.require_user_id()
        values = {**values, "updated_at": isoformat()}
        await self.backend.write(
            lambda: self.backend.table("profiles").update(values).eq("id", user_id).execute(),
            name=name,
        )
        profile = await self.fetch_profile(user_id)
        if profile is None:
            raise BackendError("Profile disappeared after update")
        return profile

    async def update_username(self, new_username: str) -> Profile:
        new_username = validate_username(new_username)
        profile = await self._update_profile({"username": new_username}, "update_username")
        logger.info(f"Username updated to: {new_username}")
        return profile

    async def update_bio(self, bio: Optional[str]) -> Profile:
        bio = bio.strip() if bio else None
        if bio and len(bio) > 500:
            raise ValidationError("Bio must be at most 500 characters")
        return await self._update_profile({"bio": bio}, "update_bio")

    async def upload_profile_image(self, data: bytes, filename: str = "avatar.jpg",
                                   content_type: str = "image/jpeg") -> Profile:
        """Store a new avatar and point the profile at it."""
        user_id = self.require_user_id()
        bucket = self.settings.avatar_bucket
        extension = self.storage.validate_file(filename, data, IMAGE)
        path = self.storage.build_path(user_id, "avatar", extension)
        try:
            await run_to_completion(self.storage.upload(bucket, path, data, content_type, upsert=True))
        except asyncio.CancelledError:
            logger.warning(f"Avatar upload cancelled, removing {path}")
            await self._discard_avatar(bucket, path)
            raise

        updated: list = []

        async def point_profile_at_avatar():
            avatar_url = self.storage.public_url(bucket, path)
            updated.append(await self._update_profile({"avatar_url": avatar_url}, "update_avatar"))

        try:
            await run_to_completion(point_profile_at_avatar())
        except asyncio.CancelledError:
            if not updated:
                logger.warning(f"Avatar update cancelled, removing {path}")
                await self._discard_avatar(bucket, path)
            raise
        except RumoriError:
            logger.error(f"Profile update failed, removing uploaded avatar {path}")
            await self._discard_avatar(bucket, path)
            raise
        return updated[0]

    async def _discard_avatar(self, bucket: str, path: str) -> None:
        try:
            await self.storage.remove(bucket, [path])
        except RumoriError as cleanup_error:
            logger.error(f"Could not remove orphaned avatar {path}: {cleanup_error.message}")
