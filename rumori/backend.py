"""
Access to the hosted backend: client construction, thread-pool execution of
the synchronous Supabase client, error translation and response decoding.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional, Type, TypeVar

import httpx
import pydantic
from postgrest.exceptions import APIError
from supabase import AuthError, Client, create_client

from rumori.config import Settings, get_settings
from rumori.exceptions import (
    BackendError, ConflictError, DecodingError, EmailAlreadyExistsError,
    EmailNotVerifiedError, InsufficientBalanceError, InvalidCredentialsError,
    NetworkError, NotAuthenticatedError, NotAuthorizedError, NotFoundError,
    RumoriError,
)
from rumori.logger import get_logger
from rumori.retry import NO_RETRY, RetryPolicy

logger = get_logger("backend")

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

# PostgREST / Postgres error codes
NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"
PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}

# Auth error codes
INVALID_CREDENTIAL_CODES = {"invalid_credentials", "invalid_grant"}
EMAIL_NOT_CONFIRMED_CODES = {"email_not_confirmed"}
EMAIL_EXISTS_CODES = {"user_already_exists", "email_exists"}
SESSION_CODES = {"session_not_found", "session_expired", "refresh_token_not_found"}

_thread_pool = ThreadPoolExecutor(max_workers=10)


def create_backend_client(settings: Optional[Settings] = None) -> Client:
    """Create the Supabase client from settings."""
    settings = settings or get_settings()
    client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info(f"Supabase client initialized with URL: {settings.supabase_url}")
    return client


def is_no_rows_error(error: Exception) -> bool:
    """True for the PostgREST "single() matched zero rows" response."""
    if isinstance(error, NotFoundError):
        return True
    return isinstance(error, APIError) and error.code == NO_ROWS_CODE


def _auth_error_code(error: Exception) -> str:
    return str(getattr(error, "code", "") or "").lower()


def translate_backend_error(error: Exception) -> RumoriError:
    """Map a Supabase, PostgREST or transport exception onto the error taxonomy."""
    if isinstance(error, RumoriError):
        return error

    if isinstance(error, APIError):
        code = str(error.code or "")
        message = error.message or "Backend request failed"
        details = error.details if isinstance(error.details, str) else None
        lowered = message.lower()
        if code == NO_ROWS_CODE:
            return NotFoundError("Requested record was not found", details)
        if code == UNIQUE_VIOLATION_CODE or "duplicate key" in lowered:
            return ConflictError("Record already exists", message)
        if "insufficient" in lowered:
            return InsufficientBalanceError("Not enough coins", message)
        if code in PERMISSION_CODES or "row-level security" in lowered or "permission denied" in lowered:
            return NotAuthorizedError("Not allowed to access this record", message)
        return BackendError(message, details)

    if isinstance(error, AuthError):
        code = _auth_error_code(error)
        message = getattr(error, "message", None) or str(error)
        lowered = message.lower()
        if code in INVALID_CREDENTIAL_CODES or "invalid login credentials" in lowered:
            return InvalidCredentialsError("Invalid email or password", message)
        if code in EMAIL_NOT_CONFIRMED_CODES or "email not confirmed" in lowered:
            return EmailNotVerifiedError("Please verify your email before signing in", message)
        if code in EMAIL_EXISTS_CODES or "already registered" in lowered:
            return EmailAlreadyExistsError("An account with this email already exists", message)
        if code in SESSION_CODES or "session" in lowered:
            return NotAuthenticatedError("No active session", message)
        return BackendError(message, code or None)

    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return NetworkError("Could not reach the server", str(error))

    if isinstance(error, pydantic.ValidationError):
        return DecodingError("Unexpected response from the server", str(error))

    return BackendError("Backend request failed", str(error))


async def run_in_thread(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking client call in the shared thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_thread_pool, lambda: func(*args, **kwargs))


class Backend:
    """Async facade over the synchronous Supabase client.

    ``read`` is for idempotent calls and goes through the retry policy;
    ``write`` runs exactly once.
    """

    def __init__(self, client: Client, retry_policy: Optional[RetryPolicy] = None):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    def table(self, name: str):
        return self.client.table(name)

    @property
    def auth(self):
        return self.client.auth

    @property
    def storage(self):
        return self.client.storage

    async def _call(self, func: Callable[[], Any], name: str) -> Any:
        try:
            return await run_in_thread(func)
        except Exception as e:
            translated = translate_backend_error(e)
            if translated is not e:
                translated.__cause__ = e
            raise translated

    async def read(self, func: Callable[[], Any], name: str = "read") -> Any:
        return await self.retry_policy.run(lambda: self._call(func, name), name=name)

    async def write(self, func: Callable[[], Any], name: str = "write") -> Any:
        return await NO_RETRY.run(lambda: self._call(func, name), name=name)


def decode_one(model: Type[ModelT], row: Any) -> ModelT:
    """Validate one response row into ``model``."""
    if row is None:
        raise DecodingError(f"Empty response where a {model.__name__} was expected")
    try:
        return model.model_validate(row)
    except pydantic.ValidationError as e:
        raise DecodingError(f"Malformed {model.__name__} in response", str(e)) from e


def decode_many(model: Type[ModelT], rows: Optional[Iterable[Any]]) -> list[ModelT]:
    """Validate a list of response rows into ``model`` instances."""
    return [decode_one(model, row) for row in (rows or [])]


def first_row(response: Any) -> Optional[dict]:
    """First row of a list response, or ``None``."""
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data
