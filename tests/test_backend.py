"""Tests for backend error translation, decoding, storage and configuration."""

from __future__ import annotations

import httpx
import pytest
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import AuthApiError

from rumori.backend import decode_one, first_row, is_no_rows_error, translate_backend_error
from rumori.config import Settings
from rumori.exceptions import (
    BackendError, ConflictError, DecodingError, EmailAlreadyExistsError,
    EmailNotVerifiedError, ErrorKind, FileUploadError, InsufficientBalanceError,
    InvalidCredentialsError, NetworkError, NotAuthorizedError, NotFoundError,
)
from rumori.models import Project
from rumori.services.storage_service import AUDIO, IMAGE


def api_error(code, message="failed"):
    return APIError({"code": code, "message": message, "details": None, "hint": None})


@pytest.mark.parametrize("error, expected", [
    (api_error("PGRST116"), NotFoundError),
    (api_error("23505", "duplicate key value violates unique constraint"), ConflictError),
    (api_error("P0001", "Insufficient balance"), InsufficientBalanceError),
    (api_error("42501", "permission denied for table projects"), NotAuthorizedError),
    (api_error("XX000", "something odd"), BackendError),
    (AuthApiError("Invalid login credentials", 400, "invalid_credentials"), InvalidCredentialsError),
    (AuthApiError("Email not confirmed", 400, "email_not_confirmed"), EmailNotVerifiedError),
    (AuthApiError("User already registered", 422, "user_already_exists"), EmailAlreadyExistsError),
    (httpx.ConnectError("refused"), NetworkError),
    (TimeoutError("slow"), NetworkError),
    (RuntimeError("anything"), BackendError),
])
def test_translate_backend_error(error, expected):
    assert type(translate_backend_error(error)) is expected


def test_insufficient_balance_is_not_a_network_error():
    translated = translate_backend_error(api_error("P0001", "Insufficient balance"))
    assert translated.kind == ErrorKind.INSUFFICIENT_BALANCE
    assert translated.message == "Not enough coins"


def test_already_translated_errors_pass_through():
    error = ConflictError("taken")
    assert translate_backend_error(error) is error


def test_is_no_rows_error():
    assert is_no_rows_error(api_error("PGRST116"))
    assert not is_no_rows_error(api_error("23505"))


def test_decode_one_rejects_malformed_rows():
    with pytest.raises(DecodingError):
        decode_one(Project, {"id": "p1"})
    with pytest.raises(DecodingError):
        decode_one(Project, None)


def test_first_row():
    class Response:
        data = [{"id": 1}, {"id": 2}]
    assert first_row(Response()) == {"id": 1}
    Response.data = []
    assert first_row(Response()) is None


class TestStorageValidation:

    def test_allowed_files(self, services):
        assert services.storage.validate_file("Song.MP3", b"data", AUDIO) == ".mp3"
        assert services.storage.validate_file("cover.webp", b"data", IMAGE) == ".webp"

    @pytest.mark.parametrize("filename, data, kind", [
        ("song.mp3", b"", AUDIO),
        ("cover.gif", b"data", IMAGE),
        ("noextension", b"data", AUDIO),
    ])
    def test_rejected_files(self, services, filename, data, kind):
        with pytest.raises(FileUploadError):
            services.storage.validate_file(filename, data, kind)

    def test_too_large(self, services, settings):
        settings.max_file_size = 4
        with pytest.raises(FileUploadError):
            services.storage.validate_file("song.mp3", b"12345", AUDIO)

    def test_paths_are_scoped_by_owner(self, services):
        path = services.storage.build_path("user-1", "audio", "mp3")
        assert path.startswith("user-1/audio_")
        assert path.endswith(".mp3")


class TestSettings:

    def test_url_must_be_https(self):
        with pytest.raises(PydanticValidationError):
            Settings(supabase_url="http://insecure.example", supabase_key="k")

    def test_trailing_slash_is_stripped(self):
        assert Settings(supabase_url="https://x.supabase.co/", supabase_key="k").supabase_url == \
            "https://x.supabase.co"

    def test_helpful_rating_actor(self):
        assert Settings(supabase_url="https://x.supabase.co", supabase_key="k",
                        helpful_rating_actor="ANY").helpful_rating_actor == "any"
        with pytest.raises(PydanticValidationError):
            Settings(supabase_url="https://x.supabase.co", supabase_key="k",
                     helpful_rating_actor="admin")
