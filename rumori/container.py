"""
Builds the shared service graph once per process.
"""
from dataclasses import dataclass
from typing import Optional

from supabase import Client

from rumori.backend import Backend, create_backend_client
from rumori.config import Settings, get_settings
from rumori.logger import get_logger
from rumori.retry import RetryPolicy
from rumori.services.coin_service import CoinService
from rumori.services.favorite_service import FavoriteService
from rumori.services.feedback_service import FeedbackService
from rumori.services.media_service import MediaService
from rumori.services.notification_service import NotificationService
from rumori.services.project_service import ProjectService
from rumori.services.stats_service import StatsService
from rumori.services.storage_service import StorageService
from rumori.session import SessionProvider
from rumori.state import StateStore

logger = get_logger("container")


@dataclass
class Services:
    settings: Settings
    state: StateStore
    backend: Backend
    storage: StorageService
    media: MediaService
    session: SessionProvider
    projects: ProjectService
    coins: CoinService
    feedback: FeedbackService
    favorites: FavoriteService
    notifications: NotificationService
    stats: StatsService


def build_services(settings: Optional[Settings] = None, client: Optional[Client] = None) -> Services:
    """Wire every service around one backend client and one state store."""
    settings = settings or get_settings()
    client = client or create_backend_client(settings)
    backend = Backend(
        client,
        RetryPolicy(max_attempts=settings.retry_max_attempts, base_delay=settings.retry_base_delay),
    )
    state = StateStore()
    storage = StorageService(backend, settings)
    media = MediaService(settings)
    session = SessionProvider(backend, state, storage, settings)
    projects = ProjectService(backend, session, storage, media, settings)
    coins = CoinService(backend, session, state)
    feedback = FeedbackService(backend, session, projects, coins, state, settings)
    logger.info("Services initialized")
    return Services(
        settings=settings,
        state=state,
        backend=backend,
        storage=storage,
        media=media,
        session=session,
        projects=projects,
        coins=coins,
        feedback=feedback,
        favorites=FavoriteService(backend, session),
        notifications=NotificationService(backend, session, projects),
        stats=StatsService(backend, session),
    )
