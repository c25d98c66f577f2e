"""
FastAPI dependencies for reaching the shared service graph.
"""
from fastapi import Depends, Request

from rumori.container import Services, build_services
from rumori.logger import get_logger
from rumori.session import SessionProvider

logger = get_logger("dependencies")


def get_services(request: Request) -> Services:
    """The process-wide services, built on first use."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.info("Building services on first request")
        services = build_services()
        request.app.state.services = services
    return services


def get_session(services: Services = Depends(get_services)) -> SessionProvider:
    return services.session


def require_user(session: SessionProvider = Depends(get_session)) -> str:
    """Current user id; raises ``NotAuthenticatedError`` without a session."""
    return session.require_user_id()
