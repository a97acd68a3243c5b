"""
User store dependencies for FastAPI.
The store is created once at startup and kept on app.state.
"""

from fastapi import Depends, Request

from app.api.services.auth_service import AuthService
from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.core.logging import get_logger
from app.domain.repositories.memory_user_store import InMemoryUserStore
from app.domain.repositories.user_repository import MongoUserRepository, UserStore

logger = get_logger(__name__)


async def create_user_store() -> UserStore:
    """
    Create and initialize the configured user store.

    Returns:
        UserStore: Ready-to-use store
    """
    if settings.USER_STORE_BACKEND == "memory":
        store: UserStore = InMemoryUserStore()
    else:
        store = MongoUserRepository()

    await store.initialize()
    logger.info(f"User store ready: {settings.USER_STORE_BACKEND}")
    return store


def get_user_store(request: Request) -> UserStore:
    """Get the application's user store."""
    store = getattr(request.app.state, "user_store", None)
    if store is None:
        raise ConfigurationError("User store is not initialized")
    return store


def get_auth_service(store: UserStore = Depends(get_user_store)) -> AuthService:
    """Build the auth service for a request."""
    return AuthService(store)
