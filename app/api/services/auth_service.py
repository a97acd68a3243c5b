"""
Auth Service.
Validates Telegram Mini App init data and synchronizes the user's profile.
"""

from typing import Optional

from app.api.services.profile_sync_service import ProfileSyncService
from app.core.config import get_bot_token
from app.core.exceptions import (
    ConfigurationError,
    InitDataVerificationError,
    MissingInitDataError,
)
from app.core.logging import get_logger, log_init_data_verification
from app.core.security import InitDataVerifier, get_init_data_verifier
from app.domain.models.user import UserProfile
from app.domain.repositories.user_repository import UserStore

logger = get_logger(__name__)


class AuthService:
    """Service class for init data authentication."""

    def __init__(
        self,
        store: UserStore,
        verifier: Optional[InitDataVerifier] = None,
        profile_sync_service: Optional[ProfileSyncService] = None,
    ):
        self.verifier = verifier or get_init_data_verifier()
        self.profile_sync_service = profile_sync_service or ProfileSyncService(store)

    async def validate_init_data(self, init_data: Optional[str]) -> UserProfile:
        """
        Verify init data and return the synchronized user profile.

        Steps:
        1. Reject empty init data
        2. Verify the signature against the bot token
        3. Create or refresh the user's profile

        Args:
            init_data: Raw init data query string

        Returns:
            UserProfile: Synchronized profile

        Raises:
            MissingInitDataError: init_data is missing or empty
            ConfigurationError: bot token is not configured
            InitDataVerificationError: verdict is invalid
            DatabaseError: profile store failed
        """
        if not init_data:
            logger.warning("Validation rejected: Missing initData")
            raise MissingInitDataError()

        bot_token = get_bot_token()
        if not bot_token:
            logger.error("TELEGRAM_BOT_TOKEN is not configured")
            raise ConfigurationError()

        verdict = self.verifier.verify(init_data, bot_token)

        if not verdict.valid:
            reason = verdict.reason.value
            log_init_data_verification("invalid", reason=reason, stale=verdict.is_stale)
            raise InitDataVerificationError(reason)

        user_id = str(verdict.claim.id)
        log_init_data_verification("valid", user_id=user_id, stale=verdict.is_stale)

        return await self.profile_sync_service.sync(verdict.claim)
