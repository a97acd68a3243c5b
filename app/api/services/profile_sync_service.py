"""
Profile Sync Service.
Reconciles a verified identity claim with the stored user profile:
creates the profile on first login, refreshes it on every later login.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.core.config import settings
from app.core.exceptions import (
    DatabaseError,
    MiniAppAuthException,
    ReferralCodeConflictError,
    ReferralCodeGenerationError,
    UserAlreadyExistsError,
)
from app.core.logging import get_logger, log_error, log_profile_sync
from app.core.security import generate_referral_code
from app.domain.models.init_data import IdentityClaim
from app.domain.models.user import UserProfile
from app.domain.repositories.user_repository import UserStore

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileSyncService:
    """Service to create or refresh user profiles from identity claims."""

    def __init__(
        self,
        store: UserStore,
        clock: Optional[Callable[[], datetime]] = None,
        referral_code_factory: Optional[Callable[[], str]] = None,
        max_referral_attempts: Optional[int] = None,
        default_first_name: Optional[str] = None,
        default_language_code: Optional[str] = None,
    ) -> None:
        self.store = store
        self.clock = clock or utc_now
        self.referral_code_factory = referral_code_factory or generate_referral_code
        self.max_referral_attempts = (
            max_referral_attempts or settings.REFERRAL_CODE_MAX_ATTEMPTS
        )
        self.default_first_name = default_first_name or settings.DEFAULT_FIRST_NAME
        self.default_language_code = (
            default_language_code or settings.DEFAULT_LANGUAGE_CODE
        )

    async def sync(self, claim: IdentityClaim) -> UserProfile:
        """
        Create or refresh the profile for a verified claim.

        Args:
            claim: Verified identity claim

        Returns:
            UserProfile: The created profile, or the merged view after update

        Raises:
            DatabaseError: When the store fails
        """
        user_id = str(claim.id)

        try:
            existing = await self.store.get(user_id)

            if existing is None:
                try:
                    return await self._create_profile(user_id, claim)
                except UserAlreadyExistsError:
                    # Another request created the profile between our read and insert
                    log_profile_sync("create_race", user_id)
                    existing = await self.store.get(user_id)
                    if existing is None:
                        raise DatabaseError(
                            "User profile vanished after concurrent creation",
                            {"user_id": user_id},
                        )

            return await self._refresh_profile(existing, claim)

        except MiniAppAuthException:
            raise
        except Exception as e:
            log_error(e, {"operation": "profile_sync", "user_id": user_id})
            raise DatabaseError("Profile synchronization failed") from e

    async def _create_profile(self, user_id: str, claim: IdentityClaim) -> UserProfile:
        """Insert a new profile, retrying with a fresh referral code on collision."""
        for attempt in range(1, self.max_referral_attempts + 1):
            now = self.clock()
            profile = UserProfile(
                user_id=user_id,
                username=claim.username or None,
                first_name=claim.first_name or self.default_first_name,
                last_name=claim.last_name or None,
                language_code=claim.language_code or self.default_language_code,
                tokens=0,
                referral_code=self.referral_code_factory(),
                referred_by=None,
                referrals_made=0,
                created_at=now,
                last_login=now,
                connected_wallet=None,
            )
            try:
                await asyncio.shield(self.store.insert(profile))
            except ReferralCodeConflictError:
                logger.warning(
                    "Referral code collision, retrying",
                    user_id=user_id,
                    attempt=attempt,
                )
                continue

            log_profile_sync("create", user_id, referral_code=profile.referral_code)
            return profile

        raise ReferralCodeGenerationError(self.max_referral_attempts)

    async def _refresh_profile(
        self, existing: UserProfile, claim: IdentityClaim
    ) -> UserProfile:
        """Merge claim fields over the stored profile and record the login."""
        updates: Dict[str, Any] = {
            "last_login": self.clock(),
            "username": claim.username or existing.username or None,
            "first_name": claim.first_name or existing.first_name,
            "last_name": claim.last_name or existing.last_name or None,
            "language_code": claim.language_code or existing.language_code,
        }

        matched = await asyncio.shield(self.store.update(existing.user_id, updates))
        if not matched:
            raise DatabaseError(
                "User profile disappeared before update",
                {"user_id": existing.user_id},
            )

        log_profile_sync("update", existing.user_id)
        return existing.model_copy(update=updates)


async def sync_profile(
    claim: IdentityClaim,
    store: UserStore,
    clock: Optional[Callable[[], datetime]] = None,
) -> UserProfile:
    """Synchronize a claim against a store with default settings."""
    return await ProfileSyncService(store, clock=clock).sync(claim)
