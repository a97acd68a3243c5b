"""
In-memory user store.
Used for local development without MongoDB and as the store in tests.
"""

import asyncio
import copy
from typing import Any, Dict, Mapping, Optional

from app.core.exceptions import ReferralCodeConflictError, UserAlreadyExistsError
from app.core.logging import get_logger
from app.domain.models.user import UserProfile
from app.domain.repositories.user_repository import UserStore

logger = get_logger(__name__)


class InMemoryUserStore(UserStore):
    """Process-local user store; documents live in a dict keyed by user ID."""

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        logger.info("Using in-memory user store")

    async def get(self, user_id: str) -> Optional[UserProfile]:
        async with self._lock:
            document = self._documents.get(user_id)
            if document is None:
                return None
            return UserProfile.from_document(document)

    async def insert(self, profile: UserProfile) -> None:
        async with self._lock:
            if profile.user_id in self._documents:
                raise UserAlreadyExistsError(profile.user_id)
            for document in self._documents.values():
                if document.get("referralCode") == profile.referral_code:
                    raise ReferralCodeConflictError(profile.referral_code)
            self._documents[profile.user_id] = profile.to_document()

    async def update(self, user_id: str, fields: Mapping[str, Any]) -> bool:
        update_doc = UserProfile.document_fields(fields)
        async with self._lock:
            document = self._documents.get(user_id)
            if document is None:
                return False
            document.update(update_doc)
            return True

    def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a copy of the raw stored document."""
        document = self._documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    def __len__(self) -> int:
        return len(self._documents)
