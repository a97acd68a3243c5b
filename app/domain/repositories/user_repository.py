"""
User profile repositories.
Defines the store capability used by profile synchronization and its MongoDB implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import get_mongodb_database_name, get_mongodb_url, settings
from app.core.exceptions import (
    DatabaseError,
    ReferralCodeConflictError,
    UserAlreadyExistsError,
)
from app.core.logging import get_logger
from app.domain.models.user import UserProfile

logger = get_logger(__name__)


class UserStore(ABC):
    """
    Store capability for user profiles keyed by user ID.

    Implementations must make `insert` an atomic create-if-absent: it raises
    UserAlreadyExistsError when the user ID is taken and
    ReferralCodeConflictError when the referral code is taken. Every write
    applies to a single document as a whole.
    """

    async def initialize(self) -> None:
        """Prepare the store (connections, indexes)."""

    async def close(self) -> None:
        """Release store resources."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        """Get a profile by user ID, or None if absent."""

    @abstractmethod
    async def insert(self, profile: UserProfile) -> None:
        """Insert a new profile."""

    @abstractmethod
    async def update(self, user_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Partially update a profile.

        Args:
            user_id: User ID
            fields: Attribute names (snake_case) mapped to new values

        Returns:
            bool: False if no profile exists for user_id
        """


class MongoUserRepository(UserStore):
    """Repository for user profiles in MongoDB."""

    def __init__(
        self,
        collection: Optional[AsyncIOMotorCollection] = None,
        collection_name: Optional[str] = None,
    ):
        """Initialize the repository."""
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = collection
        self.collection_name = collection_name or settings.USERS_COLLECTION
        self._initialized = collection is not None

    async def initialize(self) -> None:
        """Initialize MongoDB connection and collection."""
        if self._initialized:
            return

        try:
            mongodb_url = get_mongodb_url()
            database_name = get_mongodb_database_name()

            self.client = AsyncIOMotorClient(mongodb_url, tz_aware=True)
            self.database = self.client[database_name]
            self.collection = self.database[self.collection_name]

            await self._create_indexes()

            self._initialized = True
            logger.info(
                f"MongoUserRepository initialized with database: {database_name}"
            )

        except PyMongoError as e:
            logger.error(f"Failed to initialize MongoUserRepository: {e}")
            raise DatabaseError("Failed to connect to user store") from e

    async def _create_indexes(self) -> None:
        """Create database indexes. The referral code index enforces uniqueness."""
        await self.collection.create_index(
            [("referralCode", ASCENDING)],
            unique=True,
            name="referral_code_unique",
        )
        logger.info("User indexes created successfully")

    async def close(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self._initialized = False
            logger.info("Disconnected from MongoDB")

    async def get(self, user_id: str) -> Optional[UserProfile]:
        """
        Get a user profile by user ID.

        Args:
            user_id: User ID (document _id)

        Returns:
            User profile or None if not found
        """
        await self.initialize()

        try:
            document = await self.collection.find_one({"_id": user_id})
        except PyMongoError as e:
            logger.error(f"Failed to get user {user_id}: {e}")
            raise DatabaseError("Failed to read user profile") from e

        if document is None:
            return None

        try:
            return UserProfile.from_document(document)
        except PydanticValidationError as e:
            logger.error(f"Stored profile for user {user_id} is malformed: {e}")
            raise DatabaseError("Stored user profile is malformed") from e

    async def insert(self, profile: UserProfile) -> None:
        """
        Insert a new user profile.

        Args:
            profile: Profile to insert; its user ID becomes the document _id
        """
        await self.initialize()

        try:
            await self.collection.insert_one(profile.to_document())
        except DuplicateKeyError as e:
            if self._is_referral_code_conflict(e):
                logger.warning(f"Referral code collision for user {profile.user_id}")
                raise ReferralCodeConflictError(profile.referral_code) from e
            logger.warning(f"User {profile.user_id} already exists")
            raise UserAlreadyExistsError(profile.user_id) from e
        except PyMongoError as e:
            logger.error(f"Failed to insert user {profile.user_id}: {e}")
            raise DatabaseError("Failed to create user profile") from e

    async def update(self, user_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Partially update a user profile with $set.

        Args:
            user_id: User ID
            fields: Attribute names mapped to new values

        Returns:
            True if a profile matched
        """
        await self.initialize()

        update_doc: Dict[str, Any] = UserProfile.document_fields(fields)
        try:
            result = await self.collection.update_one(
                {"_id": user_id}, {"$set": update_doc}
            )
        except PyMongoError as e:
            logger.error(f"Failed to update user {user_id}: {e}")
            raise DatabaseError("Failed to update user profile") from e

        return result.matched_count > 0

    @staticmethod
    def _is_referral_code_conflict(error: DuplicateKeyError) -> bool:
        key_pattern = (error.details or {}).get("keyPattern") or {}
        if key_pattern:
            return "referralCode" in key_pattern
        return "referral_code_unique" in str(error)
