"""Firestore Client - Remote document store for profiles, logs and plans.

This module handles all remote database I/O. Every failure is raised as
RemoteUnavailableError; deciding what to do about it is the gateway's job.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from google.cloud import firestore

from ..core.errors import RemoteUnavailableError


logger = logging.getLogger(__name__)

PROFILE_COLLECTION = "profile"
PROFILE_DOCUMENT = "current"
FOOD_LOGS = "food_logs"
EXERCISE_LOGS = "exercise_logs"
MEAL_PLANS = "meal_plans"


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class NutritionFirestoreClient:
    """Async client for the remote copy of a user's data.

    Document structure per user:
        users/{user_id}/
            profile/current: { updated_at, data: {profile, targets} }
            food_logs/{id}: { id, timestamp, data }
            exercise_logs/{id}: { id, timestamp, data }
            meal_plans/{YYYY-MM-DD}: { date, data }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.AsyncClient | None = None

    @property
    def client(self) -> firestore.AsyncClient:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.AsyncClient(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.AsyncDocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _collection_ref(self, user_id: str, collection: str) -> firestore.AsyncCollectionReference:
        return self._user_ref(user_id).collection(collection)

    def _profile_ref(self, user_id: str) -> firestore.AsyncDocumentReference:
        return self._collection_ref(user_id, PROFILE_COLLECTION).document(PROFILE_DOCUMENT)

    # ==================== Connection ====================

    async def ping(self, user_id: str) -> bool:
        """Read-only reachability probe. Never raises."""
        try:
            async for _ in self._collection_ref(user_id, PROFILE_COLLECTION).limit(1).stream():
                break
            return True
        except Exception as e:
            logger.warning("Firestore unreachable: %s", str(e))
            return False

    # ==================== Profile Operations ====================

    async def get_profile(self, user_id: str) -> dict | None:
        """Fetch the stored profile payload.

        Args:
            user_id: The user's ID

        Returns:
            The {profile, targets} payload, or None if no document exists

        Raises:
            RemoteUnavailableError: If the read fails
        """
        logger.debug("Fetching profile for user: %s", user_id[:8])
        try:
            doc = await self._profile_ref(user_id).get()
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to fetch profile: {e}") from e
        if not doc.exists:
            return None
        return (doc.to_dict() or {}).get("data")

    async def save_profile(self, user_id: str, data: Mapping[str, Any]) -> None:
        """Upsert the profile payload.

        Raises:
            RemoteUnavailableError: If the write fails
        """
        logger.info("Saving profile for user: %s", user_id[:8])
        try:
            await self._profile_ref(user_id).set({
                "updated_at": firestore.SERVER_TIMESTAMP,
                "data": dict(data),
            })
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to save profile: {e}") from e

    # ==================== Keyed Collections ====================

    async def upsert(
        self, user_id: str, collection: str, doc_id: str, data: Mapping[str, Any], **fields: Any
    ) -> None:
        """Upsert one document keyed by (user_id, doc_id).

        Args:
            user_id: The user's ID
            collection: food_logs, exercise_logs or meal_plans
            doc_id: Entity id (or date key for plans)
            data: Serialized entity
            **fields: Extra top-level fields used for ordering

        Raises:
            RemoteUnavailableError: If the write fails
        """
        logger.debug("Upserting %s/%s for %s", collection, doc_id, user_id[:8])
        try:
            await self._collection_ref(user_id, collection).document(doc_id).set(
                {"id": doc_id, **fields, "data": dict(data)}
            )
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to upsert {collection}/{doc_id}: {e}") from e

    async def upsert_many(
        self, user_id: str, collection: str, documents: Mapping[str, Mapping[str, Any]]
    ) -> None:
        """Upsert several documents in one batch.

        Raises:
            RemoteUnavailableError: If the batch fails
        """
        logger.debug("Upserting %d docs into %s for %s", len(documents), collection, user_id[:8])
        try:
            batch = self.client.batch()
            collection_ref = self._collection_ref(user_id, collection)
            for doc_id, data in documents.items():
                batch.set(collection_ref.document(doc_id), {"id": doc_id, "data": dict(data)})
            await batch.commit()
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to upsert into {collection}: {e}") from e

    async def delete(self, user_id: str, collection: str, doc_id: str) -> None:
        """Delete one document by id.

        Raises:
            RemoteUnavailableError: If the delete fails
        """
        logger.debug("Deleting %s/%s for %s", collection, doc_id, user_id[:8])
        try:
            await self._collection_ref(user_id, collection).document(doc_id).delete()
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to delete {collection}/{doc_id}: {e}") from e

    async def select_all(self, user_id: str, collection: str, order_by: str | None = None) -> list[dict]:
        """Fetch every entity payload in a user's collection.

        Args:
            user_id: The user's ID
            collection: Collection to read
            order_by: Top-level field to sort by, if any

        Returns:
            List of entity payloads (empty when the collection has no rows)

        Raises:
            RemoteUnavailableError: If the query fails
        """
        logger.debug("Fetching %s for %s", collection, user_id[:8])
        try:
            query = self._collection_ref(user_id, collection)
            if order_by:
                query = query.order_by(order_by)
            rows = [doc.to_dict() or {} async for doc in query.stream()]
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to fetch {collection}: {e}") from e
        logger.debug("Found %d docs in %s", len(rows), collection)
        return [row["data"] for row in rows if "data" in row]
