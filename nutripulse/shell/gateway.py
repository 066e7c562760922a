"""Persistence Gateway - Offline-first dual write/read coordination.

Writes commit to the local cache first, then try the remote store. A remote
failure is logged and reported in the WriteResult, never raised. Reads ask
the remote store first and refresh the local cache from it; when the remote
is unreachable the last local snapshot is returned instead.
"""

import logging
from typing import Any, Callable, Generic, Mapping, Protocol, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import RemoteUnavailableError
from ..core.models import DayPlan, ExerciseItem, FoodItem, ProfileRecord, WriteResult
from .firestore_client import EXERCISE_LOGS, FOOD_LOGS, MEAL_PLANS
from .local_cache import (
    EXERCISE_LOG_KEY,
    FOOD_LOG_KEY,
    MEAL_PLAN_KEY,
    PROFILE_KEY,
    LocalCache,
)


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RemoteStore(Protocol):
    """What the gateway needs from a remote document store."""

    async def ping(self, user_id: str) -> bool: ...

    async def get_profile(self, user_id: str) -> dict | None: ...

    async def save_profile(self, user_id: str, data: Mapping[str, Any]) -> None: ...

    async def upsert(
        self, user_id: str, collection: str, doc_id: str, data: Mapping[str, Any], **fields: Any
    ) -> None: ...

    async def upsert_many(
        self, user_id: str, collection: str, documents: Mapping[str, Mapping[str, Any]]
    ) -> None: ...

    async def delete(self, user_id: str, collection: str, doc_id: str) -> None: ...

    async def select_all(self, user_id: str, collection: str, order_by: str | None = None) -> list[dict]: ...


def _decode_all(model: type[ModelT], records: Any, source: str) -> list[ModelT]:
    """Validate a list of raw records, skipping the ones that don't fit."""
    if not isinstance(records, list):
        logger.warning("Expected a list from %s, got %s", source, type(records).__name__)
        return []
    items: list[ModelT] = []
    for idx, record in enumerate(records):
        try:
            items.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning("Skipping invalid %s record at index %d from %s: %s",
                           model.__name__, idx, source, e.error_count())
    return items


class _Channel:
    """Shared plumbing for one entity kind."""

    def __init__(self, name: str, cache: LocalCache, remote: RemoteStore, user_id: str) -> None:
        self.name = name
        self._cache = cache
        self._remote = remote
        self._user_id = user_id

    def _commit_local(self, key: str, value: Any) -> bool:
        ok = self._cache.set(key, value)
        if not ok:
            logger.error("Local write failed for %s; in-memory state stays authoritative", self.name)
        return ok

    async def _try_remote(self, action: str, call: Callable[[], Any]) -> bool:
        try:
            await call()
            return True
        except RemoteUnavailableError as e:
            logger.warning("Remote %s %s failed (using local): %s", action, self.name, str(e))
            return False


class EntityLog(_Channel, Generic[ModelT]):
    """Append-only log of id-keyed entities (food or exercise).

    The local snapshot keeps append order; saving an id that is already
    present replaces that entry in place.
    """

    def __init__(
        self,
        name: str,
        model: type[ModelT],
        cache_key: str,
        collection: str,
        cache: LocalCache,
        remote: RemoteStore,
        user_id: str,
    ) -> None:
        super().__init__(name, cache, remote, user_id)
        self._model = model
        self._cache_key = cache_key
        self._collection = collection

    def cached(self) -> list[ModelT]:
        """Last local snapshot, without touching the remote store."""
        return _decode_all(self._model, self._cache.get(self._cache_key, []), "local cache")

    async def save(self, item: ModelT) -> WriteResult:
        """Write an entity locally, then remotely.

        Args:
            item: Entity with a client-generated id

        Returns:
            WriteResult for both phases
        """
        snapshot = [e for e in self._cache.get(self._cache_key, []) if isinstance(e, dict)]
        payload = item.model_dump(mode="json")
        for idx, existing in enumerate(snapshot):
            if existing.get("id") == item.id:
                snapshot[idx] = payload
                break
        else:
            snapshot.append(payload)
        local_ok = self._commit_local(self._cache_key, snapshot)

        remote_ok = await self._try_remote("add", lambda: self._remote.upsert(
            self._user_id, self._collection, item.id, payload, timestamp=item.timestamp,
        ))
        logger.info("Saved %s %s (local=%s, remote=%s)", self.name, item.id[:8], local_ok, remote_ok)
        return WriteResult(local_ok=local_ok, remote_ok=remote_ok)

    async def remove(self, item_id: str) -> WriteResult:
        """Delete an entity locally, then remotely.

        The local removal decides what later reads return while offline.
        """
        snapshot = [
            e for e in self._cache.get(self._cache_key, [])
            if isinstance(e, dict) and e.get("id") != item_id
        ]
        local_ok = self._commit_local(self._cache_key, snapshot)

        remote_ok = await self._try_remote("remove", lambda: self._remote.delete(
            self._user_id, self._collection, item_id,
        ))
        logger.info("Removed %s %s (local=%s, remote=%s)", self.name, item_id[:8], local_ok, remote_ok)
        return WriteResult(local_ok=local_ok, remote_ok=remote_ok)

    async def load_all(self) -> list[ModelT]:
        """Read from the remote store, falling back to the local snapshot."""
        try:
            rows = await self._remote.select_all(self._user_id, self._collection, order_by="timestamp")
        except RemoteUnavailableError as e:
            logger.warning("Remote fetch %s failed (using local): %s", self.name, str(e))
            return self.cached()

        items = _decode_all(self._model, rows, "remote store")
        self._commit_local(self._cache_key, [i.model_dump(mode="json") for i in items])
        return items


class PlanStore(_Channel):
    """Plan days keyed by (user_id, date); the whole plan is saved at once."""

    def cached(self) -> list[DayPlan]:
        return _decode_all(DayPlan, self._cache.get(MEAL_PLAN_KEY, []), "local cache")

    async def save_all(self, plans: Sequence[DayPlan]) -> WriteResult:
        payloads = [day.model_dump(mode="json") for day in plans]
        local_ok = self._commit_local(MEAL_PLAN_KEY, payloads)

        documents = {p["date"]: p for p in payloads}
        remote_ok = await self._try_remote("save", lambda: self._remote.upsert_many(
            self._user_id, MEAL_PLANS, documents,
        ))
        logger.info("Saved %d plan days (local=%s, remote=%s)", len(payloads), local_ok, remote_ok)
        return WriteResult(local_ok=local_ok, remote_ok=remote_ok)

    async def load_all(self) -> list[DayPlan]:
        try:
            rows = await self._remote.select_all(self._user_id, MEAL_PLANS, order_by="id")
        except RemoteUnavailableError as e:
            logger.warning("Remote fetch plans failed (using local): %s", str(e))
            return self.cached()

        plans = _decode_all(DayPlan, rows, "remote store")
        self._commit_local(MEAL_PLAN_KEY, [p.model_dump(mode="json") for p in plans])
        return plans


class ProfileStore(_Channel):
    """Singleton profile + targets record."""

    def cached(self) -> ProfileRecord:
        raw = self._cache.get(PROFILE_KEY)
        if raw is None:
            return ProfileRecord()
        try:
            return ProfileRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring invalid cached profile: %s errors", e.error_count())
            return ProfileRecord()

    async def save(self, record: ProfileRecord) -> WriteResult:
        payload = record.model_dump(mode="json")
        local_ok = self._commit_local(PROFILE_KEY, payload)
        remote_ok = await self._try_remote("save", lambda: self._remote.save_profile(self._user_id, payload))
        return WriteResult(local_ok=local_ok, remote_ok=remote_ok)

    async def load(self) -> ProfileRecord:
        """Remote profile if one exists, else the cached one, else defaults.

        A missing remote document is treated like an unreachable remote:
        the local copy may hold a profile that never reached the server.
        """
        try:
            data = await self._remote.get_profile(self._user_id)
        except RemoteUnavailableError as e:
            logger.warning("Remote fetch profile failed (using local): %s", str(e))
            return self.cached()

        if data is None:
            logger.debug("No remote profile for %s, using local", self._user_id[:8])
            return self.cached()

        try:
            record = ProfileRecord.model_validate(data)
        except ValidationError as e:
            logger.warning("Remote profile is invalid (using local): %s errors", e.error_count())
            return self.cached()

        self._commit_local(PROFILE_KEY, record.model_dump(mode="json"))
        return record


class PersistenceGateway:
    """Entry point for every persisted entity kind of one user."""

    def __init__(self, user_id: str, cache: LocalCache, remote: RemoteStore) -> None:
        self.user_id = user_id
        self._remote = remote
        self.profile = ProfileStore("profile", cache, remote, user_id)
        self.food = EntityLog("food", FoodItem, FOOD_LOG_KEY, FOOD_LOGS, cache, remote, user_id)
        self.exercise = EntityLog(
            "exercise", ExerciseItem, EXERCISE_LOG_KEY, EXERCISE_LOGS, cache, remote, user_id
        )
        self.plans = PlanStore("plans", cache, remote, user_id)

    async def check_connection(self) -> bool:
        """Probe remote reachability for the sync-status indicator only."""
        try:
            return await self._remote.ping(self.user_id)
        except Exception as e:
            logger.warning("Connection check failed: %s", str(e))
            return False
