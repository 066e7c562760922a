"""Shared fakes for shell tests."""

import json

import pytest

from nutripulse.core.errors import AIRequestError, RemoteUnavailableError
from nutripulse.shell.ai_client import NutritionCoach
from nutripulse.shell.app_state import AppController
from nutripulse.shell.gateway import PersistenceGateway
from nutripulse.shell.local_cache import LocalCache


class FakeRemote:
    """In-memory RemoteStore; set ``offline`` to make every call fail."""

    def __init__(self):
        self.offline = False
        self.profile = None
        self.collections = {}
        self.calls = []

    def _check(self, action):
        self.calls.append(action)
        if self.offline:
            raise RemoteUnavailableError(f"{action}: offline")

    async def ping(self, user_id):
        return not self.offline

    async def get_profile(self, user_id):
        self._check("get_profile")
        return self.profile

    async def save_profile(self, user_id, data):
        self._check("save_profile")
        self.profile = dict(data)

    async def upsert(self, user_id, collection, doc_id, data, **fields):
        self._check("upsert")
        self.collections.setdefault(collection, {})[doc_id] = {"id": doc_id, **fields, "data": dict(data)}

    async def upsert_many(self, user_id, collection, documents):
        self._check("upsert_many")
        for doc_id, data in documents.items():
            self.collections.setdefault(collection, {})[doc_id] = {"id": doc_id, "data": dict(data)}

    async def delete(self, user_id, collection, doc_id):
        self._check("delete")
        self.collections.get(collection, {}).pop(doc_id, None)

    async def select_all(self, user_id, collection, order_by=None):
        self._check("select_all")
        rows = list(self.collections.get(collection, {}).values())
        if order_by:
            rows.sort(key=lambda row: row.get(order_by))
        return [row["data"] for row in rows]


class FakeGenerator:
    """ContentGenerator returning queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []
        self.searches = []

    def queue(self, response):
        self.responses.append(response)

    async def generate(self, prompt, *, schema=None, image=None, image_mime_type="image/jpeg", search=False):
        self.prompts.append(prompt)
        self.searches.append(search)
        if not self.responses:
            raise AIRequestError("No response from AI")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)


@pytest.fixture
def cache(tmp_path):
    return LocalCache(tmp_path / "cache")


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def gateway(cache, remote):
    return PersistenceGateway("user-0001-abcdef", cache, remote)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def controller(gateway, cache, generator):
    return AppController(gateway, cache, NutritionCoach(generator))
