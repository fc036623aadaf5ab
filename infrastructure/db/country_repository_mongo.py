from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from domain.models import Country, Number, PolicyField
from domain.repositories import CountryRepository

# Keeps the startup ping from stalling on PyMongo's 30 s default.
DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


class MongoCountryRepository(CountryRepository):
    """
    MongoDB-backed implementation of `CountryRepository`.

    Countries live in a single collection keyed by `userId`. A unique index
    on `userId` guarantees one document per Discord user even when two first
    logins for the same user race each other. The index is (re)created before
    the first write, so a database that comes up after the server still gets
    it.
    """

    COLLECTION_NAME = "countries"

    def __init__(
        self,
        mongo_uri: str,
        db_name: str,
        server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    ) -> None:
        self._client: AsyncMongoClient = AsyncMongoClient(
            mongo_uri,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        self._collection = self._client[db_name][self.COLLECTION_NAME]
        self._indexes_ready = False

    async def ping(self) -> None:
        await self._client.admin.command("ping")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            [("userId", ASCENDING)],
            unique=True,
            name="userId_unique",
        )
        self._indexes_ready = True

    async def _ensure_indexes_once(self) -> None:
        if not self._indexes_ready:
            await self.ensure_indexes()

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _to_domain(doc: Optional[Dict[str, Any]]) -> Optional[Country]:
        if doc is None:
            return None
        return Country.from_document(doc)

    async def find_by_user_id(self, user_id: str) -> Optional[Country]:
        doc = await self._collection.find_one({"userId": str(user_id)})
        return self._to_domain(doc)

    async def create_default(self, user_id: str, username: str) -> Country:
        await self._ensure_indexes_once()
        country = Country.with_defaults(user_id, username)
        doc = country.to_document()
        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            # Someone else created it first; theirs is the canonical one.
            existing = await self.find_by_user_id(user_id)
            if existing is None:
                raise
            return existing

        country.id = str(result.inserted_id)
        return country

    async def get_or_create(self, user_id: str, username: str) -> Tuple[Country, bool]:
        await self._ensure_indexes_once()
        defaults = Country.with_defaults(user_id, username).to_document()
        # Our own `_id` tells an insert apart from a match in one round trip.
        new_id = ObjectId()
        defaults["_id"] = new_id
        try:
            doc = await self._collection.find_one_and_update(
                {"userId": defaults["userId"]},
                {"$setOnInsert": defaults},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # Two concurrent upserts can both miss and insert; the loser of
            # the unique index reads the winner's document.
            doc = await self._collection.find_one({"userId": defaults["userId"]})
            if doc is None:
                raise
            return Country.from_document(doc), False
        return Country.from_document(doc), doc.get("_id") == new_id

    async def update_field(
        self,
        user_id: str,
        field: PolicyField,
        value: Number,
    ) -> Optional[Country]:
        doc = await self._collection.find_one_and_update(
            {"userId": str(user_id)},
            {"$set": {PolicyField(field).value: value}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_domain(doc)
