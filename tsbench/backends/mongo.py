"""
MongoDB adapter for the time-series storage benchmark.

Records map 1:1 to documents in a regular collection. A unique compound index on
the natural key backs the upsert filter, and a descending `start_time` index
serves the ordered read.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient, UpdateOne
from pymongo.collection import Collection

from tsbench.backends.abstract import AbstractDatabase, bytes_to_kb, check_limit
from tsbench.domain.models import FIELDS, DataObject
from tsbench.infrastructure.db_factory import get_mongo_client
from tsbench.utils.logging import get_logger

log = get_logger(__name__)

KEY_INDEX_NAME = "natural_key"


def upsert_filter(doc: DataObject) -> Dict[str, Any]:
    return {"start_time": doc.start_time, "interval": doc.interval, "area": doc.area}


def upsert_update(doc: DataObject) -> Dict[str, Any]:
    """`$set` the mutable fields; `created_at` is only written on insert."""
    return {
        "$set": {"updated_at": doc.updated_at, "source": doc.source, "value": doc.value},
        "$setOnInsert": {"created_at": doc.created_at},
    }


class MongoDatabase(AbstractDatabase):
    """
    Adapter over a single pymongo client.

    `upsert_bulk` sends one ordered bulk_write. It is not transactional: a
    standalone server has no multi-document transactions, so a failure mid-batch
    leaves the earlier requests applied.
    """

    def __init__(
        self,
        name: str,
        uri: str,
        db_name: str = "timeseries_benchmark",
        collection_name: str = "data_objects",
        connect_attempts: int = 1,
        connect_timeout_s: int = 10,
        client: Optional[MongoClient] = None,
    ) -> None:
        self.name = name
        self.db_name = db_name
        self.collection_name = collection_name
        self._client = client or get_mongo_client(
            uri, attempts=connect_attempts, timeout_s=connect_timeout_s
        )
        self._closed = False

    @property
    def _collection(self) -> Collection:
        return self._client[self.db_name][self.collection_name]

    def setup(self) -> None:
        db = self._client[self.db_name]
        db.drop_collection(self.collection_name)
        collection = db.create_collection(self.collection_name)
        collection.create_index(
            [("start_time", ASCENDING), ("interval", ASCENDING), ("area", ASCENDING)],
            name=KEY_INDEX_NAME,
            unique=True,
        )
        collection.create_index([("start_time", DESCENDING)], name="start_time_desc")
        log.info(
            "Collection reset",
            extra={"backend": self.name, "collection": self.collection_name},
        )

    def close(self) -> None:
        if not self._closed:
            self._client.close()
            self._closed = True

    def upsert_single(self, docs: Sequence[DataObject]) -> None:
        collection = self._collection
        for doc in docs:
            collection.update_one(upsert_filter(doc), upsert_update(doc), upsert=True)

    def upsert_bulk(self, docs: Sequence[DataObject]) -> None:
        if not docs:
            return
        requests = [UpdateOne(upsert_filter(doc), upsert_update(doc), upsert=True) for doc in docs]
        self._collection.bulk_write(requests, ordered=True)

    def get_ordered_with_limit(self, limit: int) -> List[DataObject]:
        check_limit(limit)
        if limit == 0:
            return []
        projection = {name: True for name in FIELDS}
        projection["_id"] = False
        cursor = self._collection.find({}, projection).sort("start_time", DESCENDING).limit(limit)
        return [DataObject.model_validate(doc) for doc in cursor]

    def table_size_in_kb(self) -> int:
        # The $collStats stage replaces the deprecated collStats command.
        stats = list(self._collection.aggregate([{"$collStats": {"storageStats": {}}}]))
        storage = stats[0].get("storageStats", {}) if stats else {}
        raw = storage.get("totalSize")
        if raw is None and "storageSize" in storage:
            raw = storage["storageSize"] + storage.get("totalIndexSize", 0)
        return bytes_to_kb(self.name, raw)


__all__ = ["MongoDatabase", "upsert_filter", "upsert_update"]
