"""
Document store access

Every collection is a bag of schema-less documents keyed by a string id. The
MongoDB backend is used whenever DATABASE_URL is configured; the memory backend
keeps the same contract in-process for development and tests.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import AppConfig
from errors import StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def flatten_fields(fields: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Nested maps become dotted keys so that ``$set`` merges them instead of replacing."""
    flat: Dict[str, Any] = {}
    for key, value in fields.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            flat.update(flatten_fields(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def deep_merge(target: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in fields.items():
        if isinstance(value, dict) and value and isinstance(target.get(key), dict):
            deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    _id = doc.pop("_id", None)
    if not doc.get("id") and _id is not None:
        doc["id"] = str(_id)
    return doc


class DocumentStore:
    """Collection-scoped CRUD and simple equality queries."""

    backend = "abstract"

    def insert(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> str:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """Merge ``fields`` into an existing document. False if it does not exist."""
        raise NotImplementedError

    def merge(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Deep-merge ``fields`` into the document, creating it when missing.

        Nested maps are merged key by key; lists and scalars are replaced.
        """
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    def find(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def collection_names(self) -> List[str]:
        raise NotImplementedError


class MongoDocumentStore(DocumentStore):
    backend = "mongodb"

    def __init__(self, db: Database):
        self.db = db

    def _call(self, action: str, collection: str, fn):
        try:
            return fn()
        except PyMongoError as e:
            raise StoreError(f"Database error while trying to {action} in {collection}") from e

    def insert(self, collection, doc_id, doc):
        data = dict(doc, _id=doc_id)
        self._call("insert", collection, lambda: self.db[collection].insert_one(data))
        return doc_id

    def get(self, collection, doc_id):
        doc = self._call("read", collection, lambda: self.db[collection].find_one({"_id": doc_id}))
        return serialize_doc(doc)

    def update(self, collection, doc_id, fields):
        res = self._call(
            "update", collection,
            lambda: self.db[collection].update_one({"_id": doc_id}, {"$set": fields}),
        )
        return res.matched_count > 0

    def merge(self, collection, doc_id, fields):
        flat = flatten_fields(fields)
        self._call(
            "save", collection,
            lambda: self.db[collection].update_one({"_id": doc_id}, {"$set": flat}, upsert=True),
        )

    def delete(self, collection, doc_id):
        res = self._call("delete", collection, lambda: self.db[collection].delete_one({"_id": doc_id}))
        return res.deleted_count > 0

    def find(self, collection, where=None, order_by=None, descending=False, limit=None):
        def run():
            cursor = self.db[collection].find(where or {})
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return [serialize_doc(x) for x in cursor]

        return self._call("list", collection, run)

    def collection_names(self):
        return self._call("list collections", self.db.name, self.db.list_collection_names)


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store; documents are copied on the way in and out."""

    backend = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _bucket(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def insert(self, collection, doc_id, doc):
        self._bucket(collection)[doc_id] = copy.deepcopy(doc)
        return doc_id

    def get(self, collection, doc_id):
        doc = self._bucket(collection).get(doc_id)
        if doc is None:
            return None
        out = copy.deepcopy(doc)
        out.setdefault("id", doc_id)
        return out

    def update(self, collection, doc_id, fields):
        bucket = self._bucket(collection)
        if doc_id not in bucket:
            return False
        bucket[doc_id].update(copy.deepcopy(fields))
        return True

    def merge(self, collection, doc_id, fields):
        deep_merge(self._bucket(collection).setdefault(doc_id, {}), fields)

    def delete(self, collection, doc_id):
        return self._bucket(collection).pop(doc_id, None) is not None

    def find(self, collection, where=None, order_by=None, descending=False, limit=None):
        items = []
        for doc_id, doc in self._bucket(collection).items():
            if where and any(doc.get(k) != v for k, v in where.items()):
                continue
            out = copy.deepcopy(doc)
            out.setdefault("id", doc_id)
            items.append(out)
        if order_by:
            present = [x for x in items if x.get(order_by) is not None]
            missing = [x for x in items if x.get(order_by) is None]
            present.sort(key=lambda x: x[order_by], reverse=descending)
            items = present + missing
        if limit:
            items = items[:limit]
        return items

    def collection_names(self):
        return [name for name, bucket in self._collections.items() if bucket]


def connect(config: AppConfig) -> DocumentStore:
    if not config.database_url:
        logger.warning("DATABASE_URL not set, using in-memory document store (data is not persisted)")
        return MemoryDocumentStore()
    client = MongoClient(config.database_url, tz_aware=True)
    logger.info(f"Using MongoDB database '{config.database_name}'")
    return MongoDocumentStore(client[config.database_name])


def create_document(
    store: DocumentStore,
    collection_name: str,
    data: Union[BaseModel, Dict[str, Any]],
    timestamp_field: str = "timestamp",
) -> str:
    """Mint an id, stamp the creation time and write the full document."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    doc_id = str(uuid.uuid4())
    data_dict["id"] = doc_id
    data_dict[timestamp_field] = utcnow()
    store.insert(collection_name, doc_id, data_dict)
    return doc_id


def get_documents(
    store: DocumentStore,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    order_by: Optional[str] = None,
    descending: bool = True,
) -> List[Dict[str, Any]]:
    return store.find(collection_name, filter_dict, order_by=order_by, descending=descending, limit=limit)
