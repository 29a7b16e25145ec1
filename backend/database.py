from datetime import date, datetime
from typing import Iterable, Optional

import pymongo
from bson import ObjectId
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorClient

_database_url = "mongodb://localhost:27017"
_database_name = "eduspace"
_client: AsyncIOMotorClient | None = None
_db = None

def configure(database_url: str, database_name: str):
    """Point get_db at a new server; the client is created on first use."""
    global _database_url, _database_name, _client, _db
    _database_url, _database_name = database_url, database_name
    _client = None
    _db = None

async def get_db():
    global _client, _db
    if _client is None:
        _client = AsyncIOMotorClient(_database_url)
        _db = _client[_database_name]
    return _db

async def create_document(db, collection_name: str, data: dict):
    now = datetime.utcnow()
    data["created_at"] = now
    data["updated_at"] = now
    res = await db[collection_name].insert_one(data)
    data["_id"] = res.inserted_id
    return data

async def get_documents(db, collection_name: str, filter_dict: dict | None = None, limit: int | None = None, projection: dict | None = None):
    cursor = db[collection_name].find(filter_dict or {}, projection).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return [doc async for doc in cursor]

async def update_document(db, collection_name: str, doc_id: ObjectId, updates: dict, unset: Iterable[str] = ()):
    changes = {"$set": {**updates, "updated_at": datetime.utcnow()}}
    unset = list(unset)
    if unset:
        changes["$unset"] = {k: "" for k in unset}
    await db[collection_name].update_one({"_id": doc_id}, changes)
    return await db[collection_name].find_one({"_id": doc_id})

async def ensure_indexes(db):
    await db["users"].create_index("email", unique=True)
    await db["users"].create_index("google_id", unique=True, sparse=True)
    await db["users"].create_index("role")
    await db["listings"].create_index(
        [("location", pymongo.TEXT), ("name", pymongo.TEXT), ("description", pymongo.TEXT)]
    )
    await db["listings"].create_index([("space_type", 1), ("price", 1), ("capacity", 1)])
    await db["listings"].create_index("owner")
    await db["bookings"].create_index([("teacher", 1), ("status", 1)])
    await db["bookings"].create_index([("school", 1), ("status", 1)])
    await db["bookings"].create_index([("listing", 1), ("booking_date", 1)])

# Helpers

def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid id")
    return ObjectId(id_str)

def serialize(value):
    """Convert a Mongo document (or anything nested in one) into JSON-safe data.

    ``_id`` becomes ``id``; ObjectIds become strings and datetimes ISO strings.
    """
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            out["id" if k == "_id" else k] = serialize(v)
        return out
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value

async def populate(db, docs: list, field: str, collection_name: str, fields: Optional[Iterable[str]] = None):
    """Replace the ObjectId stored under ``field`` with a projection of the referenced document.

    References that no longer resolve are set to None.
    """
    ids = list({d[field] for d in docs if isinstance(d.get(field), ObjectId)})
    if not ids:
        return docs
    projection = {f: 1 for f in fields} if fields else None
    cursor = db[collection_name].find({"_id": {"$in": ids}}, projection)
    found = {doc["_id"]: doc async for doc in cursor}
    for d in docs:
        if isinstance(d.get(field), ObjectId):
            d[field] = found.get(d[field])
    return docs
