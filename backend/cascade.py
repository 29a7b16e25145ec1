import logging
from typing import List

from bson import ObjectId

logger = logging.getLogger(__name__)


async def _forget_favorites(db, listing_ids: List[ObjectId]) -> None:
    if listing_ids:
        await db["users"].update_many(
            {"favorites": {"$in": listing_ids}},
            {"$pull": {"favorites": {"$in": listing_ids}}},
        )


# Children go before parents so no booking outlives its listing
async def delete_listing(db, listing_id: ObjectId) -> int:
    res = await db["bookings"].delete_many({"listing": listing_id})
    await db["listings"].delete_one({"_id": listing_id})
    await _forget_favorites(db, [listing_id])
    logger.info("Deleted listing %s and %d booking(s)", listing_id, res.deleted_count)
    return res.deleted_count


async def delete_user(db, user: dict) -> None:
    user_id = user["_id"]
    listing_ids: List[ObjectId] = []
    if user["role"] == "school":
        listing_ids = [doc["_id"] async for doc in db["listings"].find({"owner": user_id}, {"_id": 1})]
        await db["bookings"].delete_many({"$or": [{"listing": {"$in": listing_ids}}, {"school": user_id}]})
        await db["listings"].delete_many({"owner": user_id})
    elif user["role"] == "teacher":
        await db["bookings"].delete_many({"teacher": user_id})
    await db["users"].delete_one({"_id": user_id})
    await _forget_favorites(db, listing_ids)
    logger.info("Deleted %s user %s and associated data", user["role"], user_id)
