import asyncio
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

import cascade
from database import get_db, get_documents, oid, populate, serialize, update_document
from policy import authorize
from schemas import SENSITIVE_USER_FIELDS, StatusUpdate

logger = logging.getLogger(__name__)

# Every route here is admin-only and skips ownership checks
router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(authorize("moderate", "admin"))],
)

REVENUE_STATUSES = ["confirmed", "completed"]


def _regex(term: str) -> dict:
    return {"$regex": re.escape(term), "$options": "i"}


def _contains(value: Optional[str], term: str) -> bool:
    return bool(value) and term in value.lower()


def booking_matches(booking: dict, term: str) -> bool:
    """In-memory search over a booking's populated listing, parties and purpose."""
    term = term.lower()
    listing = booking.get("listing") or {}
    teacher = booking.get("teacher") or {}
    school = booking.get("school") or {}
    return (
        _contains(listing.get("name"), term)
        or _contains(teacher.get("name"), term)
        or _contains(teacher.get("email"), term)
        or _contains(school.get("school_name"), term)
        or _contains(booking.get("purpose"), term)
    )


async def _revenue(db) -> float:
    pipeline = [
        {"$match": {"status": {"$in": REVENUE_STATUSES}}},
        {"$group": {"_id": None, "total": {"$sum": "$total_price"}}},
    ]
    result = [doc async for doc in db["bookings"].aggregate(pipeline)]
    return result[0]["total"] if result else 0


@router.get("/stats")
async def stats(db=Depends(get_db)):
    (
        total_users,
        total_teachers,
        total_schools,
        total_listings,
        active_listings,
        total_bookings,
        pending_bookings,
        confirmed_bookings,
        total_revenue,
    ) = await asyncio.gather(
        db["users"].count_documents({"role": {"$ne": "admin"}}),
        db["users"].count_documents({"role": "teacher"}),
        db["users"].count_documents({"role": "school"}),
        db["listings"].count_documents({}),
        db["listings"].count_documents({"status": "active"}),
        db["bookings"].count_documents({}),
        db["bookings"].count_documents({"status": "pending"}),
        db["bookings"].count_documents({"status": "confirmed"}),
        _revenue(db),
    )

    recent = await get_documents(db, "bookings", limit=10)
    await populate(db, recent, "listing", "listings", ("name", "space_type"))
    await populate(db, recent, "teacher", "users", ("name", "email"))
    await populate(db, recent, "school", "users", ("school_name",))

    return {
        "success": True,
        "stats": {
            "total_users": total_users,
            "total_teachers": total_teachers,
            "total_schools": total_schools,
            "total_listings": total_listings,
            "active_listings": active_listings,
            "total_bookings": total_bookings,
            "pending_bookings": pending_bookings,
            "confirmed_bookings": confirmed_bookings,
            "total_revenue": total_revenue,
        },
        "recent_bookings": serialize(recent),
    }


@router.get("/users")
async def list_users(search: Optional[str] = None, role: Optional[str] = None, db=Depends(get_db)):
    query = {"role": {"$ne": "admin"}}
    if role and role != "all":
        query["role"] = {"$eq": role, "$ne": "admin"}
    if search:
        query["$or"] = [
            {"name": _regex(search)},
            {"email": _regex(search)},
            {"school_name": _regex(search)},
            {"phone": _regex(search)},
        ]
    users = await get_documents(db, "users", query, projection={f: 0 for f in SENSITIVE_USER_FIELDS})
    return {"success": True, "count": len(users), "users": serialize(users)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, db=Depends(get_db)):
    user = await db["users"].find_one({"_id": oid(user_id)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user["role"] == "admin":
        raise HTTPException(status_code=403, detail="Cannot delete admin users")
    await cascade.delete_user(db, user)
    return {"success": True, "message": f'User "{user["name"]}" and associated data deleted successfully'}


@router.get("/listings")
async def list_listings(search: Optional[str] = None, db=Depends(get_db)):
    query = {}
    if search:
        query["$or"] = [
            {"name": _regex(search)},
            {"location": _regex(search)},
            {"space_type": _regex(search)},
        ]
    listings = await get_documents(db, "listings", query)
    await populate(db, listings, "owner", "users", ("name", "school_name", "email", "phone"))
    return {"success": True, "count": len(listings), "listings": serialize(listings)}


@router.delete("/listings/{listing_id}")
async def delete_listing(listing_id: str, db=Depends(get_db)):
    listing = await db["listings"].find_one({"_id": oid(listing_id)})
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    await cascade.delete_listing(db, listing["_id"])
    return {"success": True, "message": f'Listing "{listing["name"]}" deleted successfully'}


@router.get("/bookings")
async def list_bookings(search: Optional[str] = None, status: Optional[str] = None, db=Depends(get_db)):
    query = {}
    if status and status != "all":
        query["status"] = status
    bookings = await get_documents(db, "bookings", query)
    await populate(db, bookings, "listing", "listings", ("name", "space_type", "location", "price"))
    await populate(db, bookings, "teacher", "users", ("name", "email", "phone"))
    await populate(db, bookings, "school", "users", ("school_name", "email", "phone"))
    if search:
        bookings = [b for b in bookings if booking_matches(b, search)]
    return {"success": True, "count": len(bookings), "bookings": serialize(bookings)}


@router.put("/bookings/{booking_id}/status")
async def update_booking_status(booking_id: str, payload: StatusUpdate, db=Depends(get_db)):
    booking = await db["bookings"].find_one({"_id": oid(booking_id)})
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    booking = await update_document(db, "bookings", booking["_id"], {"status": payload.status})
    logger.info("Admin forced booking %s to %s", booking["_id"], payload.status)
    await populate(db, [booking], "listing", "listings", ("name", "space_type", "location"))
    await populate(db, [booking], "teacher", "users", ("name", "email", "phone"))
    await populate(db, [booking], "school", "users", ("school_name", "email", "phone"))
    return {"success": True, "message": f'Booking status updated to "{payload.status}"', "booking": serialize(booking)}


@router.delete("/bookings/{booking_id}")
async def delete_booking(booking_id: str, db=Depends(get_db)):
    booking = await db["bookings"].find_one({"_id": oid(booking_id)})
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    await db["bookings"].delete_one({"_id": booking["_id"]})
    logger.info("Admin deleted booking %s", booking["_id"])
    return {"success": True, "message": "Booking deleted successfully"}
