import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

import cascade
from database import create_document, get_db, get_documents, oid, populate, serialize, update_document
from policy import authorize, check_owner
from schemas import Listing, ListingUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])

OWNER_SUMMARY = ("name", "school_name", "phone", "email")
OWNER_DETAIL = OWNER_SUMMARY + ("address",)


def _range(low: Optional[float], high: Optional[float]) -> dict:
    q = {}
    if low is not None:
        q["$gte"] = low
    if high is not None:
        q["$lte"] = high
    return q


def build_listing_query(
    space_type: Optional[str] = None,
    location: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_capacity: Optional[int] = None,
    max_capacity: Optional[int] = None,
    search: Optional[str] = None,
) -> dict:
    """Public search filter: active listings matching every supplied criterion."""
    query = {"status": "active"}
    if space_type and space_type != "All":
        query["space_type"] = space_type
    if location:
        query["location"] = {"$regex": re.escape(location), "$options": "i"}
    price = _range(min_price, max_price)
    if price:
        query["price"] = price
    capacity = _range(min_capacity, max_capacity)
    if capacity:
        query["capacity"] = capacity
    if search:
        query["$text"] = {"$search": search}
    return query


async def load_listing(db, listing_id: str) -> dict:
    listing = await db["listings"].find_one({"_id": oid(listing_id)})
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


@router.get("")
async def list_listings(
    space_type: Optional[str] = None,
    location: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_capacity: Optional[int] = None,
    max_capacity: Optional[int] = None,
    search: Optional[str] = None,
    db=Depends(get_db),
):
    query = build_listing_query(space_type, location, min_price, max_price, min_capacity, max_capacity, search)
    docs = await get_documents(db, "listings", query)
    await populate(db, docs, "owner", "users", OWNER_SUMMARY)
    return {"success": True, "count": len(docs), "listings": serialize(docs)}


@router.get("/my-listings")
async def my_listings(db=Depends(get_db), current_user: dict = Depends(authorize("list_mine", "listing"))):
    docs = await get_documents(db, "listings", {"owner": current_user["_id"]})
    return {"success": True, "count": len(docs), "listings": serialize(docs)}


@router.get("/{listing_id}")
async def get_listing(listing_id: str, db=Depends(get_db)):
    listing = await load_listing(db, listing_id)
    await populate(db, [listing], "owner", "users", OWNER_DETAIL)
    return {"success": True, "listing": serialize(listing)}


@router.post("", status_code=201)
async def create_listing(
    payload: Listing,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("create", "listing")),
):
    data = payload.model_dump()
    data["owner"] = current_user["_id"]
    listing = await create_document(db, "listings", data)
    logger.info("User %s created listing %s", current_user["_id"], listing["_id"])
    return {"success": True, "message": "Listing created successfully", "listing": serialize(listing)}


@router.put("/{listing_id}")
async def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("update", "listing")),
):
    listing = await load_listing(db, listing_id)
    check_owner("update", "listing", current_user, listing)

    merged = {k: v for k, v in listing.items() if k in Listing.model_fields}
    merged.update(payload.model_dump(exclude_unset=True))
    try:
        validated = Listing.model_validate(merged)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    updated = await update_document(db, "listings", listing["_id"], validated.model_dump())
    return {"success": True, "message": "Listing updated successfully", "listing": serialize(updated)}


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: str,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("delete", "listing")),
):
    listing = await load_listing(db, listing_id)
    check_owner("delete", "listing", current_user, listing)
    await cascade.delete_listing(db, listing["_id"])
    return {"success": True, "message": "Listing deleted successfully"}
