from fastapi import APIRouter, Depends, HTTPException

from database import get_db, oid, serialize, update_document
from policy import authorize
from schemas import ProfileUpdate
from security import strip_sensitive

router = APIRouter(prefix="/api/users", tags=["users"])

FAVORITE_SUMMARY = ("name", "space_type", "location", "price", "images")


async def _favorites(db, user: dict, fields=None) -> list:
    ids = user.get("favorites", [])
    if not ids:
        return []
    docs = {doc["_id"]: doc async for doc in db["listings"].find({"_id": {"$in": ids}}, {f: 1 for f in fields} if fields else None)}
    # keep the order the user saved them in
    return [docs[i] for i in ids if i in docs]


@router.get("/profile")
async def get_profile(db=Depends(get_db), current_user: dict = Depends(authorize("read", "profile"))):
    user = strip_sensitive(current_user)
    user["favorites"] = await _favorites(db, current_user, FAVORITE_SUMMARY)
    return {"success": True, "user": serialize(user)}


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("update", "profile")),
):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    user = await update_document(db, "users", current_user["_id"], updates)
    return {"success": True, "message": "Profile updated successfully", "user": serialize(strip_sensitive(user))}


@router.get("/favorites")
async def get_favorites(db=Depends(get_db), current_user: dict = Depends(authorize("manage", "favorites"))):
    favorites = await _favorites(db, current_user)
    return {"success": True, "count": len(favorites), "favorites": serialize(favorites)}


@router.post("/favorites/{listing_id}")
async def add_favorite(
    listing_id: str,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("manage", "favorites")),
):
    listing_oid = oid(listing_id)
    if listing_oid in current_user.get("favorites", []):
        raise HTTPException(status_code=400, detail="Listing already in favorites")
    if not await db["listings"].find_one({"_id": listing_oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Listing not found")
    favorites = current_user.get("favorites", []) + [listing_oid]
    await update_document(db, "users", current_user["_id"], {"favorites": favorites})
    return {"success": True, "message": "Added to favorites", "favorites": serialize(favorites)}


@router.delete("/favorites/{listing_id}")
async def remove_favorite(
    listing_id: str,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("manage", "favorites")),
):
    listing_oid = oid(listing_id)
    favorites = [f for f in current_user.get("favorites", []) if f != listing_oid]
    await update_document(db, "users", current_user["_id"], {"favorites": favorites})
    return {"success": True, "message": "Removed from favorites", "favorites": serialize(favorites)}
