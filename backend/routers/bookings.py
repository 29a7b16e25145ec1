import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

import workflow
from database import create_document, get_db, get_documents, oid, populate, serialize, update_document
from policy import authorize, check_owner
from schemas import Booking, BookingCreate, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])

LISTING_SUMMARY = ("name", "space_type", "location")
TEACHER_SUMMARY = ("name", "email", "phone", "subject")
SCHOOL_SUMMARY = ("school_name", "email", "phone")


async def load_booking(db, booking_id: str) -> dict:
    booking = await db["bookings"].find_one({"_id": oid(booking_id)})
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


async def with_parties(db, docs: list, listing=LISTING_SUMMARY, teacher=TEACHER_SUMMARY, school=SCHOOL_SUMMARY) -> list:
    if listing:
        await populate(db, docs, "listing", "listings", listing)
    if teacher:
        await populate(db, docs, "teacher", "users", teacher)
    if school:
        await populate(db, docs, "school", "users", school)
    return docs


@router.post("", status_code=201)
async def create_booking(
    payload: BookingCreate,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("create", "booking")),
):
    listing = await db["listings"].find_one({"_id": oid(payload.listing_id)})
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    try:
        workflow.check_capacity(payload.number_of_students, listing["capacity"])
    except workflow.CapacityExceeded as e:
        raise HTTPException(status_code=400, detail=str(e))

    booking = Booking(
        listing=str(listing["_id"]),
        teacher=str(current_user["_id"]),
        school=str(listing["owner"]),
        booking_date=payload.booking_date,
        time_slot=payload.time_slot,
        total_price=workflow.quote_price(listing["price"], payload.time_slot),
        purpose=payload.purpose,
        number_of_students=payload.number_of_students,
        special_requirements=payload.special_requirements,
        payment_method=payload.payment_method,
    )
    data = booking.model_dump()
    data.update(
        listing=listing["_id"],
        teacher=current_user["_id"],
        school=listing["owner"],
        booking_date=datetime.combine(payload.booking_date, datetime.min.time()),
    )
    doc = await create_document(db, "bookings", data)
    logger.info("Teacher %s requested booking %s on listing %s", current_user["_id"], doc["_id"], listing["_id"])
    await with_parties(db, [doc])
    return {"success": True, "message": "Booking request created successfully", "booking": serialize(doc)}


@router.get("/my-bookings")
async def my_bookings(db=Depends(get_db), current_user: dict = Depends(authorize("list_mine", "booking"))):
    docs = await get_documents(db, "bookings", {"teacher": current_user["_id"]})
    await with_parties(db, docs, listing=LISTING_SUMMARY + ("images",), teacher=None, school=("school_name", "phone"))
    return {"success": True, "count": len(docs), "bookings": serialize(docs)}


@router.get("/requests")
async def booking_requests(db=Depends(get_db), current_user: dict = Depends(authorize("list_requests", "booking"))):
    docs = await get_documents(db, "bookings", {"school": current_user["_id"]})
    await with_parties(db, docs, school=None)
    return {"success": True, "count": len(docs), "bookings": serialize(docs)}


@router.get("/{booking_id}")
async def get_booking(booking_id: str, db=Depends(get_db), current_user: dict = Depends(authorize("read", "booking"))):
    booking = await load_booking(db, booking_id)
    check_owner("read", "booking", current_user, booking)
    await populate(db, [booking], "listing", "listings")
    await populate(db, [booking], "teacher", "users", TEACHER_SUMMARY + ("experience",))
    await populate(db, [booking], "school", "users", SCHOOL_SUMMARY + ("address",))
    return {"success": True, "booking": serialize(booking)}


@router.put("/{booking_id}/status")
async def update_booking_status(
    booking_id: str,
    payload: StatusUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("update_status", "booking")),
):
    booking = await load_booking(db, booking_id)
    check_owner("update_status", "booking", current_user, booking)
    try:
        new_status = workflow.check_school_transition(booking["status"], payload.status)
    except workflow.InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    booking = await update_document(db, "bookings", booking["_id"], {"status": new_status})
    logger.info("Booking %s %s by school %s", booking["_id"], new_status, current_user["_id"])
    await with_parties(db, [booking], teacher=("name", "email", "phone"), school=None)
    return {"success": True, "message": f"Booking {new_status} successfully", "booking": serialize(booking)}


@router.put("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    db=Depends(get_db),
    current_user: dict = Depends(authorize("cancel", "booking")),
):
    booking = await load_booking(db, booking_id)
    check_owner("cancel", "booking", current_user, booking)
    try:
        new_status = workflow.check_cancel(booking["status"])
    except workflow.InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    booking = await update_document(db, "bookings", booking["_id"], {"status": new_status})
    logger.info("Booking %s cancelled by teacher %s", booking["_id"], current_user["_id"])
    return {"success": True, "message": "Booking cancelled successfully", "booking": serialize(booking)}
