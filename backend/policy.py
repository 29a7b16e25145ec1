from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from fastapi import Depends, HTTPException

from security import get_current_user

OwnerCheck = Callable[[dict, dict], bool]


def _same(a, b) -> bool:
    return a is not None and str(a) == str(b)


def owns_listing(user: dict, listing: dict) -> bool:
    return _same(listing.get("owner"), user["_id"])


def is_booking_teacher(user: dict, booking: dict) -> bool:
    return _same(booking.get("teacher"), user["_id"])


def is_booking_school(user: dict, booking: dict) -> bool:
    return _same(booking.get("school"), user["_id"])


def is_booking_party(user: dict, booking: dict) -> bool:
    return is_booking_teacher(user, booking) or is_booking_school(user, booking)


@dataclass(frozen=True)
class Policy:
    roles: Optional[FrozenSet[str]] = None  # None means any authenticated role
    owner_check: Optional[OwnerCheck] = None
    denied: str = "Not authorized to access this route"


def _roles(*names: str) -> FrozenSet[str]:
    return frozenset(names)


POLICIES = {
    ("create", "listing"): Policy(_roles("school")),
    ("list_mine", "listing"): Policy(_roles("school")),
    ("update", "listing"): Policy(_roles("school"), owns_listing, "Not authorized to update this listing"),
    ("delete", "listing"): Policy(_roles("school"), owns_listing, "Not authorized to delete this listing"),
    ("create", "booking"): Policy(_roles("teacher")),
    ("list_mine", "booking"): Policy(_roles("teacher")),
    ("list_requests", "booking"): Policy(_roles("school")),
    ("read", "booking"): Policy(None, is_booking_party, "Not authorized to view this booking"),
    ("update_status", "booking"): Policy(_roles("school"), is_booking_school, "Not authorized to update this booking"),
    ("cancel", "booking"): Policy(_roles("teacher"), is_booking_teacher, "Not authorized to cancel this booking"),
    ("read", "profile"): Policy(),
    ("update", "profile"): Policy(),
    ("manage", "favorites"): Policy(_roles("teacher")),
    ("moderate", "admin"): Policy(_roles("admin")),
}


def check_role(operation: str, resource: str, user: dict) -> None:
    policy = POLICIES[(operation, resource)]
    if policy.roles is not None and user.get("role") not in policy.roles:
        raise HTTPException(
            status_code=403,
            detail=f"User role '{user.get('role')}' is not authorized to access this route",
        )


def check_owner(operation: str, resource: str, user: dict, document: dict) -> None:
    policy = POLICIES[(operation, resource)]
    if policy.owner_check is not None and not policy.owner_check(user, document):
        raise HTTPException(status_code=403, detail=policy.denied)


def authorize(operation: str, resource: str):
    """Dependency resolving the current user and applying the role gate."""
    if (operation, resource) not in POLICIES:
        raise KeyError(f"No policy for {operation} on {resource}")

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        check_role(operation, resource, user)
        return user

    return dependency
