import math
from typing import Dict, FrozenSet

HALF_DAY_RATE = 0.6
CANCELLABLE = frozenset({"pending", "confirmed"})

# Admins may set any status; schools and teachers follow these rules
SCHOOL_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "rejected"}),
}


class BookingRuleError(ValueError):
    pass


class InvalidTransition(BookingRuleError):
    pass


class CapacityExceeded(BookingRuleError):
    pass


def quote_price(price: float, time_slot: str) -> float:
    if time_slot.startswith("Half Day"):
        # Halves round up, as the client displays them
        return math.floor(price * HALF_DAY_RATE + 0.5)
    return price


def can_cancel(status: str) -> bool:
    return status in CANCELLABLE


def check_cancel(status: str) -> str:
    if not can_cancel(status):
        raise InvalidTransition("Cannot cancel this booking")
    return "cancelled"


def check_school_transition(current: str, new: str) -> str:
    if new not in SCHOOL_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"Cannot change booking status from {current} to {new}")
    return new


def check_capacity(number_of_students: int, capacity: int) -> None:
    if number_of_students > capacity:
        raise CapacityExceeded(
            f"Number of students ({number_of_students}) exceeds the space capacity ({capacity})"
        )
