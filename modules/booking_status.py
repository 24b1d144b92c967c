"""Booking lifecycle.

    confirmed -> picked-up -> return-requested -> returned
    confirmed -> cancelled          (agency, reason required)
    picked-up -> returned           (agency, once the end date is reached)

The checks here only decide which controls the UI offers. The backend
operations in modules.rpc run the same checks again before writing and are the
authority on every mutation.
"""
import datetime
from enum import Enum

from utils import parse_date


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PICKED_UP = "picked-up"
    RETURN_REQUESTED = "return-requested"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class Actor(str, Enum):
    RENTER = "renter"
    AGENCY = "agency"


class InvalidTransitionError(ValueError):
    pass


TERMINAL_STATUSES = {BookingStatus.RETURNED.value, BookingStatus.CANCELLED.value}

# Statuses that still hold the vehicle for their date range
ACTIVE_STATUSES = [
    BookingStatus.CONFIRMED.value,
    BookingStatus.PICKED_UP.value,
    BookingStatus.RETURN_REQUESTED.value,
]

# (from, to) -> actor allowed to make the move
TRANSITIONS = {
    (BookingStatus.CONFIRMED.value, BookingStatus.PICKED_UP.value): Actor.AGENCY,
    (BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value): Actor.AGENCY,
    (BookingStatus.PICKED_UP.value, BookingStatus.RETURN_REQUESTED.value): Actor.RENTER,
    (BookingStatus.PICKED_UP.value, BookingStatus.RETURNED.value): Actor.AGENCY,
    (BookingStatus.RETURN_REQUESTED.value, BookingStatus.RETURNED.value): Actor.AGENCY,
}

STATUS_LABELS = {
    BookingStatus.CONFIRMED.value: "Active",
    BookingStatus.PICKED_UP.value: "Picked up",
    BookingStatus.RETURN_REQUESTED.value: "Return requested",
    BookingStatus.RETURNED.value: "Returned",
    BookingStatus.CANCELLED.value: "Cancelled",
}

PROGRESS_STEPS = [
    BookingStatus.CONFIRMED.value,
    BookingStatus.PICKED_UP.value,
    BookingStatus.RETURNED.value,
]


def _value(status):
    return status.value if isinstance(status, Enum) else status


def is_terminal(status):
    return _value(status) in TERMINAL_STATUSES


def _precondition_error(booking, target, today, reason):
    """Why the move to ``target`` is not allowed yet, or None."""
    if target == BookingStatus.PICKED_UP.value:
        start = parse_date(booking.get("start_date"))
        if start is None or today < start:
            return "The vehicle cannot be picked up before the booking start date."
    elif target == BookingStatus.CANCELLED.value:
        if not reason or not str(reason).strip():
            return "A cancellation reason is required."
    elif target == BookingStatus.RETURNED.value and booking.get("status") == BookingStatus.PICKED_UP.value:
        # Direct return by the agency, without a renter request
        end = parse_date(booking.get("end_date"))
        if end is None or today < end:
            return "The vehicle cannot be marked as returned before the booking end date."
    return None


def check_transition(booking, target, actor, today=None, reason=None):
    """Raise InvalidTransitionError unless ``actor`` may move ``booking`` to ``target``."""
    today = today or datetime.date.today()
    current = booking.get("status")
    target = _value(target)
    actor = Actor(_value(actor))

    if is_terminal(current):
        raise InvalidTransitionError(f"Booking is already {current}.")
    allowed_actor = TRANSITIONS.get((current, target))
    if allowed_actor is None:
        raise InvalidTransitionError(f"Cannot move a booking from {current} to {target}.")
    if allowed_actor != actor:
        raise InvalidTransitionError(f"Only the {allowed_actor.value} can move a booking to {target}.")
    error = _precondition_error(booking, target, today, reason)
    if error:
        raise InvalidTransitionError(error)


def next_status(booking, target, actor, today=None, reason=None):
    """Resulting status of an attempted move; illegal moves leave it unchanged."""
    try:
        check_transition(booking, target, actor, today=today, reason=reason)
    except InvalidTransitionError:
        return booking.get("status")
    return _value(target)


def available_actions(booking, actor, today=None):
    """Target statuses a control may be offered for."""
    today = today or datetime.date.today()
    current = booking.get("status")
    actor = Actor(_value(actor))
    if is_terminal(current):
        return []
    actions = []
    for (source, target), allowed_actor in TRANSITIONS.items():
        if source != current or allowed_actor != actor:
            continue
        # The reason is collected by the cancellation dialog
        if target == BookingStatus.CANCELLED.value or _precondition_error(booking, target, today, None) is None:
            actions.append(target)
    return actions


def status_label(status):
    """Human label for a status; unknown values are shown as they are."""
    value = _value(status)
    return STATUS_LABELS.get(value, value if value is not None else "")


def progress_percent(status):
    value = _value(status)
    if value == BookingStatus.RETURN_REQUESTED.value:
        value = BookingStatus.PICKED_UP.value
    if value not in PROGRESS_STEPS:
        return 0
    return int(PROGRESS_STEPS.index(value) / (len(PROGRESS_STEPS) - 1) * 100)


def can_review(booking, has_review, today=None):
    today = today or datetime.date.today()
    end = parse_date(booking.get("end_date"))
    if end is None or has_review:
        return False
    if booking.get("status") == BookingStatus.CANCELLED.value:
        return False
    return end < today
