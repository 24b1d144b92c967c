"""Backend operations over MongoDB.

Every page goes through these functions instead of writing to the database
directly. Each one returns an RpcResult (payload or typed error) and never
raises into the UI. Authorization and transition legality are checked here,
whatever the page decided to display.
"""
import datetime
import functools
import logging
import re

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo.errors import PyMongoError

import config
from models.agency_model import AgencyModel, AgencySettingsModel
from models.location_model import LocationModel
from models.message_model import ConversationModel, MessageModel
from models.booking_model import BookingModel
from models.review_model import ReviewModel
from models.rpc_result import RpcResult
from modules.booking_status import (
    ACTIVE_STATUSES,
    Actor,
    BookingStatus,
    InvalidTransitionError,
    can_review,
    check_transition,
)
from modules.pricing import quote_booking, validate_date_range
from modules import revenue
from utils import parse_date

logger = logging.getLogger(__name__)


def _db():
    return config.db


def rpc(func):
    """Turn database and validation failures into error results."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"{func.__name__}: invalid input: {e}")
            return RpcResult.failure("validation", "Some of the submitted information is invalid.")
        except PyMongoError as e:
            logger.error(f"{func.__name__}: database error: {e}")
            return RpcResult.failure("database", "The service is temporarily unavailable. Please try again.")
    return wrapper


def _object_id(value):
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def find_by_id(collection, record_id):
    oid = _object_id(record_id)
    if oid is None:
        return None
    return _db()[collection].find_one({"_id": oid})


def _require_admin(admin_id):
    admin = find_by_id("users", admin_id)
    if not admin or admin.get("role") != "admin":
        return RpcResult.failure("forbidden", "Administrator access is required.")
    return None


# ----------------------------------------------------------------------------
# Availability
# ----------------------------------------------------------------------------

def _busy_vehicle_ids(start, end):
    """Vehicles holding an active booking that overlaps [start, end]."""
    return set(_db().bookings.distinct("vehicle_id", {
        "status": {"$in": ACTIVE_STATUSES},
        "start_date": {"$lte": end.isoformat()},
        "end_date": {"$gte": start.isoformat()},
    }))


@rpc
def get_available_vehicles(start_date, end_date, wilaya=None):
    """Ids of vehicles that can be booked for the whole range."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None or end < start:
        return RpcResult.failure("validation", "Invalid date range.")

    verified_agencies = [
        str(a["_id"]) for a in _db().agencies.find({"verification_status": "verified"}, {"_id": 1})
    ]
    query = {"is_available": True, "is_deleted": {"$ne": True}, "agency_id": {"$in": verified_agencies}}
    if wilaya:
        query["wilaya"] = wilaya

    busy = _busy_vehicle_ids(start, end)
    vehicle_ids = [
        str(v["_id"]) for v in _db().vehicles.find(query, {"_id": 1}) if str(v["_id"]) not in busy
    ]
    return RpcResult.success(vehicle_ids)


@rpc
def get_unavailable_dates_for_vehicle(vehicle_id):
    bookings = _db().bookings.find(
        {"vehicle_id": str(vehicle_id), "status": {"$in": ACTIVE_STATUSES}},
        {"start_date": 1, "end_date": 1},
    ).sort("start_date", 1)
    intervals = [{"start_date": b["start_date"], "end_date": b["end_date"]} for b in bookings]
    return RpcResult.success(intervals)


@rpc
def search_vehicles(start_date, end_date, wilaya=None, transmission=None, max_daily_rate=None):
    """Available vehicle documents for a search, cheapest first."""
    available = get_available_vehicles(start_date, end_date, wilaya)
    if not available.ok:
        return available
    ids = [_object_id(v) for v in available.data]
    query = {"_id": {"$in": ids}}
    if transmission:
        query["transmission"] = transmission
    if max_daily_rate:
        query["daily_rate_dzd"] = {"$lte": max_daily_rate}
    vehicles = list(_db().vehicles.find(query).sort("daily_rate_dzd", 1))
    return RpcResult.success(vehicles)


# ----------------------------------------------------------------------------
# Bookings
# ----------------------------------------------------------------------------

@rpc
def create_booking(user_id, vehicle_id, start_date, end_date, payment_method="cash", today=None):
    """Book a vehicle at its current daily rate. The price is never recomputed afterwards."""
    user = find_by_id("users", user_id)
    if not user:
        return RpcResult.failure("not_found", "User not found.")
    if user.get("role") != "renter":
        return RpcResult.failure("forbidden", "Only renter accounts can book vehicles.")
    if user.get("is_suspended"):
        return RpcResult.failure("forbidden", "This account is suspended.")

    vehicle = find_by_id("vehicles", vehicle_id)
    if not vehicle:
        return RpcResult.failure("not_found", "Vehicle not found.")

    error = validate_date_range(start_date, end_date, today)
    if error:
        return RpcResult.failure("validation", error)

    available = get_available_vehicles(start_date, end_date)
    if not available.ok:
        return available
    if str(vehicle["_id"]) not in available.data:
        return RpcResult.failure("unavailable", "This vehicle is not available for the selected dates.")

    quote = quote_booking(start_date, end_date, vehicle["daily_rate_dzd"])
    booking = BookingModel(
        user_id=str(user["_id"]),
        vehicle_id=str(vehicle["_id"]),
        start_date=parse_date(start_date),
        end_date=parse_date(end_date),
        total_price=quote["total_price"],
        daily_rate=quote["daily_rate"],
        payment_method=payment_method,
        status=BookingStatus.CONFIRMED.value,
        created_at=datetime.datetime.now(),
    )
    booking_id = _db().bookings.insert_one(booking.to_document()).inserted_id

    # Two sessions may pass the availability check at the same time: the later booking gives way
    start, end = parse_date(start_date), parse_date(end_date)
    conflict = _db().bookings.find_one({
        "_id": {"$lt": booking_id},
        "vehicle_id": str(vehicle["_id"]),
        "status": {"$in": ACTIVE_STATUSES},
        "start_date": {"$lte": end.isoformat()},
        "end_date": {"$gte": start.isoformat()},
    })
    if conflict:
        _db().bookings.delete_one({"_id": booking_id})
        logger.warning(f"Booking {booking_id} rolled back, vehicle {vehicle['_id']} was booked by {conflict['_id']}")
        return RpcResult.failure("unavailable", "This vehicle is not available for the selected dates.")
    logger.info(f"Booking {booking_id} created for vehicle {vehicle['_id']} ({quote['rental_days']} days)")
    return RpcResult.success({"booking_id": str(booking_id), **quote})


def _agency_booking(booking_id, actor_id):
    """The booking if ``actor_id`` owns the agency of its vehicle, else an error result."""
    booking = find_by_id("bookings", booking_id)
    if not booking:
        return None, RpcResult.failure("not_found", "Booking not found.")
    vehicle = find_by_id("vehicles", booking.get("vehicle_id"))
    agency = find_by_id("agencies", vehicle.get("agency_id")) if vehicle else None
    if not agency or agency.get("owner_id") != str(actor_id):
        logger.warning(f"User {actor_id} tried to change booking {booking_id} of another agency")
        return None, RpcResult.failure("forbidden", "This booking does not belong to your agency.")
    return booking, None


def _apply_status(booking, target, extra=None):
    """Write the new status only if nobody changed the booking in between."""
    update = {"status": target, "updated_at": datetime.datetime.now()}
    update.update(extra or {})
    result = _db().bookings.update_one(
        {"_id": booking["_id"], "status": booking.get("status")},
        {"$set": update},
    )
    if result.modified_count != 1:
        return RpcResult.failure("invalid_transition", "The booking was updated in the meantime. Please reload.")
    logger.info(f"Booking {booking['_id']}: {booking.get('status')} -> {target}")
    return RpcResult.success({"booking_id": str(booking["_id"]), "status": target})


@rpc
def update_booking_status(booking_id, new_status, actor_id, today=None):
    """Agency-side transition (picked-up, returned)."""
    booking, error = _agency_booking(booking_id, actor_id)
    if error:
        return error
    try:
        check_transition(booking, new_status, Actor.AGENCY, today=today)
    except InvalidTransitionError as e:
        return RpcResult.failure("invalid_transition", str(e))
    return _apply_status(booking, BookingStatus(new_status).value)


@rpc
def cancel_booking(booking_id, reason, actor_id, today=None):
    booking, error = _agency_booking(booking_id, actor_id)
    if error:
        return error
    try:
        check_transition(booking, BookingStatus.CANCELLED, Actor.AGENCY, today=today, reason=reason)
    except InvalidTransitionError as e:
        return RpcResult.failure("invalid_transition", str(e))
    return _apply_status(booking, BookingStatus.CANCELLED.value, {"cancellation_reason": reason.strip()})


@rpc
def request_return(booking_id, user_id, today=None):
    """Renter declares the vehicle is being returned."""
    booking = find_by_id("bookings", booking_id)
    if not booking:
        return RpcResult.failure("not_found", "Booking not found.")
    if booking.get("user_id") != str(user_id):
        return RpcResult.failure("forbidden", "This booking is not yours.")
    try:
        check_transition(booking, BookingStatus.RETURN_REQUESTED, Actor.RENTER, today=today)
    except InvalidTransitionError as e:
        return RpcResult.failure("invalid_transition", str(e))
    return _apply_status(booking, BookingStatus.RETURN_REQUESTED.value)


def _with_vehicles(bookings):
    vehicle_ids = list({_object_id(b.get("vehicle_id")) for b in bookings})
    vehicles = {str(v["_id"]): v for v in _db().vehicles.find({"_id": {"$in": vehicle_ids}})}
    for b in bookings:
        b["vehicle"] = vehicles.get(b.get("vehicle_id"))
    return bookings


@rpc
def list_user_bookings(user_id):
    bookings = list(_db().bookings.find({"user_id": str(user_id)}).sort("start_date", -1))
    reviewed = set(_db().reviews.distinct("booking_id", {"user_id": str(user_id)}))
    for b in bookings:
        b["has_review"] = str(b["_id"]) in reviewed
    return RpcResult.success(_with_vehicles(bookings))


@rpc
def get_booking_details(booking_id, user_id):
    """Booking with its vehicle, agency and renter, as needed by the invoice."""
    booking = find_by_id("bookings", booking_id)
    if not booking or booking.get("user_id") != str(user_id):
        return RpcResult.failure("not_found", "Booking not found.")
    vehicle = find_by_id("vehicles", booking["vehicle_id"])
    agency = find_by_id("agencies", vehicle.get("agency_id")) if vehicle else None
    renter = find_by_id("users", booking["user_id"])
    if renter:
        renter.pop("password", None)
    return RpcResult.success({**booking, "vehicle": vehicle, "agency": agency, "renter": renter})


# ----------------------------------------------------------------------------
# Agencies
# ----------------------------------------------------------------------------

@rpc
def get_agency_for_owner(owner_id):
    return RpcResult.success(_db().agencies.find_one({"owner_id": str(owner_id)}))


@rpc
def submit_agency_application(owner_id, form):
    """Create the agency, or re-apply after a rejection. Either way it goes back to pending."""
    owner = find_by_id("users", owner_id)
    if not owner or owner.get("role") != "agency_owner":
        return RpcResult.failure("forbidden", "Only agency accounts can apply.")

    application = AgencyModel(**{**form, "owner_id": str(owner_id), "verification_status": "pending", "rejection_reason": None})
    document = application.model_dump()
    existing = _db().agencies.find_one({"owner_id": str(owner_id)})
    if existing:
        _db().agencies.update_one({"_id": existing["_id"]}, {"$set": document})
        agency_id = existing["_id"]
        logger.info(f"Agency {agency_id} re-applied for verification")
    else:
        document["created_at"] = datetime.datetime.now()
        agency_id = _db().agencies.insert_one(document).inserted_id
        logger.info(f"Agency {agency_id} submitted for verification")
    return RpcResult.success({"agency_id": str(agency_id), "reapplied": existing is not None})


@rpc
def approve_agency(agency_id, admin_id):
    error = _require_admin(admin_id)
    if error:
        return error
    result = _db().agencies.update_one(
        {"_id": _object_id(agency_id)},
        {"$set": {"verification_status": "verified", "rejection_reason": None}},
    )
    if result.matched_count != 1:
        return RpcResult.failure("not_found", "Agency not found.")
    logger.info(f"Agency {agency_id} approved by {admin_id}")
    return RpcResult.success({"agency_id": str(agency_id), "verification_status": "verified"})


@rpc
def reject_agency(agency_id, reason, admin_id):
    error = _require_admin(admin_id)
    if error:
        return error
    if not reason or not reason.strip():
        return RpcResult.failure("validation", "A rejection reason is required.")
    result = _db().agencies.update_one(
        {"_id": _object_id(agency_id)},
        {"$set": {"verification_status": "rejected", "rejection_reason": reason.strip()}},
    )
    if result.matched_count != 1:
        return RpcResult.failure("not_found", "Agency not found.")
    logger.info(f"Agency {agency_id} rejected by {admin_id}")
    return RpcResult.success({"agency_id": str(agency_id), "verification_status": "rejected"})


def _agency_vehicles(agency):
    """Every vehicle of the agency, archived ones included, so past bookings still count."""
    return list(_db().vehicles.find({"agency_id": str(agency["_id"])}))


def _is_listed(vehicle):
    return not vehicle.get("is_deleted")


@rpc
def list_agency_bookings(owner_id):
    agency = _db().agencies.find_one({"owner_id": str(owner_id)})
    if not agency:
        return RpcResult.failure("not_found", "Agency not found.")
    vehicle_ids = [str(v["_id"]) for v in _agency_vehicles(agency)]
    bookings = list(_db().bookings.find({"vehicle_id": {"$in": vehicle_ids}}).sort("start_date", -1))
    renters = {str(u["_id"]): u for u in _db().users.find(
        {"_id": {"$in": [_object_id(b["user_id"]) for b in bookings]}}, {"password": 0}
    )}
    for b in bookings:
        b["renter"] = renters.get(b.get("user_id"))
    return RpcResult.success(_with_vehicles(bookings))


@rpc
def get_agency_dashboard(owner_id, today=None):
    """Dashboard figures for the agency owned by ``owner_id``."""
    agency = _db().agencies.find_one({"owner_id": str(owner_id)})
    if not agency:
        return RpcResult.failure("not_found", "Agency not found.")
    vehicles = _agency_vehicles(agency)
    vehicle_ids = [str(v["_id"]) for v in vehicles]
    # Cancelled bookings earn nothing and do not occupy the vehicle
    bookings = list(_db().bookings.find({
        "vehicle_id": {"$in": vehicle_ids},
        "status": {"$ne": BookingStatus.CANCELLED.value},
    }))
    listed = sum(1 for v in vehicles if _is_listed(v))
    stats = revenue.agency_dashboard_stats(bookings, listed, today=today, clamp=config.OCCUPANCY_CLAMP)

    names = {str(v["_id"]): f"{v.get('make', '')} {v.get('model', '')}".strip() for v in vehicles}
    stats["top_vehicles"] = [
        {"vehicle_id": vid, "name": names.get(vid, vid), "revenue": amount}
        for vid, amount in stats["top_vehicles"]
    ]
    stats["recent_reviews"] = list(
        _db().reviews.find({"vehicle_id": {"$in": vehicle_ids}}).sort("created_at", -1).limit(5)
    )
    return RpcResult.success(stats)


# ----------------------------------------------------------------------------
# Reviews & users
# ----------------------------------------------------------------------------

@rpc
def submit_review(booking_id, user_id, rating, comment="", today=None):
    booking = find_by_id("bookings", booking_id)
    if not booking or booking.get("user_id") != str(user_id):
        return RpcResult.failure("not_found", "Booking not found.")
    has_review = _db().reviews.find_one({"booking_id": str(booking["_id"])}) is not None
    if not can_review(booking, has_review, today):
        return RpcResult.failure("validation", "This booking cannot be reviewed.")
    review = ReviewModel(
        booking_id=str(booking["_id"]),
        vehicle_id=booking["vehicle_id"],
        user_id=str(user_id),
        rating=rating,
        comment=comment,
    )
    document = review.model_dump()
    document["created_at"] = datetime.datetime.now()
    review_id = _db().reviews.insert_one(document).inserted_id
    logger.info(f"Review {review_id} added for booking {booking['_id']}")
    return RpcResult.success({"review_id": str(review_id)})


@rpc
def set_user_suspended(user_id, suspended, admin_id):
    error = _require_admin(admin_id)
    if error:
        return error
    user = find_by_id("users", user_id)
    if not user:
        return RpcResult.failure("not_found", "User not found.")
    if user.get("role") == "admin":
        return RpcResult.failure("forbidden", "Administrator accounts cannot be suspended.")
    _db().users.update_one({"_id": user["_id"]}, {"$set": {"is_suspended": bool(suspended)}})
    logger.info(f"User {user_id} suspended={bool(suspended)} by {admin_id}")
    return RpcResult.success({"user_id": str(user_id), "is_suspended": bool(suspended)})


@rpc
def get_platform_dashboard(admin_id):
    error = _require_admin(admin_id)
    if error:
        return error
    agencies = list(_db().agencies.find())
    vehicles = list(_db().vehicles.find({}, {"agency_id": 1, "make": 1, "model": 1, "is_deleted": 1}))
    bookings = list(_db().bookings.find({"status": {"$ne": BookingStatus.CANCELLED.value}}))
    stats = revenue.platform_stats(
        agencies,
        bookings,
        user_count=_db().users.count_documents({}),
        vehicle_count=sum(1 for v in vehicles if _is_listed(v)),
        commission_rate=config.PLATFORM_COMMISSION_RATE,
    )
    stats["agency_ranking"] = revenue.agency_revenue_ranking(agencies, vehicles, bookings)
    return RpcResult.success(stats)


@rpc
def search_users(admin_id, text=""):
    """Non-admin users whose name or email contains ``text``, newest first."""
    error = _require_admin(admin_id)
    if error:
        return error
    query = {"role": {"$ne": "admin"}}
    text = (text or "").strip()
    if text:
        pattern = re.escape(text)
        query["$or"] = [
            {"full_name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    return RpcResult.success(list(_db().users.find(query, {"password": 0}).sort("created_at", -1)))


@rpc
def get_user_details(user_id, admin_id):
    """Profile, agency and booking history of a user, for the admin."""
    error = _require_admin(admin_id)
    if error:
        return error
    user = find_by_id("users", user_id)
    if not user:
        return RpcResult.failure("not_found", "User not found.")
    user.pop("password", None)
    bookings = list(_db().bookings.find({"user_id": str(user["_id"])}).sort("start_date", -1))
    agency = _db().agencies.find_one({"owner_id": str(user["_id"])})
    return RpcResult.success({**user, "agency": agency, "bookings": _with_vehicles(bookings)})


@rpc
def delete_user(user_id, admin_id):
    """Remove a renter account. Booking history is kept for the agencies."""
    error = _require_admin(admin_id)
    if error:
        return error
    user = find_by_id("users", user_id)
    if not user:
        return RpcResult.failure("not_found", "User not found.")
    if user.get("role") == "admin":
        return RpcResult.failure("forbidden", "Administrator accounts cannot be deleted.")
    if _db().agencies.find_one({"owner_id": str(user["_id"])}):
        return RpcResult.failure("forbidden", "Accounts that own an agency can be suspended but not deleted.")
    if _db().bookings.find_one({"user_id": str(user["_id"]), "status": {"$in": ACTIVE_STATUSES}}):
        return RpcResult.failure("forbidden", "This user still has an active booking.")
    _db().users.delete_one({"_id": user["_id"]})
    logger.info(f"User {user_id} deleted by {admin_id}")
    return RpcResult.success({"user_id": str(user_id)})


# ----------------------------------------------------------------------------
# Invoice settings
# ----------------------------------------------------------------------------

@rpc
def update_agency_settings(owner_id, settings):
    agency = _db().agencies.find_one({"owner_id": str(owner_id)})
    if not agency:
        return RpcResult.failure("not_found", "Agency not found.")
    document = AgencySettingsModel(**settings).model_dump()
    _db().agencies.update_one({"_id": agency["_id"]}, {"$set": document})
    logger.info(f"Invoice settings updated for agency {agency['_id']}")
    return RpcResult.success(document)


# ----------------------------------------------------------------------------
# Locations
# ----------------------------------------------------------------------------

@rpc
def list_locations():
    """Wilayas sorted by name, each with its cities."""
    cities = list(_db().cities.find().sort("name", 1))
    locations = []
    for wilaya in _db().wilayas.find().sort("name", 1):
        wilaya["cities"] = [c for c in cities if c.get("wilaya_id") == str(wilaya["_id"])]
        locations.append(wilaya)
    return RpcResult.success(locations)


@rpc
def save_location(admin_id, name, wilaya_id=None, location_id=None):
    """Add or rename a wilaya, or a city when ``wilaya_id`` is given."""
    error = _require_admin(admin_id)
    if error:
        return error
    location = LocationModel(name=name, wilaya_id=str(wilaya_id) if wilaya_id else None)
    collection = _db().cities if location.wilaya_id else _db().wilayas
    if location.wilaya_id and not find_by_id("wilayas", location.wilaya_id):
        return RpcResult.failure("not_found", "Wilaya not found.")

    duplicate = collection.find_one({"name": location.name, "wilaya_id": location.wilaya_id} if location.wilaya_id
                                    else {"name": location.name})
    if duplicate and str(duplicate["_id"]) != str(location_id):
        return RpcResult.failure("validation", f"{location.name} already exists.")

    if location_id:
        result = collection.update_one({"_id": _object_id(location_id)}, {"$set": {"name": location.name}})
        if result.matched_count != 1:
            return RpcResult.failure("not_found", "Location not found.")
        saved_id = location_id
    else:
        document = {"name": location.name}
        if location.wilaya_id:
            document["wilaya_id"] = location.wilaya_id
        saved_id = collection.insert_one(document).inserted_id
    logger.info(f"Location {location.name} saved by {admin_id}")
    return RpcResult.success({"location_id": str(saved_id), "name": location.name})


@rpc
def delete_location(admin_id, location_id, is_city=False):
    """Delete a city, or a wilaya together with its cities."""
    error = _require_admin(admin_id)
    if error:
        return error
    oid = _object_id(location_id)
    if is_city:
        result = _db().cities.delete_one({"_id": oid})
    else:
        result = _db().wilayas.delete_one({"_id": oid})
        if result.deleted_count:
            _db().cities.delete_many({"wilaya_id": str(location_id)})
    if result.deleted_count != 1:
        return RpcResult.failure("not_found", "Location not found.")
    logger.info(f"Location {location_id} deleted by {admin_id}")
    return RpcResult.success({"location_id": str(location_id)})


# ----------------------------------------------------------------------------
# Messaging
# ----------------------------------------------------------------------------

def _conversation_for(conversation_id, user_id):
    """The conversation if ``user_id`` is its renter or the owner of its agency, with that user's side."""
    conversation = find_by_id("conversations", conversation_id)
    if not conversation:
        return None, None
    if conversation.get("user_id") == str(user_id):
        agency = find_by_id("agencies", conversation["agency_id"])
        return conversation, agency.get("owner_id") if agency else None
    agency = find_by_id("agencies", conversation.get("agency_id"))
    if agency and agency.get("owner_id") == str(user_id):
        return conversation, conversation["user_id"]
    return None, None


@rpc
def get_or_create_conversation(user_id, vehicle_id):
    """The renter's conversation with the agency of a vehicle, created on first contact."""
    vehicle = find_by_id("vehicles", vehicle_id)
    if not vehicle:
        return RpcResult.failure("not_found", "Vehicle not found.")
    agency = find_by_id("agencies", vehicle.get("agency_id"))
    if not agency:
        return RpcResult.failure("not_found", "Agency not found.")
    if agency.get("owner_id") == str(user_id):
        return RpcResult.failure("forbidden", "You cannot start a conversation with your own agency.")

    key = {"user_id": str(user_id), "agency_id": str(agency["_id"]), "vehicle_id": str(vehicle["_id"])}
    existing = _db().conversations.find_one(key)
    if existing:
        return RpcResult.success({"conversation_id": str(existing["_id"]), "created": False})
    conversation = ConversationModel(**key, updated_at=datetime.datetime.now())
    conversation_id = _db().conversations.insert_one(conversation.model_dump()).inserted_id
    logger.info(f"Conversation {conversation_id} opened by {user_id} with agency {agency['_id']}")
    return RpcResult.success({"conversation_id": str(conversation_id), "created": True})


@rpc
def list_conversations(user_id):
    """Conversations of a renter, or of the agency owned by ``user_id``, latest activity first."""
    agency = _db().agencies.find_one({"owner_id": str(user_id)})
    query = {"agency_id": str(agency["_id"])} if agency else {"user_id": str(user_id)}
    conversations = list(_db().conversations.find(query).sort("updated_at", -1))

    for c in conversations:
        c["vehicle"] = find_by_id("vehicles", c.get("vehicle_id"))
        if agency:
            renter = find_by_id("users", c["user_id"])
            c["other_party"] = renter.get("full_name") if renter else "Deleted user"
        else:
            other = find_by_id("agencies", c["agency_id"])
            c["other_party"] = other.get("agency_name") if other else "Unknown agency"
        c["unread"] = _db().messages.count_documents({
            "conversation_id": str(c["_id"]),
            "receiver_id": str(user_id),
            "read_at": None,
        })
    return RpcResult.success(conversations)


@rpc
def list_messages(conversation_id, user_id):
    """Messages oldest first. Those addressed to ``user_id`` are marked as read."""
    conversation, _ = _conversation_for(conversation_id, user_id)
    if not conversation:
        return RpcResult.failure("not_found", "Conversation not found.")
    _db().messages.update_many(
        {"conversation_id": str(conversation["_id"]), "receiver_id": str(user_id), "read_at": None},
        {"$set": {"read_at": datetime.datetime.now()}},
    )
    messages = list(_db().messages.find({"conversation_id": str(conversation["_id"])}).sort("created_at", 1))
    return RpcResult.success(messages)


@rpc
def send_message(conversation_id, sender_id, content):
    conversation, receiver_id = _conversation_for(conversation_id, sender_id)
    if not conversation or not receiver_id:
        return RpcResult.failure("not_found", "Conversation not found.")
    now = datetime.datetime.now()
    message = MessageModel(
        conversation_id=str(conversation["_id"]),
        sender_id=str(sender_id),
        receiver_id=str(receiver_id),
        content=content,
        created_at=now,
    )
    message_id = _db().messages.insert_one(message.model_dump()).inserted_id
    _db().conversations.update_one(
        {"_id": conversation["_id"]},
        {"$set": {"updated_at": now, "last_message": message.content[:80]}},
    )
    logger.info(f"Message {message_id} sent in conversation {conversation['_id']}")
    return RpcResult.success({"message_id": str(message_id)})
