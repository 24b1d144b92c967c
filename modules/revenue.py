"""Revenue and occupancy figures for the agency and admin dashboards.

All functions work on bookings already loaded in memory (dicts as stored in
MongoDB, or BookingModel instances). A record with a missing or malformed
field is left out of the figures that need that field and logged.
"""
import datetime
import logging
import math
from decimal import Decimal, ROUND_HALF_UP

from modules.pricing import compute_rental_days
from utils import parse_date

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
TOP_VEHICLES_LIMIT = 5
MONTHS_SHOWN = 12


def _as_dict(booking):
    if isinstance(booking, dict):
        return booking
    if hasattr(booking, "model_dump"):
        return booking.model_dump()
    return None


def _records(bookings):
    for booking in bookings or []:
        record = _as_dict(booking)
        if record is None:
            logger.warning(f"Skipping malformed booking record: {booking!r}")
            continue
        yield record


def _amount(value):
    """A usable price, or None for missing, boolean or non-numeric values."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    return value


def _period(record):
    start = parse_date(record.get("start_date"))
    end = parse_date(record.get("end_date"))
    if start is None or end is None:
        return None
    return start, end


def _booking_ref(record):
    return record.get("_id", record.get("id"))


def _round_half_up(value):
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def total_revenue(bookings):
    total = 0
    for record in _records(bookings):
        amount = _amount(record.get("total_price"))
        if amount is None:
            logger.warning(f"Booking {_booking_ref(record)} has no numeric price, left out of revenue")
            continue
        total += amount
    return total


def active_rentals_count(bookings, today=None):
    """Bookings whose [start_date, end_date] range contains today."""
    today = today or datetime.date.today()
    count = 0
    for record in _records(bookings):
        period = _period(record)
        if period is None:
            continue
        start, end = period
        if start <= today <= end:
            count += 1
    return count


def total_booked_days(bookings):
    days = 0
    for record in _records(bookings):
        period = _period(record)
        if period is None:
            logger.warning(f"Booking {_booking_ref(record)} has invalid dates, left out of booked days")
            continue
        days += compute_rental_days(*period)
    return days


def occupancy_rate(booked_days, vehicle_count, clamp=True):
    """Booked days over the fleet's days in a year, in percent."""
    if vehicle_count <= 0:
        return 0.0
    rate = booked_days / (vehicle_count * DAYS_PER_YEAR) * 100
    if clamp:
        rate = min(max(rate, 0.0), 100.0)
    return rate


def revenue_by_vehicle(bookings):
    """vehicle_id -> revenue, in order of first appearance."""
    revenue = {}
    for record in _records(bookings):
        vehicle_id = record.get("vehicle_id")
        amount = _amount(record.get("total_price"))
        if vehicle_id is None or amount is None:
            continue
        key = str(vehicle_id)
        revenue[key] = revenue.get(key, 0) + amount
    return revenue


def top_vehicles(vehicle_revenue, limit=TOP_VEHICLES_LIMIT):
    """Highest earning vehicles first; ties keep their input order."""
    ranked = sorted(vehicle_revenue.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def _shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trailing_months(today=None, count=MONTHS_SHOWN):
    """(year, month) pairs for the last ``count`` months, oldest first, ending with today's month."""
    today = today or datetime.date.today()
    return [_shift_month(today.year, today.month, -offset) for offset in range(count - 1, -1, -1)]


def monthly_revenue(bookings, today=None, count=MONTHS_SHOWN):
    """Revenue per month of the booking start date over the trailing months."""
    months = trailing_months(today, count)
    buckets = {month: 0 for month in months}
    for record in _records(bookings):
        start = parse_date(record.get("start_date"))
        amount = _amount(record.get("total_price"))
        if start is None or amount is None:
            continue
        key = (start.year, start.month)
        if key in buckets:
            buckets[key] += amount

    return [
        {
            "month": f"{year}-{month:02}",
            "label": datetime.date(year, month, 1).strftime("%b %Y"),
            "revenue": buckets[(year, month)],
        }
        for year, month in months
    ]


def avg_revenue_per_vehicle(revenue, vehicle_count):
    if vehicle_count <= 0:
        return 0
    return _round_half_up(Decimal(str(revenue)) / vehicle_count)


def agency_dashboard_stats(bookings, vehicle_count, today=None, clamp=True, top_limit=TOP_VEHICLES_LIMIT):
    """Every figure shown on the agency dashboard."""
    today = today or datetime.date.today()
    bookings = list(bookings or [])
    revenue = total_revenue(bookings)
    booked_days = total_booked_days(bookings)
    per_vehicle = revenue_by_vehicle(bookings)
    return {
        "listings": vehicle_count,
        "active_rentals": active_rentals_count(bookings, today),
        "total_revenue": revenue,
        "total_booked_days": booked_days,
        "occupancy_rate": occupancy_rate(booked_days, vehicle_count, clamp=clamp),
        "avg_revenue_per_vehicle": avg_revenue_per_vehicle(revenue, vehicle_count),
        "revenue_by_vehicle": per_vehicle,
        "top_vehicles": top_vehicles(per_vehicle, top_limit),
        "monthly_revenue": monthly_revenue(bookings, today),
    }


def platform_commission(revenue, rate):
    return _round_half_up(Decimal(str(revenue)) * Decimal(str(rate)))


def verification_rate(agencies):
    agencies = list(agencies or [])
    if not agencies:
        return 0.0
    verified = sum(1 for a in agencies if a.get("verification_status") == "verified")
    return verified / len(agencies) * 100


def agency_revenue_ranking(agencies, vehicles, bookings):
    """Agencies with their revenue and booking count, highest revenue first."""
    agency_of_vehicle = {str(v["_id"]): str(v.get("agency_id")) for v in vehicles or [] if "_id" in v}
    totals = {}
    for record in _records(bookings):
        agency_id = agency_of_vehicle.get(str(record.get("vehicle_id")))
        if agency_id is None:
            continue
        revenue, count = totals.get(agency_id, (0, 0))
        totals[agency_id] = (revenue + (_amount(record.get("total_price")) or 0), count + 1)

    ranking = []
    for agency in agencies or []:
        revenue, count = totals.get(str(agency.get("_id")), (0, 0))
        ranking.append({**agency, "revenue": revenue, "booking_count": count})
    ranking.sort(key=lambda a: a["revenue"], reverse=True)
    return ranking


def platform_stats(agencies, bookings, user_count, vehicle_count, commission_rate):
    """Figures for the admin dashboard."""
    agencies = list(agencies or [])
    bookings = list(bookings or [])
    revenue = total_revenue(bookings)
    return {
        "users": user_count,
        "agencies": len(agencies),
        "bookings": len(bookings),
        "listings": vehicle_count,
        "revenue": revenue,
        "platform_commission": platform_commission(revenue, commission_rate),
        "verification_rate": verification_rate(agencies),
    }
