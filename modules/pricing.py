import datetime

from utils import parse_date

def compute_rental_days(start_date, end_date):
    """Number of billed days, counting both the pickup and the return day.

    Dates are compared at calendar-day precision. An inverted range yields 1;
    callers are expected to reject it before quoting.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None:
        raise ValueError("start_date and end_date must be dates")
    if end < start:
        return 1
    return (end - start).days + 1

def compute_total_price(days, daily_rate):
    """Total price in DZD. Integer arithmetic only."""
    return days * daily_rate

def quote_booking(start_date, end_date, daily_rate):
    """Price estimate shown on the booking page and on the confirmation."""
    rental_days = compute_rental_days(start_date, end_date)
    return {
        "rental_days": rental_days,
        "daily_rate": daily_rate,
        "total_price": compute_total_price(rental_days, daily_rate),
    }

def validate_date_range(start_date, end_date, today=None):
    """Return an error message for an unbookable range, or None."""
    today = today or datetime.date.today()
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None:
        return "Please choose a pickup and a return date."
    if end < start:
        return "The return date cannot be before the pickup date."
    if start < today:
        return "The pickup date cannot be in the past."
    return None
