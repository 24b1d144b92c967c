import re
import html
import datetime

def sanitize_input(input_string):
    """Strip HTML tags and escape special characters from user input."""
    if input_string is None:
        return ""
    # Remove HTML tags
    sanitized_string = re.sub('<[^<]+?>', '', input_string)
    # Escape the remaining special characters
    sanitized_string = html.escape(sanitized_string)
    return sanitized_string

def parse_date(value):
    """Return a calendar date for a date, datetime or ISO string, else None."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            # "2024-03-01" or "2024-03-01T10:00:00+00:00"
            return datetime.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None

def format_dzd(amount):
    """Format an integer DZD amount for display, e.g. 12 500 DZD."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return "N/A"
    return f"{int(round(amount)):,} DZD".replace(",", " ")
