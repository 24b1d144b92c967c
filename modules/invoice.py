"""One-page PDF invoice for a booking."""
import datetime
import logging
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from modules.pricing import compute_rental_days
from utils import format_dzd, parse_date

logger = logging.getLogger(__name__)

DEFAULT_BRAND_COLOR = "#4A5568"


def _text(value):
    return str(value) if value not in (None, "") else "N/A"


def _daily_rate(details, days):
    """Rate stored with the booking. Older bookings only kept the total."""
    if details.get("daily_rate") is not None:
        return details["daily_rate"]
    total = details.get("total_price")
    if isinstance(total, int) and isinstance(days, int) and days > 0:
        return total // days
    return None


def _draw_logo(pdf, url, x, y):
    try:
        pdf.drawImage(ImageReader(url), x, y, width=3 * cm, height=1.5 * cm,
                      preserveAspectRatio=True, mask="auto")
    except (OSError, ValueError) as e:
        logger.warning(f"Invoice logo {url} not drawn: {e}")


def build_invoice_pdf(details, issued_on=None):
    """Render the invoice of a booking loaded by rpc.get_booking_details.

    Raises ValueError when the vehicle, agency or renter is missing.
    """
    vehicle = details.get("vehicle")
    agency = details.get("agency")
    renter = details.get("renter")
    if not vehicle or not agency or not renter:
        raise ValueError("Booking data is incomplete for the invoice.")

    issued_on = issued_on or datetime.date.today()
    start = parse_date(details.get("start_date"))
    end = parse_date(details.get("end_date"))

    output = BytesIO()
    width, height = A4
    pdf = canvas.Canvas(output, pagesize=A4)
    pdf.setTitle(f"Invoice {details['_id']}")

    brand_color = colors.HexColor(agency.get("invoice_brand_color") or DEFAULT_BRAND_COLOR)

    # Header
    if agency.get("invoice_logo_url"):
        _draw_logo(pdf, agency["invoice_logo_url"], 2 * cm, height - 3.5 * cm)
    pdf.setFont("Helvetica-Bold", 22)
    pdf.drawRightString(width - 2 * cm, height - 2.5 * cm, "INVOICE")
    pdf.setFont("Helvetica", 10)
    pdf.drawRightString(width - 2 * cm, height - 3.2 * cm, f"Booking: #{details['_id']}")
    pdf.drawRightString(width - 2 * cm, height - 3.7 * cm, f"Date: {issued_on.strftime('%d/%m/%Y')}")
    pdf.setLineWidth(0.5)
    pdf.line(2 * cm, height - 4.5 * cm, width - 2 * cm, height - 4.5 * cm)

    # Parties
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(2 * cm, height - 5.5 * cm, "Rented from")
    pdf.drawString(11 * cm, height - 5.5 * cm, "Rented by")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(2 * cm, height - 6.2 * cm, _text(agency.get("agency_name")))
    pdf.drawString(2 * cm, height - 6.7 * cm, f"{agency.get('city') or ''}, {agency.get('wilaya') or ''}")
    pdf.drawString(11 * cm, height - 6.2 * cm, _text(renter.get("full_name")))
    pdf.drawString(11 * cm, height - 6.7 * cm, _text(renter.get("email")))
    pdf.line(2 * cm, height - 8 * cm, width - 2 * cm, height - 8 * cm)

    # Rental line
    period = f"{start.strftime('%d/%m/%Y')} - {end.strftime('%d/%m/%Y')}" if start and end else "N/A"
    days = compute_rental_days(start, end) if start and end else "N/A"
    rows = [
        ["Description", "Rental period", "Days", "Daily rate", "Total"],
        [
            f"{vehicle.get('make', '')} {vehicle.get('model', '')} ({vehicle.get('year') or ''})",
            period,
            str(days),
            format_dzd(_daily_rate(details, days)),
            format_dzd(details.get("total_price")),
        ],
    ]
    table = Table(rows, colWidths=[5.5 * cm, 4.5 * cm, 1.5 * cm, 2.5 * cm, 3 * cm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), brand_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.whitesmoke]),
    ]))
    _, table_height = table.wrapOn(pdf, width - 4 * cm, height)
    table_top = height - 9 * cm
    table.drawOn(pdf, 2 * cm, table_top - table_height)

    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawRightString(width - 2 * cm, table_top - table_height - 1.2 * cm,
                        f"Total price: {format_dzd(details.get('total_price'))}")

    if agency.get("invoice_terms"):
        pdf.setFont("Helvetica", 8)
        lines = simpleSplit(agency["invoice_terms"], "Helvetica", 8, width - 4 * cm)[:12]
        for i, line in enumerate(lines):
            pdf.drawString(2 * cm, 2.5 * cm + (len(lines) - 1 - i) * 0.4 * cm, line)

    # Footer
    pdf.setFont("Helvetica", 9)
    pdf.setFillColor(colors.grey)
    pdf.drawCentredString(width / 2, 1.5 * cm, "Thank you for renting with Kerya.")

    pdf.showPage()
    pdf.save()
    return output.getvalue()
