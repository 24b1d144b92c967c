import pytest
import datetime
from io import BytesIO
from bson import ObjectId
from pypdf import PdfReader

from modules import invoice
from modules.invoice import build_invoice_pdf

def _details(**overrides):
    details = {
        "_id": ObjectId(),
        "start_date": "2024-03-05",
        "end_date": "2024-03-07",
        "total_price": 10500,
        "daily_rate": 3500,
        "vehicle": {"make": "Renault", "model": "Clio", "year": 2021, "daily_rate_dzd": 3500},
        "agency": {"agency_name": "Oran Auto", "city": "Oran", "wilaya": "Oran"},
        "renter": {"full_name": "Amine Benali", "email": "amine@kerya.dz"},
    }
    details.update(overrides)
    return details

def _text(pdf):
    return PdfReader(BytesIO(pdf)).pages[0].extract_text()

def test_invoice_is_a_pdf():
    pdf = build_invoice_pdf(_details(), issued_on=datetime.date(2024, 3, 5))
    assert isinstance(pdf, bytes)
    assert pdf.startswith(b"%PDF")

def test_invoice_lines():
    text = _text(build_invoice_pdf(_details(), issued_on=datetime.date(2024, 3, 5)))
    assert "05/03/2024 - 07/03/2024" in text
    assert "Renault Clio (2021)" in text
    assert "3 500 DZD" in text
    assert "Total price: 10 500 DZD" in text
    assert "Oran Auto" in text
    assert "Amine Benali" in text

def test_invoice_prints_booked_rate_not_current_rate():
    vehicle = {"make": "Renault", "model": "Clio", "year": 2021, "daily_rate_dzd": 9000}
    text = _text(build_invoice_pdf(_details(vehicle=vehicle)))
    assert "3 500 DZD" in text
    assert "9 000 DZD" not in text

def test_rate_derived_from_total_for_older_bookings():
    details = _details()
    del details["daily_rate"]
    details["vehicle"]["daily_rate_dzd"] = 9000
    assert "3 500 DZD" in _text(build_invoice_pdf(details))

def test_agency_terms_printed():
    agency = {"agency_name": "Oran Auto", "city": "Oran", "wilaya": "Oran",
              "invoice_brand_color": "#0f766e", "invoice_terms": "Fuel tank must be returned full."}
    assert "Fuel tank must be returned full." in _text(build_invoice_pdf(_details(agency=agency)))

def test_unreachable_logo_does_not_break_invoice(monkeypatch):
    def unreachable(url):
        raise OSError("connection refused")
    monkeypatch.setattr(invoice, "ImageReader", unreachable)
    agency = {"agency_name": "Oran Auto", "city": "Oran", "wilaya": "Oran",
              "invoice_logo_url": "https://example.com/logo.png"}
    pdf = build_invoice_pdf(_details(agency=agency))
    assert "Oran Auto" in _text(pdf)

# Bookings whose vehicle, agency or renter document is gone have nothing to print
@pytest.mark.parametrize("missing", ["vehicle", "agency", "renter"])
def test_incomplete_booking(missing):
    with pytest.raises(ValueError):
        build_invoice_pdf(_details(**{missing: None}))
