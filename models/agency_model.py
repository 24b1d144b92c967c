from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional

class AgencyModel(BaseModel):
    owner_id: str
    agency_name: str
    address: Optional[str] = None
    city: Optional[str] = None
    wilaya: str
    trade_register_number: str
    trade_register_url: str
    id_card_url: str
    selfie_url: str
    verification_status: Literal["pending", "verified", "rejected"] = "pending"
    rejection_reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "60c74d3f1f4e4b2a1b8e12f9",
                "agency_name": "Oran Auto Location",
                "address": "12 Boulevard de la Soummam",
                "city": "Oran",
                "wilaya": "Oran",
                "trade_register_number": "31/00-1234567B21",
                "trade_register_url": "https://example.com/docs/rc.pdf",
                "id_card_url": "https://example.com/docs/id.jpg",
                "selfie_url": "https://example.com/docs/selfie.jpg",
                "verification_status": "pending",
                "rejection_reason": None
            }
        }

    @field_validator('agency_name', 'trade_register_number')
    def must_not_be_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Field must not be empty')
        return v.strip()

    @field_validator('trade_register_url', 'id_card_url', 'selfie_url')
    def document_required(cls, v):
        if not v or not v.strip():
            raise ValueError('All verification documents are required')
        return v.strip()

class AgencySettingsModel(BaseModel):
    """Branding printed on the agency's invoices."""
    invoice_logo_url: Optional[str] = None
    invoice_brand_color: str = Field(default="#4f46e5", pattern=r"^#[0-9a-fA-F]{6}$")
    invoice_terms: Optional[str] = Field(default=None, max_length=1000)

    class Config:
        json_schema_extra = {
            "example": {
                "invoice_logo_url": "https://img.kerya.dz/oran-auto-logo.png",
                "invoice_brand_color": "#1d4ed8",
                "invoice_terms": "Fuel tank must be returned full. Deposit of 20 000 DZD at pickup."
            }
        }

    @field_validator('invoice_logo_url', 'invoice_terms')
    def blank_as_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()
