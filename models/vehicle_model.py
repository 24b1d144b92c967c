from pydantic import BaseModel, Field
from typing import List, Literal, Optional

class VehicleModel(BaseModel):
    agency_id: str
    make: str
    model: str
    year: Optional[int] = Field(default=None, ge=1950)
    daily_rate_dzd: int = Field(ge=0)
    seats: int = Field(default=5, ge=1)
    transmission: Literal["automatic", "manual"] = "manual"
    fuel_type: Literal["petrol", "diesel", "hybrid", "electric", "lpg"] = "petrol"
    is_available: bool = True
    image_urls: List[str] = []
    wilaya: Optional[str] = None
    city: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "agency_id": "60c74d3f1f4e4b2a1b8e12fb",
                "make": "Renault",
                "model": "Clio",
                "year": 2021,
                "daily_rate_dzd": 3500,
                "seats": 5,
                "transmission": "manual",
                "fuel_type": "diesel",
                "is_available": True,
                "image_urls": ["https://example.com/clio-front.jpg"],
                "wilaya": "Oran",
                "city": "Es Senia"
            }
        }
