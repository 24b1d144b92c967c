from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Literal, Optional

class BookingModel(BaseModel):
    user_id: str
    vehicle_id: str
    start_date: date
    end_date: date
    total_price: int = Field(ge=0)
    daily_rate: Optional[int] = Field(default=None, ge=0)
    payment_method: Literal["cash", "card"] = "cash"
    status: Optional[str] = "confirmed"
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "60c74d3f1f4e4b2a1b8e12f9",
                "vehicle_id": "60c74d3f1f4e4b2a1b8e12fa",
                "start_date": "2024-03-01",
                "end_date": "2024-03-03",
                "total_price": 10500,
                "daily_rate": 3500,
                "payment_method": "cash",
                "status": "confirmed",
                "cancellation_reason": None
            }
        }

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_document(self):
        """Document stored in MongoDB (dates kept as ISO strings)."""
        doc = self.model_dump()
        doc["start_date"] = self.start_date.isoformat()
        doc["end_date"] = self.end_date.isoformat()
        return doc
