from pydantic import BaseModel, Field
from typing import Optional

class ReviewModel(BaseModel):
    booking_id: str
    vehicle_id: str
    user_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = ""
