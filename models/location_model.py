from pydantic import BaseModel, field_validator
from typing import Optional

class LocationModel(BaseModel):
    """A wilaya (no parent) or a city (parent wilaya id)."""
    name: str
    wilaya_id: Optional[str] = None

    @field_validator('name')
    def name_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Name must not be empty')
        return v.strip()
