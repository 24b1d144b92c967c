from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional

class ConversationModel(BaseModel):
    user_id: str
    agency_id: str
    vehicle_id: Optional[str] = None
    last_message: Optional[str] = None
    updated_at: Optional[datetime] = None

class MessageModel(BaseModel):
    conversation_id: str
    sender_id: str
    receiver_id: str
    content: str = Field(max_length=2000)
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "conversation_id": "60c74d3f1f4e4b2a1b8e1300",
                "sender_id": "60c74d3f1f4e4b2a1b8e12f9",
                "receiver_id": "60c74d3f1f4e4b2a1b8e12fc",
                "content": "Hello, can I pick up the car at 8am?",
                "read_at": None
            }
        }

    @field_validator('content')
    def content_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Message must not be empty')
        return v.strip()
