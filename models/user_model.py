from pydantic import BaseModel, EmailStr
from typing import Literal, Optional

class UserModel(BaseModel):
    full_name: str
    email: EmailStr
    password: str
    phone: str
    role: Literal["renter", "agency_owner", "admin"] = "renter"
    is_suspended: Optional[bool] = False

    class Config:
        json_schema_extra = {
            "example": {
                "full_name": "Amine Benali",
                "email": "amine.benali@gmail.com",
                "password": "strong_password",
                "phone": "0551234567",
                "role": "renter",
                "is_suspended": False
            }
        }
