# gradebook/schemas/user.py
from pydantic import BaseModel, EmailStr
from datetime import datetime


class UserPublic(BaseModel):
    id: int
    username: str
    email: EmailStr | None = None
    name: str
    role: str  # "admin" / "teacher" / "student"
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
