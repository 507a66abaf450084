# gradebook/schemas/auth.py
from typing import Literal

from pydantic import BaseModel, EmailStr


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str  # 学号/工号，唯一
    password: str
    name: str  # 必填，可以重复
    email: EmailStr | None = None
    role: Literal["teacher", "student"]
