from pydantic import BaseModel, field_validator
from datetime import datetime

MIN_PASSWORD_LENGTH = 8

class RegisterIn(BaseModel):
    username: str
    email: str | None = None
    password: str

    @field_validator("username")
    @classmethod
    def username_trim(cls, v: str):
        v = v.strip()
        if len(v) < 3:
            raise ValueError("username must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("username too long")
        return v

    @field_validator("email")
    @classmethod
    def email_normalize(cls, v: str | None):
        if v is None:
            return None
        v = v.strip().lower()
        if not v:
            return None
        if len(v) > 100 or "@" not in v:
            raise ValueError("email is invalid")
        return v

    @field_validator("password")
    @classmethod
    def password_min(cls, v: str):
        v = str(v)
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v

class UserOut(BaseModel):
    id: int
    username: str
    email: str | None
    role: str
    created_at: datetime | None

    class Config:
        from_attributes = True
