from pydantic import BaseModel, field_validator

class LoginIn(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def username_trim(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("username is required")
        return v

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
