from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Literal

MAX_CATEGORY_NAME_LENGTH = 100

CategoryType = Literal["income", "expense"]

class CategoryCreate(BaseModel):
    name: str
    type: CategoryType

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        if len(v) > MAX_CATEGORY_NAME_LENGTH:
            raise ValueError(f"name must be at most {MAX_CATEGORY_NAME_LENGTH} characters")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def type_normalize(cls, v):
        return str(v or "").strip().lower()

class CategoryOut(BaseModel):
    id: int
    user_id: int
    name: str
    type: CategoryType
    created_at: datetime | None

    class Config:
        from_attributes = True
