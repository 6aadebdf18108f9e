from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.api.deps import db, current_account
from app.schemas.category import CategoryCreate, CategoryOut
from app.models.category import Category
from app.models.user import User

router = APIRouter(prefix="/categories", tags=["categories"])

@router.get("", response_model=list[CategoryOut])
def list_categories(s: Session = Depends(db), me: User = Depends(current_account)):
    q = select(Category).where(Category.user_id == me.id).order_by(Category.type.asc(), Category.name.asc())
    return s.execute(q).scalars().all()

@router.post("", response_model=CategoryOut, status_code=201)
def create_category(body: CategoryCreate, s: Session = Depends(db), me: User = Depends(current_account)):
    exists = s.execute(
        select(Category).where(
            Category.user_id == me.id,
            Category.name == body.name,
            Category.type == body.type,
        )
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="category_exists")
    cat = Category(user_id=me.id, name=body.name, type=body.type)
    s.add(cat)
    s.commit()
    s.refresh(cat)
    return cat
