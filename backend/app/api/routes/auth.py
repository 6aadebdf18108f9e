import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.api.deps import db
from app.schemas.auth import LoginIn, TokenOut
from app.schemas.user import RegisterIn, UserOut
from app.models.user import User
from app.core.security import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=UserOut, status_code=201)
def register(body: RegisterIn, s: Session = Depends(db)):
    if body.email and s.execute(select(User).where(User.email == body.email)).scalar_one_or_none():
        raise HTTPException(status_code=409, detail="email_exists")
    if s.execute(select(User).where(User.username == body.username)).scalar_one_or_none():
        raise HTTPException(status_code=409, detail="username_exists")
    u = User(username=body.username, email=body.email, password_hash=hash_password(body.password), role="user")
    s.add(u)
    s.commit()
    s.refresh(u)
    logger.info("user registered", extra={"user_id": u.id})
    return u

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, s: Session = Depends(db)):
    u = s.execute(select(User).where(User.username == body.username)).scalar_one_or_none()
    if not u or not verify_password(body.password, u.password_hash):
        raise HTTPException(status_code=401, detail="bad_credentials")
    role = (u.role or "user").lower()
    token = create_access_token(sub=u.username, role=role)
    return {"access_token": token, "role": role}
