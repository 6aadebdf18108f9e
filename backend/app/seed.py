import os
from sqlalchemy import select
from app.db.session import SessionLocal
from app.models.category import Category
from app.models.user import User
from app.core.security import hash_password

DEFAULT_CATEGORIES = [("Salary", "income"), ("Rent", "expense"), ("Utilities", "expense")]

def main():
    username = os.environ.get("SEED_ADMIN_USER", "admin")
    password = os.environ.get("SEED_ADMIN_PASS", "admin123")

    db = SessionLocal()
    try:
        u = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if u is None:
            u = User(username=username, password_hash=hash_password(password), role="admin")
            db.add(u)
            db.flush()
        for name, type_ in DEFAULT_CATEGORIES:
            exists = db.execute(
                select(Category).where(Category.user_id == u.id, Category.name == name, Category.type == type_)
            ).scalar_one_or_none()
            if exists is None:
                db.add(Category(user_id=u.id, name=name, type=type_))
        db.commit()
    finally:
        db.close()

if __name__ == "__main__":
    main()
