"""Initialize the database and optionally create an admin account.

Usage:
  python scripts/init_db.py
  python scripts/init_db.py --admin-email admin@example.com --admin-password secret
"""
import argparse
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cms.database import engine, Base, SessionLocal
import cms.models  # noqa: F401 - registers all models
from cms.models.user import User
from cms.services.auth_service import get_password_hash


def init_db(admin_email: str | None = None, admin_password: str | None = None, admin_name: str = "Admin"):
    print("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    if admin_email and admin_password:
        db = SessionLocal()
        try:
            email = admin_email.strip().lower()
            user = db.query(User).filter(User.email == email).first()
            if user:
                user.is_admin = True
                user.password_hash = get_password_hash(admin_password)
                print(f"Updated admin account: {email}")
            else:
                db.add(User(name=admin_name, email=email, password_hash=get_password_hash(admin_password), is_admin=True))
                print(f"Created admin account: {email}")
            db.commit()
        finally:
            db.close()
    print("Database initialized successfully.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    parser.add_argument("--admin-name", default="Admin")
    args = parser.parse_args()
    init_db(args.admin_email, args.admin_password, args.admin_name)
