# scripts/create_admin.py
"""
Creates the administrator account, or promotes an existing account to admin.

Run from the project root:

    python -m scripts.create_admin

Credentials come from ADMIN_NAME, ADMIN_EMAIL and ADMIN_PASSWORD (see config.py).
"""
import logging

from config import ADMIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD
from db import crud
from db.database import SessionLocal, create_db_and_tables
from schemas.user_schemas import check_password_strength

logger = logging.getLogger(__name__)


def create_admin(db, name: str = ADMIN_NAME, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
    check_password_strength(password)
    user, created = crud.ensure_admin_user(db, name=name, email=email, password=password)
    if created:
        logger.info(f"Admin account created for {user.email}.")
    else:
        logger.info(f"Existing account {user.email} promoted to admin.")
    return user, created


def main():
    logging.basicConfig(level=logging.INFO)
    create_db_and_tables()
    db = SessionLocal()
    try:
        create_admin(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
