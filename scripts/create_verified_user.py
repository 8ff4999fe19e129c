"""
scripts/create_verified_user.py

Create a user whose email is already verified, e.g. to seed a host account
on an environment without outbound email:

    python -m scripts.create_verified_user

You will be prompted for name, email and password.
"""

import sys
import os
from getpass import getpass

# Make sure nestaway is importable when run from a checkout
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session

from nestaway.core.database import SessionLocal, init_db
from nestaway.core.exceptions import Conflict
from nestaway.models.user import User
from nestaway.services.verification_codes import normalize_email
from nestaway.utils.auth import get_password_hash

MIN_PASSWORD_LENGTH = 6


def create_verified_user(db: Session, first_name: str, last_name: str, email: str, password: str) -> User:
    if not all([first_name, last_name, email, password]):
        raise ValueError("All fields are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise Conflict(f"Email '{email}' is already registered.")

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=get_password_hash(password),
        verified=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main():
    print("\n── Create Verified User ──────────────────")

    first_name = input("First name: ").strip()
    last_name = input("Last name:  ").strip()
    email = input("Email:      ").strip()
    password = getpass("Password:   ").strip()

    init_db()
    db = SessionLocal()
    try:
        user = create_verified_user(db, first_name, last_name, email, password)
    except (ValueError, Conflict) as e:
        db.rollback()
        print(f"Failed: {e}")
        sys.exit(1)
    finally:
        db.close()

    print("\nUser created.")
    print(f"   ID:    {user.id}")
    print(f"   Name:  {user.first_name} {user.last_name}")
    print(f"   Email: {user.email}\n")


if __name__ == "__main__":
    main()
