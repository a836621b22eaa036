#!/usr/bin/env python3
"""Script to create a chat user directly in the database."""

import sys
from pathlib import Path

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.database import SessionLocal
from app.core.security import get_password_hash
from app.models.user import User


def create_user(username: str, email: str, password: str, public_key: str) -> User:
    """Create a new active user."""
    db = SessionLocal()
    try:
        existing = db.query(User).filter(
            (User.username == username) | (User.email == email)
        ).first()
        if existing:
            print(f"User with username '{username}' or email '{email}' already exists")
            sys.exit(1)

        try:
            password_hash = get_password_hash(password)
        except ValueError as e:
            print(f"Password validation failed: {e}")
            sys.exit(1)

        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            public_key=public_key,
            is_active=True,
            created_by="script",
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        print(f"User created: id={user.id} username={user.username}")
        return user
    except Exception as e:
        db.rollback()
        print(f"Error creating user: {e}")
        sys.exit(1)
    finally:
        db.close()


def main():
    if len(sys.argv) < 5:
        print("Usage: python create_user.py <username> <email> <password> <public_key_file>")
        sys.exit(1)

    username, email, password, key_path = sys.argv[1:5]
    public_key = Path(key_path).read_text().strip()
    create_user(username=username, email=email, password=password, public_key=public_key)


if __name__ == "__main__":
    main()
