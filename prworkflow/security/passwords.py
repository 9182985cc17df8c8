from pwdlib import PasswordHash
from sqlalchemy import select
from sqlalchemy.orm import Session

from prworkflow.models import User


password_hash = PasswordHash.recommended()


def hash_password(raw_password: str) -> str:
    return password_hash.hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    # Seeded service accounts carry no hash and can never log in.
    if not hashed_password:
        return False
    return password_hash.verify(raw_password, hashed_password)


def find_login_user(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def authenticate(db: Session, *, username: str, raw_password: str) -> User | None:
    """Return the active user whose password matches, else None."""
    user = find_login_user(db, username)
    if user is None or not user.active:
        return None
    if not verify_password(raw_password, user.password_hash):
        return None
    return user
