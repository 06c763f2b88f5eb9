"""
Workshop accounts: password checks and the signed session token.

The token carries the user's role so the API can gate deletes to owners and
managers without another lookup; the user row is still loaded on every
request so a disabled account loses access straight away.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from giftbox.config import settings
from giftbox.exceptions import ConflictError, InvalidArgumentError
from giftbox.models.user import User, UserRole

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Seeded or imported rows may hold a placeholder instead of a bcrypt hash
        return False


def create_access_token(user: User) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user.id,
        "username": user.username,
        "role": UserRole(user.role).value,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Claims of a valid, unexpired token; None for anything else."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        logger.warning("Login for unknown user %s", username)
        return None
    if not user.active:
        logger.warning("Login for disabled user %s", username)
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Wrong password for %s", username)
        return None
    logger.info("%s (%s) logged in", username, user.role)
    return user


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(
    db: Session, username: str, password: str, display_name: str = "", role: str = UserRole.STAFF.value
) -> User:
    try:
        user_role = UserRole(role)
    except ValueError:
        raise InvalidArgumentError(f"Unknown role '{role}'", role=role) from None
    if db.query(User.id).filter(User.username == username).first():
        raise ConflictError(f"Username '{username}' already exists", username=username)

    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=user_role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s", user_role.value, username)
    return user


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def ensure_default_admin(db: Session) -> None:
    """Seed an owner account on an empty database."""
    if db.query(User.id).first() is None:
        create_user(
            db,
            username="admin",
            password=settings.DEFAULT_ADMIN_PASSWORD,
            display_name="Owner",
            role=UserRole.OWNER.value,
        )
