"""
Auth service — email/password login and Google sign-in.

Login performs no writes: it reads the user, checks the account status
and the bcrypt hash, then signs a token.  Google sign-in upserts a local
account keyed by email.  Both paths return the same sanitised projection.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import translate_db_errors
from app.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from app.models import User, UserStatus
from app.schemas import GoogleProfile
from app.security import create_access_token, verify_password

logger = logging.getLogger(__name__)


def _safe_user_to_dict(user: User) -> dict:
    """Projection returned to authenticated callers; never includes the hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "picture": user.picture,
        "phone": user.phone,
        "status": user.status.value,
        "is_verified": user.is_verified,
    }


async def _get_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def login_with_email_and_password(db: AsyncSession, email: str, password: str) -> dict:
    """
    Check credentials and return the sanitised user plus a signed token.

    Raises
    ------
    NotFoundError
        No user is registered with *email*.
    ForbiddenError
        The account status is anything other than ACTIVE, whatever the
        password.
    UnauthorizedError
        The password does not match (or the account has no password).
    """
    user = await _get_by_email(db, email)
    if user is None:
        logger.warning("Login rejected: unknown email %s", email)
        raise NotFoundError("User not found!")

    if user.status != UserStatus.ACTIVE:
        logger.warning("Login rejected: user id=%s is %s", user.id, user.status.value)
        raise ForbiddenError(
            f"User account is {user.status.value.lower()}. Please contact support."
        )

    if not verify_password(password, user.password):
        logger.warning("Login rejected: wrong password for user id=%s", user.id)
        raise UnauthorizedError("Incorrect password!")

    token = create_access_token(
        {"id": user.id, "email": user.email, "role": user.role.value}
    )
    logger.info("User id=%s logged in", user.id)

    data = _safe_user_to_dict(user)
    data["token"] = token
    return data


async def auth_with_google(db: AsyncSession, profile: GoogleProfile) -> dict:
    """
    Return the local account for a Google identity, creating it from
    *profile* on first sign-in.  Federated accounts have no password.
    """
    user = await _get_by_email(db, profile.email)
    if user is None:
        user = User(**profile.model_dump(), password=None)
        db.add(user)
        with translate_db_errors():
            await db.flush()
        await db.refresh(user)
        logger.info("Created federated user id=%s email=%s", user.id, user.email)

    return _safe_user_to_dict(user)
