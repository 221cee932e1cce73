"""
User service — CRUD operations for the User aggregate.

Every function that returns a user goes through ``user_to_dict`` so the
password hash never leaves the service layer.  Passwords are hashed with
``settings.BCRYPT_SALT_ROUNDS`` on both create and update.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import translate_db_errors
from app.exceptions import NotFoundError
from app.models import User
from app.schemas import UserCreate, UserUpdate
from app.security import hash_password

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict, without the password."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "picture": user.picture,
        "role": user.role.value,
        "status": user.status.value,
        "is_verified": user.is_verified,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def _content_summary_to_dict(item) -> dict:
    """Lightweight projection of a Post or Project embedded in a user."""
    return {
        "id": item.id,
        "title": item.title,
        "slug": item.slug,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


def _user_detail_to_dict(user: User) -> dict:
    data = user_to_dict(user)
    data["posts"] = [_content_summary_to_dict(p) for p in user.posts]
    data["projects"] = [_content_summary_to_dict(p) for p in user.projects]
    return data


def _user_with_content_query():
    return (
        select(User)
        .options(selectinload(User.posts), selectinload(User.projects))
        .execution_options(populate_existing=True)
    )


async def _load_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user and return its sanitised dict.

    Email uniqueness is enforced by the database; a duplicate surfaces as
    ``ConflictError``.
    """
    values = data.model_dump()
    if values.get("password"):
        values["password"] = hash_password(values["password"])

    user = User(**values)
    db.add(user)
    with translate_db_errors():
        await db.flush()
    await db.refresh(user)

    logger.info("Created user id=%s email=%s", user.id, user.email)
    return user_to_dict(user)


async def get_users(db: AsyncSession) -> list[dict]:
    """
    Return all users ordered by creation date (newest first), each with a
    summary of their posts and projects.

    ``selectinload`` issues one extra query per relationship rather than
    one per user.
    """
    q = _user_with_content_query().order_by(User.created_at.desc(), User.id.desc())
    result = await db.execute(q)
    return [_user_detail_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Return the detail dict for *user_id*, or None when the user does not
    exist.
    """
    q = _user_with_content_query().where(User.id == user_id)
    result = await db.execute(q)
    user = result.scalar_one_or_none()
    if user is None:
        return None
    return _user_detail_to_dict(user)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    """
    Partially update a user.  Only fields explicitly set in *data* are
    written; a new password is re-hashed before it is stored.

    Raises ``NotFoundError`` when the user does not exist.
    """
    user = await _load_user(db, user_id)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("password"):
        update_data["password"] = hash_password(update_data["password"])

    for field, value in update_data.items():
        setattr(user, field, value)

    with translate_db_errors():
        await db.flush()
    await db.refresh(user)
    return user_to_dict(user)


async def delete_user(db: AsyncSession, user_id: int) -> dict:
    """
    Hard-delete a user and return the record that was removed.

    Owned posts and projects are not cascaded: the foreign key rejects
    the delete and the failure surfaces as ``DatabaseError``.
    """
    user = await _load_user(db, user_id)
    data = user_to_dict(user)

    with translate_db_errors():
        await db.execute(delete(User).where(User.id == user_id))

    logger.info("Deleted user id=%s", user_id)
    return data
