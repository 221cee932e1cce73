"""
Admin seeder — idempotent bootstrap of the administrator account.

Run once at process start (see ``scripts/seed_admin.py``).  When a user
with the admin email already exists nothing is written.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import translate_db_errors
from app.models import Role, User
from app.security import hash_password
from app.services.user_service import user_to_dict

logger = logging.getLogger(__name__)

ADMIN_NAME = "Rubel Rana"
ADMIN_PHONE = "01234567890"


async def seed_admin(
    db: AsyncSession,
    email: str | None = None,
    password: str | None = None,
) -> dict | None:
    """
    Create the administrator account if it does not exist yet.

    Returns the sanitised new account, or None when one was already
    present.
    """
    email = email or settings.ADMIN_EMAIL
    password = password or settings.ADMIN_PASSWORD

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        logger.info("Admin already exists: %s", email)
        return None

    logger.info("Creating admin account: %s", email)
    admin = User(
        name=ADMIN_NAME,
        email=email,
        phone=ADMIN_PHONE,
        password=hash_password(password),
        role=Role.ADMIN,
        is_verified=True,
    )
    db.add(admin)
    with translate_db_errors():
        await db.flush()
    await db.refresh(admin)

    logger.info("Admin seeded: id=%s", admin.id)
    return user_to_dict(admin)
