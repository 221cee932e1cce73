"""Create the administrator account if it does not exist yet."""
import argparse
import asyncio
import logging
import sys

from app.config import settings
from app.database import Database
from app.exceptions import AppError
from app.services.admin_seeder import seed_admin

logger = logging.getLogger("seed_admin")


async def run(create_tables: bool = False) -> None:
    database = Database()
    try:
        if create_tables:
            await database.create_all()
            logger.info("Tables created")
        async with database.session() as session:
            await seed_admin(session)
    finally:
        await database.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the administrator account")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before seeding",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(create_tables=args.create_tables))
    except AppError as exc:
        logger.error("Failed to seed admin: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
