"""
Project service — business logic for the Project aggregate.

Mirrors the post service without view counting or tags.  Listings are
ordered oldest first, unlike posts.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.database import translate_db_errors
from app.exceptions import NotFoundError
from app.models import Project
from app.pagination import PaginationParams
from app.schemas import (
    PaginatedResponse,
    ProjectCounts,
    ProjectCreate,
    ProjectStats,
    ProjectUpdate,
)
from app.utils import generate_slug

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
RECENT_PROJECTS_LIMIT = 3


def _serialize_owner(owner) -> dict | None:
    if owner is None:
        return None
    return {
        "id": owner.id,
        "name": owner.name,
        "email": owner.email,
        "picture": owner.picture,
    }


def _project_to_dict(project: Project) -> dict:
    return {
        "id": project.id,
        "title": project.title,
        "slug": project.slug,
        "description": project.description,
        "is_featured": project.is_featured,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "updated_at": project.updated_at.isoformat() if project.updated_at else None,
        "owner_id": project.owner_id,
        "owner": _serialize_owner(project.owner),
    }


def _project_query():
    return (
        select(Project)
        .options(joinedload(Project.owner))
        .execution_options(populate_existing=True)
    )


async def _load_project(db: AsyncSession, *criteria) -> Project | None:
    q = _project_query().where(*criteria)
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_project(db: AsyncSession, data: ProjectCreate, owner_id: int) -> dict:
    """Create a project owned by *owner_id*, deriving the slug when absent."""
    project = Project(
        title=data.title,
        slug=data.slug or generate_slug(data.title),
        description=data.description,
        is_featured=data.is_featured,
        owner_id=owner_id,
    )
    db.add(project)
    with translate_db_errors():
        await db.flush()

    logger.info("Created project id=%s slug=%s owner_id=%s", project.id, project.slug, owner_id)
    return _project_to_dict(await _load_project(db, Project.id == project.id))


async def get_projects(
    db: AsyncSession,
    page: int = 1,
    limit: int | None = None,
    search: str | None = None,
    is_featured: bool | None = None,
) -> PaginatedResponse:
    """
    Return one page of projects, oldest first, filtered by a
    case-insensitive substring of title or description and by
    ``is_featured``.
    """
    params = PaginationParams(page, limit)

    conditions = []
    if search:
        conditions.append(
            or_(
                Project.title.icontains(search, autoescape=True),
                Project.description.icontains(search, autoescape=True),
            )
        )
    if is_featured is not None:
        conditions.append(Project.is_featured.is_(is_featured))

    count_q = select(func.count()).select_from(Project).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    projects_q = (
        _project_query()
        .where(*conditions)
        .order_by(Project.created_at.asc(), Project.id.asc())
        .offset(params.offset)
        .limit(params.limit)
    )
    result = await db.execute(projects_q)
    projects = result.unique().scalars().all()

    return PaginatedResponse(
        data=[_project_to_dict(p) for p in projects],
        pagination=params.build(total),
    )


async def get_project(db: AsyncSession, project_id: int) -> dict | None:
    project = await _load_project(db, Project.id == project_id)
    return _project_to_dict(project) if project else None


async def get_project_by_slug(db: AsyncSession, slug: str) -> dict | None:
    project = await _load_project(db, Project.slug == slug)
    return _project_to_dict(project) if project else None


async def update_project(db: AsyncSession, project_id: int, data: ProjectUpdate) -> dict:
    """
    Partially update a project with the fields set in *data*.

    Raises ``NotFoundError`` when the project does not exist.
    """
    project = await _load_project(db, Project.id == project_id)
    if project is None:
        raise NotFoundError("Project not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(project, field, value)

    with translate_db_errors():
        await db.flush()
    return _project_to_dict(await _load_project(db, Project.id == project_id))


async def delete_project(db: AsyncSession, project_id: int) -> dict:
    """Delete a project and return the removed record."""
    project = await _load_project(db, Project.id == project_id)
    if project is None:
        raise NotFoundError("Project not found")
    data = _project_to_dict(project)

    with translate_db_errors():
        await db.execute(delete(Project).where(Project.id == project_id))

    logger.info("Deleted project id=%s", project_id)
    return data


async def get_project_stats(db: AsyncSession) -> ProjectStats:
    """Totals, featured count, the newest projects and last week's additions."""
    total: int = (await db.execute(select(func.count()).select_from(Project))).scalar_one()

    featured_q = select(func.count()).select_from(Project).where(Project.is_featured.is_(True))
    featured_count: int = (await db.execute(featured_q)).scalar_one()

    recent_q = (
        _project_query()
        .order_by(Project.created_at.desc(), Project.id.desc())
        .limit(RECENT_PROJECTS_LIMIT)
    )
    recent = (await db.execute(recent_q)).unique().scalars().all()

    since = datetime.now(timezone.utc) - RECENT_WINDOW
    last_week_q = select(func.count()).select_from(Project).where(Project.created_at >= since)
    last_week_count: int = (await db.execute(last_week_q)).scalar_one()

    return ProjectStats(
        stats=ProjectCounts(
            total_projects=total,
            featured_count=featured_count,
            last_week_project_count=last_week_count,
            recent_projects=[_project_to_dict(p) for p in recent],
        )
    )
