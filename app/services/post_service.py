"""
Post service — business logic for the Post aggregate.

Design notes
------------
- Eager loading via ``joinedload`` (many-to-one: author) and
  ``selectinload`` (many-to-many: tags) is used throughout; relationships
  are ``lazy="raise"`` so an unloaded relationship fails loudly instead
  of being fetched implicitly.
- Reads that must observe a preceding write in the same session use
  ``populate_existing`` so the identity map is refreshed from the row.
- Service functions flush but do not commit; the transaction boundary
  is owned by ``Database.session``.  The view increment and the stats
  queries therefore run inside a single transaction.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.database import translate_db_errors
from app.exceptions import NotFoundError
from app.models import Post, Tag
from app.pagination import PaginationParams
from app.schemas import BlogStats, PaginatedResponse, PostCreate, PostUpdate, ViewStats
from app.utils import generate_slug

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "name": author.name,
        "email": author.email,
        "picture": author.picture,
    }


def _post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "tags": [t.name for t in post.tags],
        "is_featured": post.is_featured,
        "view_count": post.view_count,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
        "author_id": post.author_id,
        "author": _serialize_author(post.author),
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _post_query():
    return (
        select(Post)
        .options(joinedload(Post.author), selectinload(Post.tags))
        .execution_options(populate_existing=True)
    )


async def _load_post(db: AsyncSession, *criteria) -> Post | None:
    q = _post_query().where(*criteria)
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag ORM instances for each distinct name in *tag_names*,
    creating any that do not yet exist.
    """
    tags: list[Tag] = []
    for name in dict.fromkeys(tag_names):
        result = await db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if not tag:
            tag = Tag(name=name)
            db.add(tag)
            with translate_db_errors():
                await db.flush()
        tags.append(tag)
    return tags


def _build_filters(
    search: str | None,
    is_featured: bool | None,
    tags: list[str] | None,
) -> list:
    conditions = []
    if search:
        conditions.append(
            or_(
                Post.title.icontains(search, autoescape=True),
                Post.content.icontains(search, autoescape=True),
            )
        )
    if is_featured is not None:
        conditions.append(Post.is_featured.is_(is_featured))
    if tags:
        conditions.append(Post.tags.any(Tag.name.in_(tags)))
    return conditions


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, data: PostCreate, author_id: int) -> dict:
    """
    Create a post owned by *author_id* and return it with its author.

    The slug is derived from the title unless one is supplied.  Slug
    collisions are not retried; they surface as ``ConflictError``.
    """
    post = Post(
        title=data.title,
        slug=data.slug or generate_slug(data.title),
        content=data.content,
        is_featured=data.is_featured,
        author_id=author_id,
    )
    if data.tags:
        post.tags.extend(await _resolve_tags(db, data.tags))

    db.add(post)
    with translate_db_errors():
        await db.flush()

    logger.info("Created post id=%s slug=%s author_id=%s", post.id, post.slug, author_id)
    return _post_to_dict(await _load_post(db, Post.id == post.id))


async def get_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int | None = None,
    search: str | None = None,
    is_featured: bool | None = None,
    tags: list[str] | None = None,
) -> PaginatedResponse:
    """
    Return one page of posts, newest first.

    All supplied filters are combined with AND: case-insensitive substring
    match on title or content, exact ``is_featured``, and posts carrying
    any of *tags*.
    """
    params = PaginationParams(page, limit)
    conditions = _build_filters(search, is_featured, tags)

    count_q = select(func.count()).select_from(Post).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    posts_q = (
        _post_query()
        .where(*conditions)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    result = await db.execute(posts_q)
    posts = result.unique().scalars().all()

    return PaginatedResponse(
        data=[_post_to_dict(p) for p in posts],
        pagination=params.build(total),
    )


async def get_post(db: AsyncSession, post_id: int) -> dict:
    """
    Count a visit to *post_id* and return the post as it stands after the
    increment.

    The increment is a single ``view_count = view_count + 1`` statement, so
    concurrent visits never overwrite each other.  Raises ``NotFoundError``
    when the post does not exist.
    """
    with translate_db_errors():
        result = await db.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(view_count=Post.view_count + 1)
        )
    if result.rowcount == 0:
        raise NotFoundError("Post not found")

    post = await _load_post(db, Post.id == post_id)
    return _post_to_dict(post)


async def get_post_by_slug(db: AsyncSession, slug: str) -> dict | None:
    """Return the post with *slug* without counting a view, or None."""
    post = await _load_post(db, Post.slug == slug)
    if post is None:
        return None
    return _post_to_dict(post)


async def update_post(db: AsyncSession, post_id: int, data: PostUpdate) -> dict:
    """
    Partially update a post.  Only fields explicitly set in *data* are
    modified; the slug is left alone unless it is part of *data*.

    Raises ``NotFoundError`` when the post does not exist.
    """
    post = await _load_post(db, Post.id == post_id)
    if post is None:
        raise NotFoundError("Post not found")

    update_data = data.model_dump(exclude_unset=True)
    tags_data: list[str] | None = update_data.pop("tags", None)

    # Tags are resolved first: their lookups autoflush the session.
    new_tags = await _resolve_tags(db, tags_data) if tags_data is not None else None

    for field, value in update_data.items():
        setattr(post, field, value)

    if new_tags is not None:
        post.tags.clear()
        post.tags.extend(new_tags)

    with translate_db_errors():
        await db.flush()
    return _post_to_dict(await _load_post(db, Post.id == post_id))


async def delete_post(db: AsyncSession, post_id: int) -> dict:
    """
    Delete the post identified by *post_id* and return the removed record.

    Raises ``NotFoundError`` when the post does not exist.
    """
    post = await _load_post(db, Post.id == post_id)
    if post is None:
        raise NotFoundError("Post not found")
    data = _post_to_dict(post)

    with translate_db_errors():
        await db.execute(delete(Post).where(Post.id == post_id))

    logger.info("Deleted post id=%s", post_id)
    return data


async def get_blog_stats(db: AsyncSession) -> BlogStats:
    """
    Aggregate view statistics across all posts.

    Every query runs in the caller's transaction so the numbers describe
    one consistent snapshot.
    """
    agg_q = select(
        func.count(Post.id),
        func.sum(Post.view_count),
        func.avg(Post.view_count),
        func.min(Post.view_count),
        func.max(Post.view_count),
    )
    total, total_views, avg_views, min_views, max_views = (await db.execute(agg_q)).one()

    featured_q = select(func.count()).select_from(Post).where(Post.is_featured.is_(True))
    featured_count: int = (await db.execute(featured_q)).scalar_one()

    top_q = (
        _post_query()
        .where(Post.is_featured.is_(True))
        .order_by(Post.view_count.desc(), Post.id.asc())
        .limit(1)
    )
    top_featured = (await db.execute(top_q)).unique().scalar_one_or_none()

    since = datetime.now(timezone.utc) - RECENT_WINDOW
    recent_q = select(func.count()).select_from(Post).where(Post.created_at >= since)
    last_week_count: int = (await db.execute(recent_q)).scalar_one()

    return BlogStats(
        stats=ViewStats(
            total_posts=total or 0,
            total_views=total_views or 0,
            avg_views=float(avg_views or 0),
            min_views=min_views or 0,
            max_views=max_views or 0,
        ),
        featured_count=featured_count,
        top_featured=_post_to_dict(top_featured) if top_featured else None,
        last_week_post_count=last_week_count,
    )
