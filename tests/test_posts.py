"""
Post service tests — CRUD, slug derivation, filtered pagination, view
counting and blog statistics, exercised directly against a session.
"""
import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError
from app.models import Post, User
from app.schemas import PostCreate, PostUpdate
from app.services import post_service


async def _create(db: AsyncSession, author: User, title: str = "Hello World", **kwargs) -> dict:
    kwargs.setdefault("content", f"Content for {title}")
    return await post_service.create_post(db, PostCreate(title=title, **kwargs), author.id)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post_derives_slug(db_session: AsyncSession, author: User):
    post = await _create(db_session, author, title="  Hello, World!  ")
    assert re.fullmatch(r"hello-world-[a-z0-9]{5}", post["slug"])
    assert post["view_count"] == 0
    assert post["is_featured"] is False
    assert post["created_at"] is not None


@pytest.mark.asyncio
async def test_create_post_keeps_explicit_slug(db_session: AsyncSession, author: User):
    post = await _create(db_session, author, slug="my-custom-slug")
    assert post["slug"] == "my-custom-slug"


@pytest.mark.asyncio
async def test_create_post_same_title_gets_distinct_slugs(db_session: AsyncSession, author: User):
    first = await _create(db_session, author, title="Same Title")
    second = await _create(db_session, author, title="Same Title")
    assert first["slug"] != second["slug"]


@pytest.mark.asyncio
async def test_create_post_includes_author_projection(db_session: AsyncSession, author: User):
    post = await _create(db_session, author)
    assert post["author_id"] == author.id
    assert post["author"] == {
        "id": author.id,
        "name": "Author",
        "email": "author@example.com",
        "picture": None,
    }
    assert "password" not in post["author"]


@pytest.mark.asyncio
async def test_relationships_are_not_loaded_implicitly(db_session: AsyncSession, author: User):
    created = await _create(db_session, author, tags=["python"])
    db_session.expunge_all()

    result = await db_session.execute(select(Post).where(Post.id == created["id"]))
    post = result.scalar_one()
    with pytest.raises(InvalidRequestError):
        post.tags
    with pytest.raises(InvalidRequestError):
        post.author


@pytest.mark.asyncio
async def test_create_post_with_tags(db_session: AsyncSession, author: User):
    post = await _create(db_session, author, tags=["python", "fastapi", "python"])
    assert sorted(post["tags"]) == ["fastapi", "python"]


@pytest.mark.asyncio
async def test_create_post_duplicate_slug_conflicts(db_session: AsyncSession, author: User):
    await _create(db_session, author, title="One", slug="taken")
    with pytest.raises(ConflictError):
        await _create(db_session, author, title="Two", slug="taken")


# ---------------------------------------------------------------------------
# Read by id / slug
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_post_increments_view_count_once_per_call(db_session: AsyncSession, author: User):
    created = await _create(db_session, author)
    for expected in range(1, 6):
        post = await post_service.get_post(db_session, created["id"])
        assert post["view_count"] == expected


@pytest.mark.asyncio
async def test_get_post_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.get_post(db_session, 99999)


@pytest.mark.asyncio
async def test_get_post_by_slug_does_not_count_views(db_session: AsyncSession, author: User):
    created = await _create(db_session, author, slug="read-only")
    await post_service.get_post(db_session, created["id"])

    post = await post_service.get_post_by_slug(db_session, "read-only")
    assert post is not None
    assert post["view_count"] == 1
    post = await post_service.get_post_by_slug(db_session, "read-only")
    assert post["view_count"] == 1


@pytest.mark.asyncio
async def test_get_post_by_slug_missing(db_session: AsyncSession):
    assert await post_service.get_post_by_slug(db_session, "nope") is None


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_post_partial(db_session: AsyncSession, author: User):
    created = await _create(db_session, author, title="Before", tags=["old"])
    updated = await post_service.update_post(
        db_session,
        created["id"],
        PostUpdate(title="After", is_featured=True, tags=["new-a", "new-b"]),
    )
    assert updated["title"] == "After"
    assert updated["is_featured"] is True
    assert updated["content"] == created["content"]
    # Pass-through update: the slug is not regenerated from the new title.
    assert updated["slug"] == created["slug"]
    assert sorted(updated["tags"]) == ["new-a", "new-b"]


@pytest.mark.asyncio
async def test_update_post_not_found(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await post_service.update_post(db_session, 99999, PostUpdate(title="Ghost"))


@pytest.mark.asyncio
async def test_delete_post(db_session: AsyncSession, author: User):
    created = await _create(db_session, author, tags=["gone"])
    deleted = await post_service.delete_post(db_session, created["id"])
    assert deleted["id"] == created["id"]
    assert await post_service.get_post_by_slug(db_session, created["slug"]) is None
    with pytest.raises(NotFoundError):
        await post_service.delete_post(db_session, created["id"])


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_posts_empty(db_session: AsyncSession):
    result = await post_service.get_posts(db_session)
    assert result.data == []
    assert result.pagination.total == 0
    assert result.pagination.total_pages == 0


@pytest.mark.asyncio
async def test_get_posts_last_partial_page(db_session: AsyncSession, author: User):
    for i in range(23):
        await _create(db_session, author, title=f"Post {i}")

    result = await post_service.get_posts(db_session, page=3, limit=10)
    assert len(result.data) == 3
    assert result.pagination.page == 3
    assert result.pagination.limit == 10
    assert result.pagination.total == 23
    assert result.pagination.total_pages == 3


@pytest.mark.asyncio
async def test_get_posts_newest_first(db_session: AsyncSession, author: User):
    old = await _create(db_session, author, title="Old")
    new = await _create(db_session, author, title="New")
    await db_session.execute(
        update(Post)
        .where(Post.id == old["id"])
        .values(created_at=datetime.now(timezone.utc) - timedelta(days=3))
    )

    result = await post_service.get_posts(db_session)
    assert [p["id"] for p in result.data] == [new["id"], old["id"]]


@pytest.mark.asyncio
async def test_get_posts_search_is_case_insensitive(db_session: AsyncSession, author: User):
    await _create(db_session, author, title="Async Python", content="event loops")
    await _create(db_session, author, title="Rust", content="Borrow checker and PYTHON bindings")
    await _create(db_session, author, title="Go", content="goroutines")

    result = await post_service.get_posts(db_session, search="python")
    assert result.pagination.total == 2
    assert {p["title"] for p in result.data} == {"Async Python", "Rust"}


@pytest.mark.asyncio
async def test_get_posts_search_treats_wildcards_literally(db_session: AsyncSession, author: User):
    for title in ("50% off", "Plain", "snake_case", "snakeXcase"):
        await _create(db_session, author, title=title, content="body")

    percent = await post_service.get_posts(db_session, search="%")
    assert [p["title"] for p in percent.data] == ["50% off"]

    underscore = await post_service.get_posts(db_session, search="e_c")
    assert [p["title"] for p in underscore.data] == ["snake_case"]


@pytest.mark.asyncio
async def test_get_posts_filters_combine(db_session: AsyncSession, author: User):
    await _create(db_session, author, title="A", is_featured=True, tags=["python"])
    await _create(db_session, author, title="B", is_featured=False, tags=["python"])
    await _create(db_session, author, title="C", is_featured=True, tags=["rust"])
    await _create(db_session, author, title="D", is_featured=True)

    featured = await post_service.get_posts(db_session, is_featured=True)
    assert {p["title"] for p in featured.data} == {"A", "C", "D"}

    not_featured = await post_service.get_posts(db_session, is_featured=False)
    assert [p["title"] for p in not_featured.data] == ["B"]

    any_tag = await post_service.get_posts(db_session, tags=["python", "rust"])
    assert {p["title"] for p in any_tag.data} == {"A", "B", "C"}

    both = await post_service.get_posts(db_session, is_featured=True, tags=["python"])
    assert [p["title"] for p in both.data] == ["A"]
    assert both.pagination.total == 1


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_blog_stats_empty(db_session: AsyncSession):
    stats = await post_service.get_blog_stats(db_session)
    assert stats.stats.total_posts == 0
    assert stats.stats.total_views == 0
    assert stats.stats.avg_views == 0
    assert stats.stats.min_views == 0
    assert stats.stats.max_views == 0
    assert stats.featured_count == 0
    assert stats.top_featured is None
    assert stats.last_week_post_count == 0


@pytest.mark.asyncio
async def test_blog_stats(db_session: AsyncSession, author: User):
    quiet = await _create(db_session, author, title="Quiet", is_featured=True)
    popular = await _create(db_session, author, title="Popular", is_featured=True)
    plain = await _create(db_session, author, title="Plain")

    for _ in range(5):
        await post_service.get_post(db_session, popular["id"])
    await post_service.get_post(db_session, quiet["id"])

    await db_session.execute(
        update(Post)
        .where(Post.id == plain["id"])
        .values(created_at=datetime.now(timezone.utc) - timedelta(days=10))
    )

    stats = await post_service.get_blog_stats(db_session)
    assert stats.stats.total_posts == 3
    assert stats.stats.total_views == 6
    assert stats.stats.avg_views == pytest.approx(2.0)
    assert stats.stats.min_views == 0
    assert stats.stats.max_views == 5
    assert stats.featured_count == 2
    assert stats.top_featured["id"] == popular["id"]
    assert stats.top_featured["view_count"] == 5
    assert stats.last_week_post_count == 2
