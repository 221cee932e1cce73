from pydantic import BaseModel, Field

from app.models import Role, UserStatus


# --- User ---

class UserBase(BaseModel):
    name: str = Field(max_length=150)
    email: str = Field(max_length=255)
    phone: str | None = Field(None, max_length=30)
    picture: str | None = Field(None, max_length=500)


class UserCreate(UserBase):
    password: str | None = None
    role: Role = Role.USER
    status: UserStatus = UserStatus.ACTIVE
    is_verified: bool = False


class UserUpdate(BaseModel):
    name: str | None = Field(None, max_length=150)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    picture: str | None = Field(None, max_length=500)
    password: str | None = None
    role: Role | None = None
    status: UserStatus | None = None
    is_verified: bool | None = None


# --- Auth ---

class GoogleProfile(UserBase):
    """Profile fields supplied by the identity provider after a Google sign-in."""

    is_verified: bool = False


# --- Post ---

class PostBase(BaseModel):
    title: str = Field(max_length=300)
    content: str
    is_featured: bool = False
    tags: list[str] = []  # tag names


class PostCreate(PostBase):
    slug: str | None = Field(None, max_length=350)


class PostUpdate(BaseModel):
    title: str | None = Field(None, max_length=300)
    slug: str | None = Field(None, max_length=350)
    content: str | None = None
    is_featured: bool | None = None
    tags: list[str] | None = None


# --- Project ---

class ProjectBase(BaseModel):
    title: str = Field(max_length=300)
    description: str
    is_featured: bool = False


class ProjectCreate(ProjectBase):
    slug: str | None = Field(None, max_length=350)


class ProjectUpdate(BaseModel):
    title: str | None = Field(None, max_length=300)
    slug: str | None = Field(None, max_length=350)
    description: str | None = None
    is_featured: bool | None = None


# --- Pagination ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PaginatedResponse(BaseModel):
    data: list  # serialised records
    pagination: Pagination


# --- Statistics ---

class ViewStats(BaseModel):
    total_posts: int
    total_views: int
    avg_views: float
    min_views: int
    max_views: int


class BlogStats(BaseModel):
    stats: ViewStats
    featured_count: int
    top_featured: dict | None = None
    last_week_post_count: int


class ProjectCounts(BaseModel):
    total_projects: int
    featured_count: int
    last_week_project_count: int
    recent_projects: list[dict] = []


class ProjectStats(BaseModel):
    stats: ProjectCounts
