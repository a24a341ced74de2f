"""Post data models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Lowercase alphanumeric runs joined by single hyphens
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class Post(BaseModel):
    """A stored blog post, as returned to clients.

    Timestamps serialize as ``createdAt``/``updatedAt`` on the wire; the
    stored documents use the field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    slug: str
    content: str
    excerpt: str | None = None
    published: bool = False
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class PostCreate(BaseModel):
    """Fields accepted when creating a post."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str = Field(..., min_length=1, max_length=300)
    slug: str | None = Field(None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    content: str = Field(..., min_length=1)
    excerpt: str | None = Field(None, max_length=1000)
    published: bool = False


class PostUpdate(BaseModel):
    """Partial update. Only the fields a client sends are applied."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str | None = Field(None, min_length=1, max_length=300)
    slug: str | None = Field(None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=1000)
    published: bool | None = None


class UploadResponse(BaseModel):
    """Location of a stored image."""

    url: str
