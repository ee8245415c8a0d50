"""
# Blog Content Models

Request and response models for the admin CRUD API and the public read API.

## Entities

- **Post**: markdown content with a denormalized author name, category name and tag names.
- **Author**, **Category**, **Tag**: addressed by slug, referenced from posts by display name.
- **Media**: uploaded image metadata, addressed by its stored filename.

Request models only shape and type-check incoming JSON. Required display fields (`title`,
`name`) are enforced by the CRUD gateway so every rejection carries the same `{"error": ...}`
body. Unknown keys, including client-supplied timestamps, are ignored.

## Module Attributes

Attributes:
    MEDIA_UPDATABLE_FIELDS (tuple): Media fields an admin may edit after upload.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MEDIA_UPDATABLE_FIELDS = ("alt_text", "caption", "metadata", "used_in")


class _RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CreatePostRequest(_RequestModel):
    """
    Request model for creating a post.

    **Defaults applied by the gateway:** `draft=True`, `featured=False`, `views=0`,
    `excerpt=""`, `date=now`, `author=DEFAULT_AUTHOR_NAME`, `reading_time` estimated from
    `content` at 200 words per minute.
    """

    title: Optional[str] = Field(None, description="Post title")
    slug: Optional[str] = Field(None, description="Derived from the title when omitted")
    content: Optional[str] = Field(None, description="Markdown body")
    excerpt: Optional[str] = None
    date: Optional[datetime] = None
    author: Optional[str] = Field(None, description="Author display name")
    author_image: Optional[str] = None
    cover_image: Optional[str] = None
    category: Optional[str] = Field(None, description="Category display name")
    tags: Optional[List[str]] = None
    draft: Optional[bool] = None
    featured: Optional[bool] = None
    reading_time: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    seo_keywords: Optional[List[str]] = None
    og_image: Optional[str] = None
    twitter_image: Optional[str] = None

    @field_validator("tags", "seo_keywords", mode="before")
    @classmethod
    def split_comma_list(cls, v):
        # The admin editor submits comma-separated strings for list fields.
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class UpdatePostRequest(CreatePostRequest):
    """Partial update; only supplied fields are written."""


class CreateAuthorRequest(_RequestModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    email: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if v else v


class UpdateAuthorRequest(CreateAuthorRequest):
    pass


class CreateCategoryRequest(_RequestModel):
    """
    Request model for a category.

    `parent` and `order` support a hierarchy the admin screens do not use yet; `color`
    defaults to `#3B82F6`.
    """

    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{3,8}$")
    icon: Optional[str] = None
    parent: Optional[str] = None
    order: Optional[int] = None


class UpdateCategoryRequest(CreateCategoryRequest):
    pass


class CreateTagRequest(_RequestModel):
    name: Optional[str] = None
    slug: Optional[str] = None


class UpdateTagRequest(CreateTagRequest):
    pass


class BulkCreateTagsRequest(_RequestModel):
    tags: List[str] = Field(default_factory=list)


class UpdateMediaRequest(_RequestModel):
    """Editable media metadata; see `MEDIA_UPDATABLE_FIELDS`."""

    alt_text: Optional[str] = None
    caption: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    used_in: Optional[List[str]] = None


class BulkDeleteMediaRequest(_RequestModel):
    filenames: List[str] = Field(default_factory=list)


class BulkDeleteRequest(_RequestModel):
    """Keys (slugs or filenames) selected in an admin list view."""

    keys: List[str] = Field(default_factory=list)


class LoginRequest(_RequestModel):
    password: str = ""


class UploadResponse(BaseModel):
    url: str
    filename: str
    media: Optional[Dict[str, Any]] = None


class StatsResponse(BaseModel):
    """Dashboard overview counters."""

    total_posts: int = 0
    published_posts: int = 0
    draft_posts: int = 0
    featured_posts: int = 0
    total_views: int = 0
    total_categories: int = 0
    total_tags: int = 0
    total_authors: int = 0
    total_media: int = 0
