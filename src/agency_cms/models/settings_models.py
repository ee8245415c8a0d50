"""
Blog-wide settings edited from the admin settings screen.

The settings live in a single document `{key: "blog"}` of the `settings` collection. Each
section is merged independently on update, so saving the SEO tab never resets media options.
Outbound mail and security options are not stored here: mail delivery is handled outside this
service and the admin secret comes from the environment.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

SETTINGS_DOCUMENT_KEY = "blog"
SETTINGS_SECTIONS = ("site", "seo", "media", "appearance")


class SiteSettings(BaseModel):
    title: str = "AlmaStack Blog"
    description: str = "Blog tecnico su sviluppo web e tecnologie moderne"
    url: str = "https://almastack.it"
    language: str = "it"
    posts_per_page: int = Field(10, ge=1, le=100)
    enable_comments: bool = False
    enable_newsletter: bool = False


class SeoSettings(BaseModel):
    meta_title: str = "AlmaStack - Sviluppo Web e Soluzioni Digitali"
    meta_description: str = "Blog tecnico su sviluppo web, cloud computing, AI e best practices"
    meta_keywords: str = "web development, react, nextjs, cloud, AI"
    og_image: str = "/images/og-image.jpg"
    twitter_handle: str = "@almastack"


class MediaSettings(BaseModel):
    max_upload_size: int = Field(10, ge=1, description="Megabytes")
    allowed_formats: List[str] = Field(default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp", "svg"])
    auto_optimize: bool = True
    compression_quality: int = Field(85, ge=1, le=100)
    max_width: int = Field(1920, ge=1)
    thumbnail_size: int = Field(300, ge=1)


class AppearanceSettings(BaseModel):
    theme: str = Field("system", pattern="^(light|dark|system)$")
    primary_color: str = "#3B82F6"
    font_family: str = "Inter"
    show_author_image: bool = True
    show_reading_time: bool = True
    show_share_buttons: bool = True


class BlogSettings(BaseModel):
    """All settings sections with their defaults."""

    site: SiteSettings = Field(default_factory=SiteSettings)
    seo: SeoSettings = Field(default_factory=SeoSettings)
    media: MediaSettings = Field(default_factory=MediaSettings)
    appearance: AppearanceSettings = Field(default_factory=AppearanceSettings)

    def merged(self, changes: Dict[str, Any]) -> "BlogSettings":
        """
        Return a copy with `changes` merged section by section.

        Unknown sections are ignored; unknown keys inside a section are dropped by
        validation.

        Raises:
            pydantic.ValidationError: A supplied value does not validate.
        """
        current = self.model_dump()
        for section in SETTINGS_SECTIONS:
            values = changes.get(section)
            if isinstance(values, dict):
                current[section].update(values)
        return BlogSettings.model_validate(current)
