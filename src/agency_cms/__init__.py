"""Agency CMS: blog content store, admin API, media pipeline and SQLite migration."""

__version__ = "1.0.0"
