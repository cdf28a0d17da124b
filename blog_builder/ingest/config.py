from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .feed import DEFAULT_FEED_LIMIT
from .images import DEFAULT_BLUR_SIZE
from .pagination import DEFAULT_PAGE_SIZE
from .reading_time import DEFAULT_CHARS_PER_MINUTE, DEFAULT_WORDS_PER_MINUTE

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class BuildConfig:
    source_dir: str = "./md"
    output_dir: str = "./data"
    blog_name: str = "Blog"
    blog_description: str = ""
    site_url: str = "http://localhost:3000"
    language: str = "ko"
    posts_per_page: int = DEFAULT_PAGE_SIZE
    feed_limit: int = DEFAULT_FEED_LIMIT
    blur_size: int = DEFAULT_BLUR_SIZE
    image_workers: int = 1
    chars_per_minute: int = DEFAULT_CHARS_PER_MINUTE
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE
    build_search_index: bool = True

    @property
    def source_root(self) -> Path:
        return Path(self.source_dir)

    @property
    def output_root(self) -> Path:
        return Path(self.output_dir)

    @classmethod
    def from_env(cls) -> "BuildConfig":
        return cls(
            source_dir=os.getenv("BLOG_SOURCE_DIR", "./md"),
            output_dir=os.getenv("BLOG_OUTPUT_DIR", "./data"),
            blog_name=os.getenv("BLOG_NAME", "Blog"),
            blog_description=os.getenv("BLOG_DESCRIPTION", ""),
            site_url=os.getenv("SITE_URL", "http://localhost:3000"),
            language=os.getenv("BLOG_LANGUAGE", "ko"),
            posts_per_page=int(os.getenv("POSTS_PER_PAGE", str(DEFAULT_PAGE_SIZE))),
            feed_limit=int(os.getenv("FEED_LIMIT", str(DEFAULT_FEED_LIMIT))),
            blur_size=int(os.getenv("BLUR_SIZE", str(DEFAULT_BLUR_SIZE))),
            image_workers=int(os.getenv("IMAGE_WORKERS", "1")),
            chars_per_minute=int(os.getenv("READING_CHARS_PER_MINUTE", str(DEFAULT_CHARS_PER_MINUTE))),
            words_per_minute=int(os.getenv("READING_WORDS_PER_MINUTE", str(DEFAULT_WORDS_PER_MINUTE))),
            build_search_index=_env_bool("BUILD_SEARCH_INDEX", True),
        )
