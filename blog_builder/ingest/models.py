from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how dates are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SourceKind(str, Enum):
    DOCUMENT = "document"
    IMAGE = "image"
    ASSET = "asset"


class BuildPhase(str, Enum):
    PRECHECK = "precheck"
    MIRROR = "mirror"
    COLLECT = "collect"
    PREVIEW = "preview"
    PARSE = "parse"
    DB_INGESTION = "db_ingestion"
    PAGINATION = "pagination"
    FEED = "feed"
    INDEXING = "indexing"
    SWAP = "swap"
    COMPLETED = "completed"


class ScopeKind(str, Enum):
    ALL = "all"
    CATEGORY = "category"
    HASHTAG = "hashtag"


@dataclass
class SourceFile:
    path: Path
    relative_path: str
    kind: SourceKind
    mtime: float


@dataclass
class DuplicateResolution:
    slug: str
    kept: str
    discarded: List[str]


@dataclass
class ParsedDocument:
    slug: str
    title: str
    body: str
    excerpt: str
    category: str
    thumbnail: Optional[str]
    created_at: Optional[datetime]
    modified_at: Optional[datetime]
    reading_time: int
    hashtags: List[str] = field(default_factory=list)
    blur_data_url: Optional[str] = None
    source_path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def has_dates(self) -> bool:
        return self.created_at is not None or self.modified_at is not None


@dataclass
class DocumentRecord:
    id: int
    slug: str
    title: str
    body: str
    excerpt: str
    category: str
    thumbnail: Optional[str]
    blur_data_url: Optional[str]
    created_at: Optional[datetime]
    modified_at: Optional[datetime]
    reading_time: int
    hashtags: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Listing-card view of the document: everything except the body."""
        return {
            "slug": self.slug,
            "title": self.title,
            "excerpt": self.excerpt,
            "thumbnail": self.thumbnail,
            "blurDataURL": self.blur_data_url,
            "category": self.category,
            "createdAt": _isoformat(self.created_at),
            "modifiedAt": _isoformat(self.modified_at),
            "readingTime": self.reading_time,
            "hashtags": list(self.hashtags),
        }


@dataclass
class HashtagCount:
    name: str
    count: int


@dataclass
class CategoryCount:
    category: str
    count: int


@dataclass
class InsertResult:
    slug: str
    ok: bool
    document_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class PaginationPage:
    scope: ScopeKind
    key: str
    items: List[Dict[str, Any]]
    page: int
    total_pages: int
    total_items: int
    has_more: bool

    def to_json(self) -> Dict[str, Any]:
        return {
            "scope": self.scope.value,
            "key": self.key,
            "items": self.items,
            "page": self.page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "hasMore": self.has_more,
        }


@dataclass
class FeedEntry:
    title: str
    link: str
    guid: str
    published_at: datetime
    description: str


@dataclass
class BuildReport:
    source_root: str
    output_root: str
    phase: BuildPhase = BuildPhase.PRECHECK
    files_scanned: int = 0
    documents_found: int = 0
    images_found: int = 0
    assets_mirrored: int = 0
    duplicates: List[DuplicateResolution] = field(default_factory=list)
    results: List[InsertResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    blur_failures: List[str] = field(default_factory=list)
    pages_written: int = 0
    feed_items: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def inserted(self) -> List[InsertResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[InsertResult]:
        return [r for r in self.results if not r.ok]

    def to_json(self) -> Dict[str, Any]:
        return {
            "sourceRoot": self.source_root,
            "outputRoot": self.output_root,
            "phase": self.phase.value,
            "filesScanned": self.files_scanned,
            "documentsFound": self.documents_found,
            "imagesFound": self.images_found,
            "assetsMirrored": self.assets_mirrored,
            "duplicates": [
                {"slug": d.slug, "kept": d.kept, "discarded": d.discarded} for d in self.duplicates
            ],
            "inserted": len(self.inserted),
            "failed": [{"slug": r.slug, "error": r.error} for r in self.failed],
            "warnings": list(self.warnings),
            "blurFailures": list(self.blur_failures),
            "pagesWritten": self.pages_written,
            "feedItems": self.feed_items,
            "startedAt": _isoformat(self.started_at),
            "finishedAt": _isoformat(self.finished_at),
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
