"""
Ingestion subsystem exports.
"""

from .config import BuildConfig
from .engine import MarkdownParsingEngine, ParsingEngine
from .feed import FeedGenerator
from .images import BlurPreviewGenerator
from .indexing import Indexer, NoopIndexer, WhooshIndexer
from .models import (
    BuildPhase,
    BuildReport,
    CategoryCount,
    DocumentRecord,
    DuplicateResolution,
    FeedEntry,
    HashtagCount,
    InsertResult,
    PaginationPage,
    ParsedDocument,
    ScopeKind,
    SourceFile,
    SourceKind,
)
from .pagination import PaginationGenerator
from .paths import AccessDeniedError, canonical_slug, rewrite_image_urls, safe_join
from .repository import DatasetRepository, SqlAlchemyDatasetRepository
from .storage import LocalSiteStorage, StoragePaths
from .worker import SiteBuildWorker

__all__ = [
    "AccessDeniedError",
    "BlurPreviewGenerator",
    "BuildConfig",
    "BuildPhase",
    "BuildReport",
    "CategoryCount",
    "DatasetRepository",
    "DocumentRecord",
    "DuplicateResolution",
    "FeedEntry",
    "FeedGenerator",
    "HashtagCount",
    "Indexer",
    "InsertResult",
    "LocalSiteStorage",
    "MarkdownParsingEngine",
    "NoopIndexer",
    "PaginationGenerator",
    "PaginationPage",
    "ParsedDocument",
    "ParsingEngine",
    "ScopeKind",
    "SiteBuildWorker",
    "SourceFile",
    "SourceKind",
    "SqlAlchemyDatasetRepository",
    "StoragePaths",
    "WhooshIndexer",
    "canonical_slug",
    "rewrite_image_urls",
    "safe_join",
]
