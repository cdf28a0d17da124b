from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Iterator, List, Tuple

from .models import DocumentRecord, PaginationPage, ScopeKind
from .repository import DatasetRepository
from .storage import LocalSiteStorage, StoragePaths

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

Scope = Tuple[ScopeKind, str]


def total_pages_for(total: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")
    return math.ceil(total / page_size)


def build_page(
    scope: ScopeKind,
    key: str,
    items: List[Dict[str, Any]],
    page: int,
    page_size: int,
    total: int,
) -> PaginationPage:
    total_pages = total_pages_for(total, page_size)
    return PaginationPage(
        scope=scope,
        key=key,
        items=items,
        page=page,
        total_pages=total_pages,
        total_items=total,
        has_more=page < total_pages,
    )


def iter_scopes(repository: DatasetRepository) -> Iterator[Scope]:
    """
    The global scope, every category path including each ancestor, and every
    hashtag that tags at least one document.
    """
    yield ScopeKind.ALL, ""
    for path in repository.all_category_paths():
        yield ScopeKind.CATEGORY, path
    for hashtag in repository.hashtags_with_counts():
        if hashtag.count > 0:
            yield ScopeKind.HASHTAG, hashtag.name


class PaginationGenerator:
    """Writes fixed-size listing snapshots for every scope of the dataset."""

    def __init__(self, repository: DatasetRepository, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.repo = repository
        self.page_size = page_size

    def _source_for(self, scope: ScopeKind, key: str) -> Tuple[int, Callable[[int, int], List[DocumentRecord]]]:
        if scope == ScopeKind.ALL:
            return self.repo.count_documents(), self.repo.list_documents
        if scope == ScopeKind.CATEGORY:
            return (
                self.repo.count_by_category(key),
                lambda limit, offset: self.repo.list_by_category(key, limit=limit, offset=offset),
            )
        return (
            self.repo.count_by_hashtag(key),
            lambda limit, offset: self.repo.list_by_hashtag(key, limit=limit, offset=offset),
        )

    def pages_for(self, scope: ScopeKind, key: str) -> Iterator[PaginationPage]:
        total, fetch = self._source_for(scope, key)
        page_count = total_pages_for(total, self.page_size)
        if page_count == 0 and scope == ScopeKind.ALL:
            # An empty corpus still gets a first page so consumers always find one.
            yield build_page(scope, key, [], 1, self.page_size, total)
            return
        for page in range(1, page_count + 1):
            records = fetch(self.page_size, (page - 1) * self.page_size)
            yield build_page(scope, key, [r.summary() for r in records], page, self.page_size, total)

    def generate(self, storage: LocalSiteStorage, paths: StoragePaths) -> int:
        written = 0
        for scope, key in iter_scopes(self.repo):
            for page in self.pages_for(scope, key):
                storage.write_json(paths.listing_page_path(scope, key, page.page), page.to_json())
                written += 1
        logger.info("Wrote %d listing pages", written)
        return written
