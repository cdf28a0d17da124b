import datetime as dt
import json

import pytest

from blog_builder.ingest.models import ParsedDocument, ScopeKind
from blog_builder.ingest.pagination import PaginationGenerator, build_page, iter_scopes, total_pages_for
from blog_builder.ingest.repository import SqlAlchemyDatasetRepository
from blog_builder.ingest.storage import LocalSiteStorage, StoragePaths


def _doc(slug, created, hashtags=()):
    return ParsedDocument(
        slug=slug,
        title=slug,
        body="body",
        excerpt="",
        category=slug.rsplit("/", 1)[0] if "/" in slug else "",
        thumbnail=None,
        created_at=created,
        modified_at=created,
        reading_time=1,
        hashtags=list(hashtags),
    )


@pytest.fixture
def repo(tmp_path):
    repository = SqlAlchemyDatasetRepository(f"sqlite+pysqlite:///{tmp_path / 'blog.db'}")
    yield repository
    repository.close()


def test_page_math():
    assert total_pages_for(45, 20) == 3
    assert total_pages_for(0, 20) == 0
    last = build_page(ScopeKind.ALL, "", [{}] * 5, 3, 20, 45)
    assert last.total_pages == 3 and last.has_more is False
    first = build_page(ScopeKind.ALL, "", [{}] * 20, 1, 20, 45)
    assert first.has_more is True
    with pytest.raises(ValueError):
        total_pages_for(10, 0)


def test_global_listing_pages(repo, tmp_path):
    base = dt.datetime(2024, 1, 1)
    repo.ingest_documents([_doc(f"p{i:02d}", base + dt.timedelta(days=i)) for i in range(45)])
    pages = list(PaginationGenerator(repo, page_size=20).pages_for(ScopeKind.ALL, ""))

    assert [p.page for p in pages] == [1, 2, 3]
    assert len(pages[2].items) == 5
    assert pages[2].has_more is False
    assert pages[0].items[0]["slug"] == "p44"
    assert "body" not in pages[0].items[0]


def test_nested_category_scopes(repo):
    repo.ingest_documents(
        [
            _doc("a/b/c/post", dt.datetime(2024, 1, 1), ["tag"]),
            _doc("top", None),
        ]
    )
    scopes = list(iter_scopes(repo))
    assert scopes == [
        (ScopeKind.ALL, ""),
        (ScopeKind.CATEGORY, "a"),
        (ScopeKind.CATEGORY, "a/b"),
        (ScopeKind.CATEGORY, "a/b/c"),
        (ScopeKind.HASHTAG, "tag"),
    ]
    generator = PaginationGenerator(repo, page_size=20)
    for key in ("a", "a/b", "a/b/c"):
        (page,) = generator.pages_for(ScopeKind.CATEGORY, key)
        assert [item["slug"] for item in page.items] == ["a/b/c/post"]
    (everything,) = generator.pages_for(ScopeKind.ALL, "")
    assert [item["slug"] for item in everything.items] == ["a/b/c/post", "top"]


def test_generate_writes_files_and_empty_global_page(repo, tmp_path):
    paths = StoragePaths(tmp_path / "out")
    written = PaginationGenerator(repo).generate(LocalSiteStorage(paths.root), paths)

    assert written == 1
    payload = json.loads(paths.listing_page_path(ScopeKind.ALL, "", 1).read_text(encoding="utf-8"))
    assert payload == {
        "scope": "all",
        "key": "",
        "items": [],
        "page": 1,
        "totalPages": 0,
        "totalItems": 0,
        "hasMore": False,
    }
    assert paths.listing_page_path(ScopeKind.CATEGORY, "a/b", 2) == paths.root / "listings" / "category" / "a" / "b" / "page-2.json"
