from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol

from whoosh import index
from whoosh.fields import ID, KEYWORD, TEXT, Schema
from whoosh.qparser import MultifieldParser

from .models import DocumentRecord


class Indexer(Protocol):
    def index_documents(self, documents: Iterable[DocumentRecord]) -> int:
        ...


class NoopIndexer:
    """
    Keeps the pipeline wired when no search index is wanted.
    """

    def index_documents(self, documents: Iterable[DocumentRecord]) -> int:
        return 0


class WhooshIndexer:
    """
    File-system backed Whoosh index over the published documents. Builds are
    full rebuilds, so every call clears the index before adding documents.
    """

    def __init__(self, index_dir: Path):
        self.index_dir = Path(index_dir)
        self.schema = Schema(
            slug=ID(stored=True, unique=True),
            title=TEXT(stored=True),
            body=TEXT,
            category=ID(stored=True),
            hashtags=KEYWORD(stored=True, commas=True, lowercase=True),
        )
        # Opened on first search; a build always writes a fresh index.
        self.ix = None

    def index_documents(self, documents: Iterable[DocumentRecord]) -> int:
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.ix = index.create_in(self.index_dir, self.schema)
        writer = self.ix.writer()
        count = 0
        try:
            for document in documents:
                writer.add_document(
                    slug=document.slug,
                    title=document.title,
                    body=document.body,
                    category=document.category,
                    hashtags=",".join(document.hashtags),
                )
                count += 1
        except Exception:
            writer.cancel()
            raise
        writer.commit()
        return count

    def search(self, query_str: str, limit: int = 10):
        """
        Return a list of plain dicts so callers are safe after the searcher closes.
        """
        if self.ix is None:
            if not index.exists_in(self.index_dir):
                return []
            self.ix = index.open_dir(self.index_dir)
        parser = MultifieldParser(["title", "body", "hashtags"], schema=self.schema)
        query = parser.parse(query_str)
        with self.ix.searcher() as searcher:
            results = searcher.search(query, limit=limit)
            return [
                {
                    "slug": hit.get("slug"),
                    "title": hit.get("title"),
                    "category": hit.get("category"),
                }
                for hit in results
            ]
