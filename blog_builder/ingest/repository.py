from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    or_,
    select,
    true,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import CategoryCount, DocumentRecord, HashtagCount, InsertResult, ParsedDocument

logger = logging.getLogger(__name__)

Base = declarative_base()


class DocumentModel(Base):
    __tablename__ = "documents"
    __table_args__ = (CheckConstraint("reading_time >= 1", name="ck_documents_reading_time"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, default="", index=True)
    thumbnail = Column(String)
    blur_data_url = Column(Text)
    created_at = Column(DateTime, index=True)
    modified_at = Column(DateTime, index=True)
    reading_time = Column(Integer, nullable=False)


class HashtagModel(Base):
    __tablename__ = "hashtags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False, index=True)


class DocumentHashtagModel(Base):
    __tablename__ = "document_hashtags"
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True)
    hashtag_id = Column(Integer, ForeignKey("hashtags.id", ondelete="CASCADE"), primary_key=True)


def _configure_sqlite(engine) -> None:
    # pysqlite's implicit transaction handling breaks SAVEPOINT; take over
    # BEGIN ourselves and turn on foreign keys for cascading deletes.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _date_order():
    # Undated documents sort after every dated one.
    return (
        DocumentModel.created_at.is_(None),
        DocumentModel.created_at.desc(),
        DocumentModel.slug,
    )


class DatasetRepository:
    """
    Persistence boundary for the blog dataset: a write side used once per
    build and the read-only queries the serving layer needs.
    """

    # Build operations
    def reset_schema(self) -> None:
        raise NotImplementedError

    def ingest_documents(self, documents: Iterable[ParsedDocument]) -> List[InsertResult]:
        raise NotImplementedError

    def delete_document(self, slug: str) -> bool:
        raise NotImplementedError

    # Read operations
    def list_documents(self, limit: int = 20, offset: int = 0) -> List[DocumentRecord]:
        raise NotImplementedError

    def count_documents(self) -> int:
        raise NotImplementedError

    def get_document(self, slug: str) -> Optional[DocumentRecord]:
        raise NotImplementedError

    def list_by_category(
        self, category: str, limit: int = 20, offset: int = 0, include_descendants: bool = True
    ) -> List[DocumentRecord]:
        raise NotImplementedError

    def count_by_category(self, category: str, include_descendants: bool = True) -> int:
        raise NotImplementedError

    def list_by_hashtag(self, name: str, limit: int = 20, offset: int = 0) -> List[DocumentRecord]:
        raise NotImplementedError

    def count_by_hashtag(self, name: str) -> int:
        raise NotImplementedError

    def hashtags_with_counts(self) -> List[HashtagCount]:
        raise NotImplementedError

    def search_hashtags(self, query: str, limit: int = 10) -> List[str]:
        raise NotImplementedError

    def search_documents(self, query: str, limit: int = 10) -> List[DocumentRecord]:
        raise NotImplementedError

    def categories_with_counts(self) -> List[CategoryCount]:
        raise NotImplementedError

    def all_category_paths(self) -> List[str]:
        raise NotImplementedError

    def list_feed_documents(self, limit: int = 50) -> List[DocumentRecord]:
        raise NotImplementedError

    def list_all_documents(self) -> List[DocumentRecord]:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class SqlAlchemyDatasetRepository(DatasetRepository):
    """
    SQL-backed repository using SQLAlchemy. Built against SQLite; the queries
    avoid dialect-specific syntax.
    """

    def __init__(self, database_url: str, create_schema: bool = True, poolclass=None):
        self.database_url = database_url
        engine_kwargs = {"poolclass": poolclass} if poolclass is not None else {}
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            _configure_sqlite(self.engine)
        if create_schema:
            Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def close(self) -> None:
        self.engine.dispose()

    # region Build operations
    def reset_schema(self) -> None:
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    def ingest_documents(self, documents: Iterable[ParsedDocument]) -> List[InsertResult]:
        """
        Insert every document inside one transaction. Each document gets its
        own savepoint so a failure only discards that document's rows.
        """
        results: List[InsertResult] = []
        with self._session() as session:
            with session.begin():
                for document in documents:
                    results.append(self._insert_document(session, document))
        return results

    def _insert_document(self, session: Session, document: ParsedDocument) -> InsertResult:
        try:
            with session.begin_nested():
                model = DocumentModel(
                    slug=document.slug,
                    title=document.title,
                    body=document.body,
                    excerpt=document.excerpt,
                    category=document.category,
                    thumbnail=document.thumbnail,
                    blur_data_url=document.blur_data_url,
                    created_at=document.created_at,
                    modified_at=document.modified_at,
                    reading_time=document.reading_time,
                )
                session.add(model)
                session.flush()
                for name in dict.fromkeys(document.hashtags):
                    hashtag = session.execute(
                        select(HashtagModel).where(HashtagModel.name == name)
                    ).scalar_one_or_none()
                    if hashtag is None:
                        hashtag = HashtagModel(name=name)
                        session.add(hashtag)
                        session.flush()
                    session.add(DocumentHashtagModel(document_id=model.id, hashtag_id=hashtag.id))
                session.flush()
                document_id = model.id
        except SQLAlchemyError as exc:
            logger.warning("Failed to insert %s: %s", document.slug, exc)
            return InsertResult(slug=document.slug, ok=False, error=str(exc).splitlines()[0])
        logger.debug("Inserted %s (%d hashtags, %d min read)", document.slug, len(document.hashtags), document.reading_time)
        return InsertResult(slug=document.slug, ok=True, document_id=document_id)

    def delete_document(self, slug: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(DocumentModel).where(DocumentModel.slug == slug))
            session.commit()
            return bool(result.rowcount)

    # endregion

    # region Read operations
    def list_documents(self, limit: int = 20, offset: int = 0) -> List[DocumentRecord]:
        stmt = select(DocumentModel).order_by(*_date_order()).limit(limit).offset(offset)
        return self._fetch(stmt)

    def count_documents(self) -> int:
        return self._count(select(func.count(DocumentModel.id)))

    def get_document(self, slug: str) -> Optional[DocumentRecord]:
        records = self._fetch(select(DocumentModel).where(DocumentModel.slug == slug))
        return records[0] if records else None

    def list_by_category(
        self, category: str, limit: int = 20, offset: int = 0, include_descendants: bool = True
    ) -> List[DocumentRecord]:
        stmt = (
            select(DocumentModel)
            .where(self._category_clause(category, include_descendants))
            .order_by(*_date_order())
            .limit(limit)
            .offset(offset)
        )
        return self._fetch(stmt)

    def count_by_category(self, category: str, include_descendants: bool = True) -> int:
        stmt = select(func.count(DocumentModel.id)).where(self._category_clause(category, include_descendants))
        return self._count(stmt)

    def list_by_hashtag(self, name: str, limit: int = 20, offset: int = 0) -> List[DocumentRecord]:
        stmt = (
            select(DocumentModel)
            .join(DocumentHashtagModel, DocumentHashtagModel.document_id == DocumentModel.id)
            .join(HashtagModel, HashtagModel.id == DocumentHashtagModel.hashtag_id)
            .where(HashtagModel.name == name)
            .order_by(*_date_order())
            .limit(limit)
            .offset(offset)
        )
        return self._fetch(stmt)

    def count_by_hashtag(self, name: str) -> int:
        stmt = (
            select(func.count(DocumentHashtagModel.document_id))
            .join(HashtagModel, HashtagModel.id == DocumentHashtagModel.hashtag_id)
            .where(HashtagModel.name == name)
        )
        return self._count(stmt)

    def hashtags_with_counts(self) -> List[HashtagCount]:
        count = func.count(DocumentHashtagModel.document_id)
        stmt = (
            select(HashtagModel.name, count)
            .outerjoin(DocumentHashtagModel, DocumentHashtagModel.hashtag_id == HashtagModel.id)
            .group_by(HashtagModel.id, HashtagModel.name)
            .order_by(count.desc(), HashtagModel.name)
        )
        with self._session() as session:
            return [HashtagCount(name=name, count=n) for name, n in session.execute(stmt).all()]

    def search_hashtags(self, query: str, limit: int = 10) -> List[str]:
        stmt = (
            select(HashtagModel.name)
            .where(HashtagModel.name.contains(query, autoescape=True))
            .order_by(HashtagModel.name)
            .limit(limit)
        )
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    def search_documents(self, query: str, limit: int = 10) -> List[DocumentRecord]:
        term = query.strip()
        if not term:
            return []
        tagged = (
            select(DocumentHashtagModel.document_id)
            .join(HashtagModel, HashtagModel.id == DocumentHashtagModel.hashtag_id)
            .where(HashtagModel.name.contains(term, autoescape=True))
        )
        stmt = (
            select(DocumentModel)
            .where(
                or_(
                    DocumentModel.title.contains(term, autoescape=True),
                    DocumentModel.body.contains(term, autoescape=True),
                    DocumentModel.category.contains(term, autoescape=True),
                    DocumentModel.id.in_(tagged),
                )
            )
            .order_by(*_date_order())
            .limit(limit)
        )
        return self._fetch(stmt)

    def categories_with_counts(self) -> List[CategoryCount]:
        stmt = (
            select(DocumentModel.category, func.count(DocumentModel.id))
            .group_by(DocumentModel.category)
            .order_by(DocumentModel.category)
        )
        with self._session() as session:
            return [CategoryCount(category=c, count=n) for c, n in session.execute(stmt).all()]

    def all_category_paths(self) -> List[str]:
        """Every category plus each of its ancestors: `a/b/c` -> a, a/b, a/b/c."""
        with self._session() as session:
            categories = session.execute(select(DocumentModel.category).distinct()).scalars().all()
        paths = set()
        for category in categories:
            if not category:
                continue
            parts = category.split("/")
            for depth in range(1, len(parts) + 1):
                paths.add("/".join(parts[:depth]))
        return sorted(paths)

    def list_feed_documents(self, limit: int = 50) -> List[DocumentRecord]:
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.created_at.is_not(None))
            .order_by(DocumentModel.created_at.desc(), DocumentModel.slug)
            .limit(limit)
        )
        return self._fetch(stmt)

    def list_all_documents(self) -> List[DocumentRecord]:
        return self._fetch(select(DocumentModel).order_by(*_date_order()))

    # endregion

    # region helpers
    def _category_clause(self, category: str, include_descendants: bool):
        if not include_descendants:
            return DocumentModel.category == category
        if not category:
            return true()
        return or_(
            DocumentModel.category == category,
            DocumentModel.category.startswith(category + "/", autoescape=True),
        )

    def _count(self, stmt) -> int:
        with self._session() as session:
            return int(session.execute(stmt).scalar_one() or 0)

    def _fetch(self, stmt) -> List[DocumentRecord]:
        with self._session() as session:
            models = session.execute(stmt).scalars().all()
            hashtags = self._hashtags_for(session, [m.id for m in models])
            return [
                DocumentRecord(
                    id=m.id,
                    slug=m.slug,
                    title=m.title,
                    body=m.body,
                    excerpt=m.excerpt or "",
                    category=m.category or "",
                    thumbnail=m.thumbnail,
                    blur_data_url=m.blur_data_url,
                    created_at=m.created_at,
                    modified_at=m.modified_at,
                    reading_time=int(m.reading_time),
                    hashtags=hashtags.get(m.id, []),
                )
                for m in models
            ]

    def _hashtags_for(self, session: Session, document_ids: List[int]) -> Dict[int, List[str]]:
        if not document_ids:
            return {}
        stmt = (
            select(DocumentHashtagModel.document_id, HashtagModel.name)
            .join(HashtagModel, HashtagModel.id == DocumentHashtagModel.hashtag_id)
            .where(DocumentHashtagModel.document_id.in_(document_ids))
            .order_by(HashtagModel.name)
        )
        grouped: Dict[int, List[str]] = {}
        for document_id, name in session.execute(stmt).all():
            grouped.setdefault(document_id, []).append(name)
        return grouped

    # endregion
