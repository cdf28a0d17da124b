from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from sqlalchemy.pool import NullPool

from blog_builder.ingest import BuildConfig, DatasetRepository, SqlAlchemyDatasetRepository, StoragePaths


@lru_cache(maxsize=1)
def get_config() -> BuildConfig:
    return BuildConfig.from_env()


def get_paths() -> StoragePaths:
    return StoragePaths(get_config().output_root)


@lru_cache(maxsize=1)
def get_repository() -> DatasetRepository:
    # Serving never creates tables; the build owns the schema. Without pooling
    # every request opens the current blog.db, so a swapped build is picked up.
    return SqlAlchemyDatasetRepository(get_paths().database_url, create_schema=False, poolclass=NullPool)


def get_public_root() -> Path:
    return get_paths().public_dir
