from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from blog_builder.ingest import DatasetRepository

from api.dependencies import get_repository

router = APIRouter(prefix="/api", tags=["taxonomy"])


@router.get("/hashtags")
def list_hashtags(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    repo: DatasetRepository = Depends(get_repository),
):
    if q:
        return {"hashtags": repo.search_hashtags(q, limit=limit)}
    return {"hashtags": [{"name": h.name, "count": h.count} for h in repo.hashtags_with_counts()]}


@router.get("/categories")
def list_categories(repo: DatasetRepository = Depends(get_repository)):
    return {"categories": [{"category": c.category, "count": c.count} for c in repo.categories_with_counts()]}
