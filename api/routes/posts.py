from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from blog_builder.ingest import DatasetRepository, rewrite_image_urls

from api.dependencies import get_repository

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("")
def list_posts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    repo: DatasetRepository = Depends(get_repository),
):
    posts = repo.list_documents(limit=limit, offset=offset)
    total = repo.count_documents()
    return {
        "posts": [p.summary() for p in posts],
        "total": total,
        "hasMore": offset + len(posts) < total,
    }


# Registered before the catch-all slug route so "search" is not read as a slug.
@router.get("/search")
def search_posts(
    q: str = "",
    limit: int = Query(10, ge=1, le=50),
    repo: DatasetRepository = Depends(get_repository),
):
    if not q.strip():
        return {"posts": []}
    return {"posts": [p.summary() for p in repo.search_documents(q.strip(), limit=limit)]}


@router.get("/{slug:path}")
def get_post(slug: str, repo: DatasetRepository = Depends(get_repository)):
    post = repo.get_document(slug.strip("/"))
    if not post:
        raise HTTPException(status_code=404, detail=f"Post not found: {slug}")
    payload = post.summary()
    payload["body"] = rewrite_image_urls(post.body, post.category)
    return payload
