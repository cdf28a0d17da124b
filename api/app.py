from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.assets import router as assets_router
from api.routes.posts import router as posts_router
from api.routes.taxonomy import router as taxonomy_router


def create_app() -> FastAPI:
    app = FastAPI(title="Blog Dataset API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(posts_router)
    app.include_router(taxonomy_router)
    app.include_router(assets_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
