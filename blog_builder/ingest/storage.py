from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from .collector import iter_files, pick_latest
from .models import ScopeKind, SourceFile, SourceKind
from .paths import canonical_relative_path

logger = logging.getLogger(__name__)


@dataclass
class StoragePaths:
    root: Path

    @property
    def database_path(self) -> Path:
        return self.root / "blog.db"

    @property
    def database_url(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path}"

    @property
    def listings_dir(self) -> Path:
        return self.root / "listings"

    @property
    def feed_path(self) -> Path:
        return self.root / "feed.xml"

    @property
    def blur_map_path(self) -> Path:
        return self.root / "blur.json"

    @property
    def public_dir(self) -> Path:
        return self.root / "public" / "md"

    @property
    def search_index_dir(self) -> Path:
        return self.root / "search"

    @property
    def report_path(self) -> Path:
        return self.root / "build-report.json"

    def listing_page_path(self, scope: ScopeKind, key: str, page: int) -> Path:
        base = self.listings_dir / scope.value
        for segment in key.split("/"):
            if segment:
                base = base / segment
        return base / f"page-{page}.json"


class LocalSiteStorage:
    """
    Manages the output tree. A build writes into a private staging directory
    next to the live output and `commit_staging` swaps it into place, so a
    reader sees either the previous build or the new one, never a mix.
    """

    def __init__(self, output_root: Path):
        self.output_root = Path(output_root)
        self.paths = StoragePaths(self.output_root)

    def begin_staging(self) -> StoragePaths:
        parent = self.output_root.resolve().parent
        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{self.output_root.name}.staging-", dir=parent))
        logger.debug("Staging build output in %s", staging)
        return StoragePaths(staging)

    def discard_staging(self, staging: StoragePaths) -> None:
        shutil.rmtree(staging.root, ignore_errors=True)

    def commit_staging(self, staging: StoragePaths) -> StoragePaths:
        target = self.output_root.resolve()
        backup = None
        if target.exists():
            backup = target.with_name(f".{target.name}.old-{uuid.uuid4().hex[:8]}")
            os.replace(target, backup)
        try:
            os.replace(staging.root, target)
        except OSError:
            if backup is not None:
                os.replace(backup, target)
            raise
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)
        logger.info("Published build output to %s", target)
        return self.paths

    def mirror_assets(self, source_root: Path, staging: StoragePaths) -> int:
        """
        Copy the source tree into the public directory under canonical
        (NFC) names. Raw names that collapse onto one canonical path keep
        the newest file.
        """
        candidates: List[SourceFile] = []
        for path, relative in iter_files(source_root):
            try:
                mtime = path.stat().st_mtime
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", path, exc)
                continue
            candidates.append(SourceFile(path=path, relative_path=relative, kind=SourceKind.ASSET, mtime=mtime))

        winners, collisions = pick_latest(candidates, key=lambda s: canonical_relative_path(s.relative_path))
        for collision in collisions:
            logger.info("Asset %s has %d raw variants; mirroring %s", collision.slug, len(collision.discarded) + 1, collision.kept)

        copied = 0
        for canonical, source in winners.items():
            target = staging.public_dir / canonical
            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                shutil.copy2(source.path, target)
            except OSError as exc:
                logger.warning("Failed to mirror %s: %s", source.relative_path, exc)
                continue
            copied += 1
        return copied

    def write_json(self, path: Path, payload: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.write("\n")
        return path

    def write_text(self, path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
