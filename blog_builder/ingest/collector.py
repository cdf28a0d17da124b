from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .models import DuplicateResolution, SourceFile, SourceKind
from .paths import DOCUMENT_SUFFIX, canonical_slug

logger = logging.getLogger(__name__)

RASTER_IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp"})


def check_source_root(root: Path) -> Path:
    """Fail fast on a source root that cannot be traversed."""
    if not root.exists():
        raise FileNotFoundError(f"Source root not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Source root is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise PermissionError(f"Source root is not readable: {root}")
    return root.resolve()


def iter_files(root: Path) -> Iterator[Tuple[Path, str]]:
    """
    Yield (path, raw relative path) for every regular file under root.

    Hidden entries are skipped, symlinked directories are not descended into
    and symlinked files pointing outside the root are dropped.
    """
    root = root.resolve()

    def _on_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc)

    for dirpath, dirnames, filenames in os.walk(root, followlinks=False, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        current = Path(dirpath)
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            path = current / name
            if path.is_symlink():
                target = path.resolve()
                if root not in target.parents:
                    logger.warning("Skipping symlink %s pointing outside the source root", path)
                    continue
            if not path.is_file():
                continue
            yield path, path.relative_to(root).as_posix()


def classify(relative_path: str) -> Optional[SourceKind]:
    suffix = os.path.splitext(relative_path)[1].lower()
    if suffix == DOCUMENT_SUFFIX:
        return SourceKind.DOCUMENT
    if suffix in RASTER_IMAGE_SUFFIXES:
        return SourceKind.IMAGE
    return None


def collect_sources(root: Path) -> List[SourceFile]:
    """Enumerate markdown documents and raster images with their mtimes."""
    root = check_source_root(root)
    sources: List[SourceFile] = []
    for path, relative in iter_files(root):
        kind = classify(relative)
        if kind is None:
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            continue
        sources.append(SourceFile(path=path, relative_path=relative, kind=kind, mtime=mtime))
    sources.sort(key=lambda s: s.relative_path)
    return sources


def pick_latest(
    sources: List[SourceFile],
    key: Callable[[SourceFile], str],
) -> Tuple[Dict[str, SourceFile], List[DuplicateResolution]]:
    """
    Group sources by `key` and keep one per group: the newest mtime, then
    the lexically smallest raw relative path when mtimes are identical.
    """
    groups: Dict[str, List[SourceFile]] = {}
    for source in sources:
        groups.setdefault(key(source), []).append(source)

    winners: Dict[str, SourceFile] = {}
    duplicates: List[DuplicateResolution] = []
    for group_key in sorted(groups):
        candidates = sorted(groups[group_key], key=lambda s: (-s.mtime, s.relative_path))
        winners[group_key] = candidates[0]
        if len(candidates) > 1:
            duplicates.append(
                DuplicateResolution(
                    slug=group_key,
                    kept=candidates[0].relative_path,
                    discarded=[c.relative_path for c in candidates[1:]],
                )
            )
    return winners, duplicates


def dedupe_by_slug(
    sources: List[SourceFile],
) -> Tuple[Dict[str, SourceFile], List[DuplicateResolution]]:
    documents = [s for s in sources if s.kind == SourceKind.DOCUMENT]
    winners, duplicates = pick_latest(documents, key=lambda s: canonical_slug(s.relative_path))
    for dup in duplicates:
        logger.info("Slug %s maps to %d files; keeping %s", dup.slug, len(dup.discarded) + 1, dup.kept)
    return winners, duplicates
