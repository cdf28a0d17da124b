"""
Path helpers shared by the collector, the parser, the asset mirror and the
read API. Everything here is pure string manipulation except `safe_join`,
which resolves against the real filesystem.
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote, unquote

NORMALIZATION_FORM = "NFC"
DOCUMENT_SUFFIX = ".md"
PUBLIC_ASSET_PREFIX = "/md/"

_ABSOLUTE_URL_PREFIXES = ("http://", "https://", "//", "data:")
_INLINE_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\(\s*([^)]+?)((?:\s+"[^"]*")?)\s*\)')


class AccessDeniedError(PermissionError):
    """Raised when a supplied path resolves outside its configured root."""


def _segments(relative_path: str) -> List[str]:
    parts = re.split(r"[\\/]+", relative_path)
    return [
        unicodedata.normalize(NORMALIZATION_FORM, part)
        for part in parts
        if part and part != "."
    ]


def canonical_relative_path(relative_path: str) -> str:
    """Normalize separators and the Unicode form of every segment."""
    return "/".join(_segments(relative_path))


def canonical_slug(relative_path: str) -> str:
    """
    Map a raw document path to its logical slug.

    `dev/web/post.md` -> `dev/web/post`. Segments that differ only by
    normalization form (NFD names written by macOS, NFC everywhere else)
    produce the same slug.
    """
    segments = _segments(relative_path)
    if segments and segments[-1].lower().endswith(DOCUMENT_SUFFIX):
        segments[-1] = segments[-1][: -len(DOCUMENT_SUFFIX)]
    return "/".join(segments)


def category_of(slug: str) -> str:
    if "/" not in slug:
        return ""
    return slug.rsplit("/", 1)[0]


def is_absolute_url(target: str) -> bool:
    return target.lower().startswith(_ABSOLUTE_URL_PREFIXES)


def resolve_relative_to_category(category: str, target: str) -> str:
    """
    Resolve an image/link target written inside a document of `category`
    to a canonical path relative to the source root.

    A leading `/` means root-relative. Raises AccessDeniedError when `..`
    segments climb above the root.
    """
    base: List[str] = [] if target.startswith(("/", "\\")) else _segments(category)
    resolved = list(base)
    for segment in _segments(target):
        if segment == "..":
            if not resolved:
                raise AccessDeniedError(f"Path escapes the source root: {target!r} (category {category!r})")
            resolved.pop()
            continue
        resolved.append(segment)
    if not resolved:
        raise AccessDeniedError(f"Path resolves to the source root itself: {target!r}")
    return "/".join(resolved)


def public_asset_url(relative_path: str) -> str:
    return PUBLIC_ASSET_PREFIX + quote(canonical_relative_path(relative_path), safe="/")


def rewrite_image_urls(body: str, category: str) -> str:
    """Point relative inline images at their public mirror URL."""

    def _replace(match: re.Match) -> str:
        alt, target, title = match.group(1), match.group(2), match.group(3)
        if is_absolute_url(target):
            return match.group(0)
        try:
            resolved = resolve_relative_to_category(category, unquote(target))
        except AccessDeniedError:
            return match.group(0)
        return f"![{alt}]({public_asset_url(resolved)}{title})"

    return _INLINE_IMAGE_RE.sub(_replace, body)


def first_inline_image(body: str) -> Optional[str]:
    match = _INLINE_IMAGE_RE.search(body)
    return match.group(2) if match else None


def safe_join(root: Union[str, Path], request_path: str) -> Path:
    """
    Resolve an externally supplied relative path under `root`.

    The check happens before anything is opened: symlinks and `..` are
    resolved first, then the result must stay inside the resolved root.
    """
    root_resolved = Path(root).resolve()
    normalized = canonical_relative_path(request_path)
    if request_path.startswith(("/", "\\")):
        raise AccessDeniedError(f"Absolute paths are not allowed: {request_path!r}")
    try:
        candidate = (root_resolved / normalized).resolve()
    except (OSError, ValueError) as exc:
        raise AccessDeniedError(f"Invalid path: {request_path!r}") from exc
    if candidate != root_resolved and root_resolved not in candidate.parents:
        raise AccessDeniedError(f"Path escapes the asset root: {request_path!r}")
    return candidate
