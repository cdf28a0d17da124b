from __future__ import annotations

import datetime as _dt
import logging
import re
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import frontmatter
import yaml

from .models import ParsedDocument, SourceFile
from .paths import (
    AccessDeniedError,
    canonical_slug,
    category_of,
    first_inline_image,
    is_absolute_url,
    resolve_relative_to_category,
)
from .reading_time import DEFAULT_CHARS_PER_MINUTE, DEFAULT_WORDS_PER_MINUTE, estimate_reading_time

logger = logging.getLogger(__name__)

EXCERPT_MAX_LENGTH = 200
HASHTAG_TAIL_LINES = 5

_FRONTMATTER_BLOCK_RE = re.compile(r"\A---[ \t]*\r?\n(?:[\s\S]*?\r?\n)?---[ \t]*(?:\r?\n|\Z)")
_TITLE_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)
_HASHTAG_RE = re.compile(r"(?<!\S)#(\w+)")
_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_EMPHASIS_RE = re.compile(r"[*_`~]")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
)


def parse_date(value: Any) -> Optional[_dt.datetime]:
    """Best-effort conversion of a frontmatter value into a naive UTC datetime."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, _dt.datetime):
        dt = value
    elif isinstance(value, _dt.date):
        dt = _dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        dt = None
        iso_candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
        try:
            dt = _dt.datetime.fromisoformat(iso_candidate)
        except ValueError:
            dt = None
        if dt is None:
            for fmt in _DATE_FORMATS:
                try:
                    dt = _dt.datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if dt is None:
            try:
                dt = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                dt = None
        if dt is None:
            return None
    else:
        return None

    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone(_dt.timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError):
            return None
    return dt


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str, Optional[str]]:
    """
    Returns (metadata, body, error). Malformed YAML never raises: the fenced
    block is dropped from the body and the metadata comes back empty.
    """
    text = text.lstrip("\ufeff")
    if not _FRONTMATTER_BLOCK_RE.match(text):
        return {}, text, None
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError, TypeError, AttributeError, OverflowError) as exc:
        body = _FRONTMATTER_BLOCK_RE.sub("", text, count=1)
        return {}, body, f"malformed frontmatter: {exc}"
    metadata = post.metadata if isinstance(post.metadata, dict) else {}
    return metadata, post.content, None


def resolve_dates(metadata: Dict[str, Any]) -> Tuple[Optional[_dt.datetime], Optional[_dt.datetime]]:
    created = parse_date(metadata.get("created"))
    modified = parse_date(metadata.get("modified"))
    if created is None:
        created = modified
    if modified is None:
        modified = created
    return created, modified


def extract_title(body: str, fallback: str) -> str:
    match = _TITLE_RE.search(body)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return fallback


def clean_inline_markup(line: str) -> str:
    line = _IMAGE_RE.sub("", line)
    line = _LINK_RE.sub(r"\1", line)
    line = _EMPHASIS_RE.sub("", line)
    return line.strip()


def extract_excerpt(body: str, max_length: int = EXCERPT_MAX_LENGTH) -> str:
    lines = body.split("\n")
    title_match = _TITLE_RE.search(body)
    start = body.count("\n", 0, title_match.start()) + 1 if title_match else 0

    in_fence = False
    for line in lines[start:]:
        trimmed = line.strip()
        if trimmed.startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence or not trimmed or trimmed.startswith("#"):
            continue
        cleaned = clean_inline_markup(trimmed)
        if not cleaned:
            continue
        if len(cleaned) > max_length:
            return cleaned[:max_length] + "..."
        return cleaned
    return ""


def extract_hashtags(body: str, tail_lines: int = HASHTAG_TAIL_LINES) -> List[str]:
    # Tags are an author footer, so only the last few lines are scanned.
    tail = "\n".join(body.strip().split("\n")[-tail_lines:])
    seen: List[str] = []
    for tag in _HASHTAG_RE.findall(tail):
        if tag not in seen:
            seen.append(tag)
    return seen


def extract_thumbnail(body: str, category: str) -> Tuple[Optional[str], Optional[str]]:
    """Returns (thumbnail, warning)."""
    target = first_inline_image(body)
    if not target:
        return None, None
    if is_absolute_url(target):
        return target, None
    try:
        return resolve_relative_to_category(category, unquote(target)), None
    except AccessDeniedError as exc:
        return None, f"thumbnail rejected: {exc}"


class ParsingEngine:
    """
    Abstract parsing engine. Implementations should be stateless and reusable.
    """

    def parse(self, source: SourceFile) -> ParsedDocument:
        raise NotImplementedError


class MarkdownParsingEngine(ParsingEngine):
    """
    Heuristic markdown extractor. It does not render markdown; it pulls the
    handful of fields a listing needs out of the raw text and never raises
    for content problems.
    """

    def __init__(
        self,
        chars_per_minute: int = DEFAULT_CHARS_PER_MINUTE,
        words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
    ):
        self.chars_per_minute = chars_per_minute
        self.words_per_minute = words_per_minute

    def parse(self, source: SourceFile) -> ParsedDocument:
        raw = source.path.read_bytes()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("%s is not valid UTF-8; undecodable bytes replaced", source.relative_path)
            text = raw.decode("utf-8", errors="replace")
        document = self.parse_text(text, canonical_slug(source.relative_path))
        document.source_path = source.relative_path
        return document

    def parse_text(self, text: str, slug: str) -> ParsedDocument:
        warnings: List[str] = []
        metadata, body, fm_error = split_frontmatter(text)
        if fm_error:
            logger.warning("%s: %s", slug, fm_error)
            warnings.append(fm_error)

        created_at, modified_at = resolve_dates(metadata)
        category = category_of(slug)
        thumbnail, thumb_warning = extract_thumbnail(body, category)
        if thumb_warning:
            logger.warning("%s: %s", slug, thumb_warning)
            warnings.append(thumb_warning)

        return ParsedDocument(
            slug=slug,
            title=extract_title(body, fallback=slug.rsplit("/", 1)[-1]),
            body=body,
            excerpt=extract_excerpt(body),
            category=category,
            thumbnail=thumbnail,
            created_at=created_at,
            modified_at=modified_at,
            reading_time=estimate_reading_time(
                body,
                chars_per_minute=self.chars_per_minute,
                words_per_minute=self.words_per_minute,
            ),
            hashtags=extract_hashtags(body),
            warnings=warnings,
        )
