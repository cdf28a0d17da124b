from __future__ import annotations

import math
import re

DEFAULT_CHARS_PER_MINUTE = 500
DEFAULT_WORDS_PER_MINUTE = 200

_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`]+`")
_IMAGE_RE = re.compile(r"!\[.*?\]\(.*?\)")
_LINK_RE = re.compile(r"\[.*?\]\(.*?\)")
_MARKDOWN_SYMBOLS_RE = re.compile(r"[#*_~>`-]")
_HANGUL_SYLLABLE_RE = re.compile(r"[가-힣]")
_LATIN_WORD_RE = re.compile(r"[A-Za-z]+")


def strip_markdown(text: str) -> str:
    text = _FENCED_CODE_RE.sub("", text)
    text = _INLINE_CODE_RE.sub("", text)
    text = _IMAGE_RE.sub("", text)
    text = _LINK_RE.sub("", text)
    text = _MARKDOWN_SYMBOLS_RE.sub("", text)
    return text.strip()


def estimate_reading_time(
    text: str,
    chars_per_minute: int = DEFAULT_CHARS_PER_MINUTE,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
) -> int:
    """
    Estimated reading time in whole minutes, never below 1.

    Hangul has no reliable word spacing for pacing, so syllables are counted
    per character; Latin text is counted per word.
    """
    plain = strip_markdown(text or "")
    syllables = len(_HANGUL_SYLLABLE_RE.findall(plain))
    words = len(_LATIN_WORD_RE.findall(plain))
    minutes = syllables / chars_per_minute + words / words_per_minute
    return max(1, math.ceil(minutes))
