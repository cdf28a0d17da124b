import datetime as dt

from blog_builder.ingest.engine import (
    MarkdownParsingEngine,
    extract_excerpt,
    extract_hashtags,
    parse_date,
    split_frontmatter,
)
from blog_builder.ingest.models import SourceFile, SourceKind


def test_frontmatter_dates_resolved():
    engine = MarkdownParsingEngine()
    doc = engine.parse_text(
        "---\ncreated: 2024-01-15\nmodified: 2024-02-01T09:30:00Z\n---\n# Hello\n\nBody text.\n",
        "dev/hello",
    )
    assert doc.created_at == dt.datetime(2024, 1, 15)
    assert doc.modified_at == dt.datetime(2024, 2, 1, 9, 30)
    assert doc.title == "Hello"
    assert doc.category == "dev"
    assert "created:" not in doc.body


def test_modified_defaults_to_created_and_vice_versa():
    engine = MarkdownParsingEngine()
    only_created = engine.parse_text("---\ncreated: '2024/03/05'\n---\nx", "a")
    assert only_created.created_at == only_created.modified_at == dt.datetime(2024, 3, 5)
    only_modified = engine.parse_text("---\nmodified: 2024.03.06\n---\nx", "b")
    assert only_modified.created_at == only_modified.modified_at == dt.datetime(2024, 3, 6)


def test_parse_date_variants():
    assert parse_date("2024-01-15 10:20") == dt.datetime(2024, 1, 15, 10, 20)
    assert parse_date("Mon, 15 Jan 2024 10:00:00 +0900") == dt.datetime(2024, 1, 15, 1, 0)
    assert parse_date("not a date") is None
    assert parse_date(None) is None
    assert parse_date(True) is None


def test_malformed_frontmatter_is_stripped_and_reported():
    text = "---\ntitle: [unclosed\ncreated: 2024-01-01\n---\n# Still parsed\n"
    metadata, body, error = split_frontmatter(text)
    assert metadata == {}
    assert error and "malformed frontmatter" in error
    assert body.startswith("# Still parsed")

    doc = MarkdownParsingEngine().parse_text(text, "broken")
    assert doc.created_at is None and doc.modified_at is None
    assert doc.title == "Still parsed"
    assert doc.warnings


def test_title_falls_back_to_file_name():
    doc = MarkdownParsingEngine().parse_text("no heading here\n## Second level", "notes/my-post")
    assert doc.title == "my-post"


def test_excerpt_skips_headings_fences_and_images():
    body = "# Title\n\n```\ncode\n```\n![img](a.png)\n## Sub\nThe **first** [real](http://x) line.\nSecond."
    assert extract_excerpt(body) == "The first real line."
    assert extract_excerpt("") == ""
    long_line = "가" * 250
    assert extract_excerpt(long_line) == "가" * 200 + "..."


def test_hashtags_only_from_trailing_lines():
    body = "#notatag at top\n" + "\n".join(["line"] * 10) + "\n#python #웹개발 #python\nissue#1 #end"
    assert extract_hashtags(body) == ["python", "웹개발", "end"]


def test_thumbnail_resolution():
    engine = MarkdownParsingEngine()
    local = engine.parse_text("![cover](images/%EC%82%AC%EC%A7%84.png)\ntext", "dev/web/post")
    assert local.thumbnail == "dev/web/images/사진.png"

    remote = engine.parse_text("![cover](https://cdn.example.com/a.png)", "dev/post")
    assert remote.thumbnail == "https://cdn.example.com/a.png"

    escaped = engine.parse_text("![cover](../../etc/passwd)", "dev/post")
    assert escaped.thumbnail is None
    assert any("thumbnail rejected" in w for w in escaped.warnings)


def test_parse_reads_file_and_replaces_bad_bytes(tmp_path):
    path = tmp_path / "dev" / "bin.md"
    path.parent.mkdir()
    path.write_bytes(b"# Bytes\n\xff\xfe ok\n")
    source = SourceFile(path=path, relative_path="dev/bin.md", kind=SourceKind.DOCUMENT, mtime=0.0)

    doc = MarkdownParsingEngine().parse(source)
    assert doc.slug == "dev/bin"
    assert doc.title == "Bytes"
    assert doc.source_path == "dev/bin.md"
    assert doc.reading_time == 1


def test_out_of_range_aware_dates_become_none():
    assert parse_date("0001-01-01T00:00:00+09:00") is None
    assert parse_date("9999-12-31T23:00:00-05:00") is None

    doc = MarkdownParsingEngine().parse_text(
        "---\ncreated: 0001-01-01 00:00:00+09:00\nmodified: 2024-01-01\n---\n# T\n", "x"
    )
    assert doc.title == "T"
    assert doc.modified_at in (dt.datetime(2024, 1, 1), None)
    assert doc.created_at in (doc.modified_at, None)


def test_thumbnail_target_with_spaces():
    doc = MarkdownParsingEngine().parse_text("![a](스크린샷 1.png)\n![b](second.png)\n", "dev/p")
    assert doc.thumbnail == "dev/스크린샷 1.png"
