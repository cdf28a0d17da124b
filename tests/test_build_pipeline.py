import datetime as dt
import json
import os
import unicodedata

import pytest
from PIL import Image

from blog_builder.cli import main
from blog_builder.ingest import BuildConfig, MarkdownParsingEngine, SiteBuildWorker, WhooshIndexer
from blog_builder.ingest.models import BuildPhase


def _write(path, text, mtime=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))


def _make_tree(root):
    _write(
        root / "dev" / "web" / "post.md",
        "---\ncreated: 2024-03-01\n---\n# Hello World\n\n![cover](cover.png)\nFirst paragraph.\n\n#python #web\n",
    )
    root.joinpath("dev", "web").mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (32, 32), color=(10, 120, 200)).save(root / "dev" / "web" / "cover.png")
    _write(root / unicodedata.normalize("NFC", "공지.md"), "---\ncreated: 2024-01-01\n---\n# 옛 공지\n", mtime=1_000_000)
    _write(root / unicodedata.normalize("NFD", "공지.md"), "---\ncreated: 2024-01-02\n---\n# 새 공지\n", mtime=2_000_000)
    _write(root / "notes" / "undated.md", "# Undated\n\nNo dates here.\n")
    _write(root / "notes" / "thumb.md", "---\ncreated: 2024-02-01\n---\n![x](missing.png)\n")
    _write(root / "notes" / "readme.txt", "plain asset")


def _config(tmp_path, **overrides):
    values = dict(
        source_dir=str(tmp_path / "md"),
        output_dir=str(tmp_path / "out"),
        blog_name="Test Blog",
        site_url="https://blog.example.com",
    )
    values.update(overrides)
    return BuildConfig(**values)


def _staging_leftovers(tmp_path):
    return [p.name for p in tmp_path.iterdir() if p.name.startswith(".out.")]


def test_full_build(tmp_path):
    _make_tree(tmp_path / "md")
    report = SiteBuildWorker(_config(tmp_path)).run(build_time=dt.datetime(2024, 5, 1, tzinfo=dt.timezone.utc))
    out = tmp_path / "out"

    assert report.phase == BuildPhase.COMPLETED
    assert len(report.inserted) == 4
    assert report.failed == []
    assert len(report.duplicates) == 1
    assert report.documents_found == 4
    assert report.images_found == 1
    assert report.started_at.tzinfo is None and report.finished_at.tzinfo is None
    assert report.started_at <= report.finished_at
    assert any("notes/undated: no created or modified date" == w for w in report.warnings)
    assert any("missing thumbnail file" in w for w in report.warnings)
    assert _staging_leftovers(tmp_path) == []

    for relative in ("blog.db", "feed.xml", "blur.json", "build-report.json"):
        assert (out / relative).is_file()
    assert (out / "public" / "md" / "dev" / "web" / "cover.png").is_file()
    assert (out / "public" / "md" / "notes" / "readme.txt").read_text() == "plain asset"
    assert (out / "public" / "md" / "공지.md").read_text(encoding="utf-8").endswith("# 새 공지\n")

    all_page = json.loads((out / "listings" / "all" / "page-1.json").read_text(encoding="utf-8"))
    assert [item["slug"] for item in all_page["items"]] == ["dev/web/post", "notes/thumb", "공지", "notes/undated"]
    post = all_page["items"][0]
    assert post["blurDataURL"].startswith("data:image/png;base64,")
    assert post["thumbnail"] == "dev/web/cover.png"
    assert post["hashtags"] == ["python", "web"]
    assert all_page["items"][2]["title"] == "새 공지"

    for listing in ("category/dev/page-1.json", "category/dev/web/page-1.json", "hashtag/python/page-1.json"):
        assert (out / "listings" / listing).is_file()

    blur = json.loads((out / "blur.json").read_text(encoding="utf-8"))
    assert list(blur) == ["/md/dev/web/cover.png"]

    feed = (out / "feed.xml").read_text(encoding="utf-8")
    assert "https://blog.example.com/blog/dev/web/post" in feed
    assert "notes/undated" not in feed

    hits = WhooshIndexer(out / "search").search("hello")
    assert [h["slug"] for h in hits] == ["dev/web/post"]


class _ExplodingEngine(MarkdownParsingEngine):
    def parse(self, source):
        raise RuntimeError("parser crashed")


def test_failed_build_keeps_previous_output(tmp_path):
    _make_tree(tmp_path / "md")
    SiteBuildWorker(_config(tmp_path, build_search_index=False)).run()
    report_path = tmp_path / "out" / "build-report.json"
    before = report_path.read_text(encoding="utf-8")

    _write(tmp_path / "md" / "new.md", "# New\n")
    with pytest.raises(RuntimeError):
        SiteBuildWorker(_config(tmp_path), engine=_ExplodingEngine()).run()

    assert report_path.read_text(encoding="utf-8") == before
    assert not (tmp_path / "out" / "public" / "md" / "new.md").exists()
    assert not (tmp_path / "out" / "search").exists()
    assert _staging_leftovers(tmp_path) == []


def test_missing_source_root_is_fatal(tmp_path):
    with pytest.raises(FileNotFoundError):
        SiteBuildWorker(_config(tmp_path)).run()
    assert not (tmp_path / "out").exists()
    assert _staging_leftovers(tmp_path) == []


def test_cli_builds_and_reports(tmp_path, capsys):
    _make_tree(tmp_path / "md")
    code = main(["--source", str(tmp_path / "md"), "--output", str(tmp_path / "out"), "--no-search-index"])

    assert code == 0
    assert "Inserted 4 documents" in capsys.readouterr().out
    assert (tmp_path / "out" / "listings" / "all" / "page-1.json").is_file()
    assert not (tmp_path / "out" / "search").exists()
