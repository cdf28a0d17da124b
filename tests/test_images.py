import base64
from io import BytesIO

from PIL import Image

from blog_builder.ingest.images import BlurPreviewGenerator
from blog_builder.ingest.models import SourceFile, SourceKind


def _source(tmp_path, relative):
    path = tmp_path / relative
    return SourceFile(path=path, relative_path=relative, kind=SourceKind.IMAGE, mtime=0.0)


def _make_image(path, size=(64, 48)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color=(200, 30, 30)).save(path)


def test_generate_produces_small_png_data_url(tmp_path):
    image_path = tmp_path / "cover.jpg"
    _make_image(image_path)

    payload = BlurPreviewGenerator(size=10).generate(image_path)
    assert payload.startswith("data:image/png;base64,")
    decoded = Image.open(BytesIO(base64.b64decode(payload.split(",", 1)[1])))
    assert decoded.size == (10, 10)


def test_unreadable_image_yields_none(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    generator = BlurPreviewGenerator()
    assert generator.generate(broken) is None
    assert generator.generate(tmp_path / "missing.png") is None


def test_generate_all_keys_by_public_url(tmp_path):
    _make_image(tmp_path / "dev" / "a b.png")
    _make_image(tmp_path / "dev" / "c.png")
    (tmp_path / "dev" / "bad.png").write_bytes(b"junk")
    sources = [_source(tmp_path, "dev/a b.png"), _source(tmp_path, "dev/c.png"), _source(tmp_path, "dev/bad.png")]

    for workers in (1, 4):
        results = BlurPreviewGenerator(workers=workers).generate_all(sources)
        assert set(results) == {"/md/dev/a%20b.png", "/md/dev/c.png", "/md/dev/bad.png"}
        assert results["/md/dev/bad.png"] is None
        assert results["/md/dev/c.png"].startswith("data:image/png;base64,")


def test_oversized_image_yields_none(tmp_path, monkeypatch):
    image_path = tmp_path / "huge.png"
    _make_image(image_path, size=(100, 100))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    generator = BlurPreviewGenerator()
    assert generator.generate(image_path) is None
    results = generator.generate_all([_source(tmp_path, "huge.png")])
    assert results == {"/md/huge.png": None}
