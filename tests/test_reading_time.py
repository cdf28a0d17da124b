from blog_builder.ingest.reading_time import estimate_reading_time, strip_markdown


def test_empty_body_reads_in_one_minute():
    assert estimate_reading_time("") == 1
    assert estimate_reading_time("```\ncode only\n```") == 1


def test_hangul_counted_per_syllable():
    assert estimate_reading_time("가" * 1001) == 3
    assert estimate_reading_time("가" * 500) == 1


def test_latin_counted_per_word():
    text = " ".join(["word"] * 401)
    assert estimate_reading_time(text) == 3
    assert estimate_reading_time(text, words_per_minute=1000) == 1


def test_strip_markdown_removes_code_images_and_links():
    text = "# Title\n`inline` ![alt](a.png) [link](http://x) plain\n```\nhidden\n```"
    assert strip_markdown(text) == "Title\n   plain"
