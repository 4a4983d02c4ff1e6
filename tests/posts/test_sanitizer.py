"""Tests for post HTML sanitizing, excerpts and tag normalization."""

import pytest

from blog.posts.sanitizer import (
    build_excerpt,
    extract_plain_text,
    normalize_tags,
    sanitize_html,
)


class TestSanitizeHtml:
    def test_scripts_and_handlers_removed(self):
        dirty = '<p onclick="steal()">Hi<script>alert(1)</script></p>'

        clean = sanitize_html(dirty)

        assert "<script" not in clean
        assert "onclick" not in clean
        assert clean.startswith("<p>Hi")

    def test_allowed_formatting_kept(self):
        html = "<h2>Title</h2><p><strong>bold</strong> and <em>it</em></p>"
        assert sanitize_html(html) == html

    def test_links_open_in_new_tab(self):
        clean = sanitize_html('<a href="https://example.com">site</a>')

        assert 'href="https://example.com"' in clean
        assert 'target="_blank"' in clean
        assert 'rel="noopener noreferrer"' in clean

    def test_javascript_urls_dropped(self):
        clean = sanitize_html('<a href="javascript:alert(1)">x</a>')
        assert "javascript:" not in clean

    def test_images_keep_only_src_and_alt(self):
        clean = sanitize_html(
            '<img src="https://example.com/a.png" alt="a" onerror="x()">'
        )
        assert "onerror" not in clean
        assert 'src="https://example.com/a.png"' in clean

    def test_bare_urls_not_linked(self):
        assert "<a" not in sanitize_html("<p>see https://example.com</p>")


class TestPlainTextAndExcerpt:
    def test_extract_plain_text(self):
        text = extract_plain_text("<p>Fish &amp; chips</p>\n<p>  twice </p>")
        assert text == "Fish & chips twice"

    def test_short_text_unchanged(self):
        assert build_excerpt("short") == "short"

    def test_long_text_truncated(self):
        excerpt = build_excerpt("x" * 250)
        assert excerpt == "x" * 200 + "…"


class TestNormalizeTags:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, []),
            ("", []),
            ("Python, FastAPI ,python", ["python", "fastapi"]),
            (["Travel", "food,  TRAVEL", " "], ["travel", "food"]),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_tags(raw) == expected
