"""Tests for transform.py"""

from datetime import datetime, timezone

import pytest

from newsreader.core.transform import (
    MAX_ID_LENGTH,
    PLACEHOLDER_AUTHOR,
    PLACEHOLDER_CONTENT,
    PLACEHOLDER_EXCERPT,
    PLACEHOLDER_IMAGE,
    PLACEHOLDER_SOURCE,
    PLACEHOLDER_TITLE,
    capitalize_first,
    estimate_read_time,
    generate_article_id,
    generate_excerpt,
    normalize,
    process_content,
    transform_articles,
)
from newsreader.providers.content_types import NO_SOURCE_URL
from newsreader.providers.newsapi import ParseError

BATCH_TS = 1_700_000_000_000


def raw_article(**overrides):
    raw = {
        "source": {"id": None, "name": "The Verge"},
        "author": "Jane Doe",
        "title": "Chipmakers race to build smaller transistors",
        "description": "A look at how the semiconductor industry keeps shrinking features.",
        "url": "https://example.com/tech/chipmakers-race",
        "urlToImage": "https://example.com/img.jpg",
        "publishedAt": "2024-03-15T10:00:00Z",
        "content": "The race to shrink transistors continues as chipmakers invest billions "
        "in new fabrication plants around the world... [+2345 chars]",
    }
    raw.update(overrides)
    return raw


class TestCapitalize:
    def test_capitalize_first(self):
        assert capitalize_first("technology") == "Technology"
        assert capitalize_first("BUSINESS") == "Business"
        assert capitalize_first("") == ""


class TestProcessContent:
    def test_strips_marker_and_trailing_dots(self):
        content = "Some long enough article content goes right here for testing... [+100 chars]"
        assert process_content(content, None) == (
            "Some long enough article content goes right here for testing"
        )

    def test_strips_unicode_ellipsis(self):
        content = "Another long enough article body that ends with an ellipsis…"
        assert process_content(content, None).endswith("ellipsis")

    def test_short_content_uses_longer_description(self):
        desc = "A description that is clearly longer than the content it replaces."
        assert process_content("Short body", desc) == desc

    def test_missing_content_uses_description(self):
        desc = "Description standing in for the missing content field."
        assert process_content(None, desc) == desc

    def test_too_short_uses_placeholder(self):
        assert process_content("Tiny", "Small") == PLACEHOLDER_CONTENT

    def test_nothing_uses_placeholder(self):
        assert process_content(None, None) == PLACEHOLDER_CONTENT


class TestGenerateExcerpt:
    def test_long_description_used_as_is(self):
        desc = "d" * 150
        assert generate_excerpt(desc, "c" * 500) == desc

    def test_short_description_widened_from_content(self):
        content = "word " * 100 + "[+500 chars]"
        excerpt = generate_excerpt("Short.", content)
        assert excerpt.endswith("...")
        assert len(excerpt) == 203

    def test_short_content_not_used(self):
        assert generate_excerpt("Short.", "Tiny content body.") == "Short."

    def test_exactly_fifty_chars_is_used(self):
        content = "x" * 50
        assert generate_excerpt("", content) == content

    def test_placeholder_when_nothing(self):
        assert generate_excerpt(None, None) == PLACEHOLDER_EXCERPT


class TestReadTime:
    @pytest.mark.parametrize(
        "words,minutes",
        [(0, 1), (1, 1), (200, 1), (201, 2), (1000, 5)],
    )
    def test_estimate_read_time(self, words, minutes):
        assert estimate_read_time(" ".join(["w"] * words)) == minutes

    def test_collapses_whitespace(self):
        assert estimate_read_time("  one \n two\t\tthree  ") == 1


class TestArticleId:
    def test_id_is_bounded(self):
        raw = raw_article(title="A" * 200, url="https://example.com/" + "b" * 200)
        article_id = generate_article_id(raw, 0, BATCH_TS, 123)
        assert len(article_id) <= MAX_ID_LENGTH
        assert article_id.startswith(f"article_{BATCH_TS}_0_")

    def test_ids_unique_within_batch(self):
        raws = [raw_article() for _ in range(5)]
        articles = transform_articles(raws, "technology", batch_timestamp=BATCH_TS)
        assert len({a.id for a in articles}) == 5

    def test_missing_url_and_title(self):
        article_id = generate_article_id({}, 3, BATCH_TS)
        assert article_id == f"article_{BATCH_TS}_3_{BATCH_TS}__"


class TestNormalize:
    def test_full_record(self):
        article = normalize(raw_article(), 0, BATCH_TS, "technology")

        assert article.title == "Chipmakers race to build smaller transistors"
        assert article.category == "Technology"
        assert article.author == "Jane Doe"
        assert article.source == "The Verge"
        assert article.hero_image == "https://example.com/img.jpg"
        assert article.url == "https://example.com/tech/chipmakers-race"
        assert article.published_at == datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)
        assert "[+" not in article.content
        assert article.read_time >= 1
        assert article.tags == ()

    def test_all_fields_missing_uses_placeholders(self):
        article = normalize({}, 0, BATCH_TS, "general")

        assert article.title == PLACEHOLDER_TITLE
        assert article.excerpt == PLACEHOLDER_EXCERPT
        assert article.content == PLACEHOLDER_CONTENT
        assert article.hero_image == PLACEHOLDER_IMAGE
        assert article.author == PLACEHOLDER_AUTHOR
        assert article.source == PLACEHOLDER_SOURCE
        assert article.url == NO_SOURCE_URL
        assert article.has_source_url is False
        assert article.published_at == datetime.fromtimestamp(BATCH_TS / 1000, tz=timezone.utc)

    def test_bad_published_at_uses_batch_time(self):
        article = normalize(raw_article(publishedAt="yesterday"), 0, BATCH_TS, "general")
        assert article.published_at == datetime.fromtimestamp(BATCH_TS / 1000, tz=timezone.utc)

    def test_non_object_record_raises(self):
        with pytest.raises(ParseError):
            normalize("not a dict", 0, BATCH_TS, "general")

    def test_transform_preserves_order(self):
        raws = [raw_article(title=f"Story {i}") for i in range(3)]
        articles = transform_articles(raws, "business", batch_timestamp=BATCH_TS)
        assert [a.title for a in articles] == ["Story 0", "Story 1", "Story 2"]
        assert all(a.category == "Business" for a in articles)

    @pytest.mark.parametrize("field", ["title", "url", "description", "content", "author", "urlToImage"])
    def test_non_string_text_field_raises(self, field):
        with pytest.raises(ParseError):
            normalize(raw_article(**{field: 12345}), 0, BATCH_TS, "general")

    def test_non_string_source_name_uses_placeholder(self):
        article = normalize(raw_article(source={"name": 7}), 0, BATCH_TS, "general")
        assert article.source == PLACEHOLDER_SOURCE
