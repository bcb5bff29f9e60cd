"""Tests for SEO metadata generation and scoring."""

from unittest.mock import MagicMock

import pytest

from nextgen_site.errors import ValidationError
from nextgen_site.seo_generator import (
    META_DESCRIPTION_MAX,
    META_TITLE_MAX,
    SEOGenerator,
    build_schema_markup,
    parse_keywords,
    plain_text,
    score_seo,
    seo_suggestions,
)

TAGS = {
    "metaTitle": "Lagos Youth Summit 2026: Shape Nigeria's Civic Future",
    "metaDescription": "Join young Nigerians in Lagos for civic workshops.",
    "keywords": ["civic engagement", "Lagos", "youth"],
}
OPEN_GRAPH = {"title": "Be there", "description": "Lagos, March 15", "type": "website", "image": "/x.png"}


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.generate_json.side_effect = lambda prompt, schema, **kwargs: (
        dict(OPEN_GRAPH) if "Open Graph" in prompt else dict(TAGS)
    )
    return client


@pytest.fixture
def generator(client) -> SEOGenerator:
    return SEOGenerator(client, "NextGen", "https://nextgen.ng")


class TestHelpers:
    """Tests for plain_text and parse_keywords."""

    def test_plain_text_strips_markup(self, sample_html_content):
        """Test that tags, scripts and styles are removed."""
        text = plain_text(sample_html_content)

        assert text.startswith("About NextGen NextGen brings young Nigerians")
        assert "trackPageView" not in text
        assert "color" not in text

    def test_plain_text_passthrough(self):
        """Test that plain text only has whitespace collapsed."""
        assert plain_text("  Hello\n  world ") == "Hello world"
        assert plain_text("") == ""

    def test_parse_keywords(self):
        """Test lists and comma-separated strings."""
        assert parse_keywords("youth, civic , ,Lagos") == ["youth", "civic", "Lagos"]
        assert parse_keywords(["a", " b "]) == ["a", "b"]
        assert parse_keywords(None) == []


class TestSchemaMarkup:
    """Tests for build_schema_markup."""

    def test_event(self):
        """Test Event markup for a conference."""
        schema = build_schema_markup(
            {"title": "Summit", "description": "<p>Workshops</p>", "date": "2026-03-15", "venue": "Eko Hotel"},
            "Event",
        )

        assert schema["@type"] == "Event"
        assert schema["description"] == "Workshops"
        assert schema["startDate"] == "2026-03-15"
        assert schema["location"] == {"@type": "Place", "name": "Eko Hotel", "address": "Nigeria"}
        assert schema["organizer"]["name"] == "NextGen"

    def test_article(self):
        """Test Article markup for a page."""
        schema = build_schema_markup({"title": "About"}, "Article", org_name="NG")

        assert schema["headline"] == "About"
        assert schema["publisher"] == {"@type": "Organization", "name": "NG"}

    def test_unknown_type_is_organization(self):
        """Test the Organization fallback."""
        assert build_schema_markup({}, "Product")["@type"] == "Organization"


class TestSEOGenerator:
    """Tests for SEOGenerator with a mocked LLM client."""

    def test_meta_title_truncated(self, generator, client):
        """Test that generated titles are capped at 60 characters."""
        client.generate_text.return_value = "  " + "T" * 80 + "\n"

        assert len(generator.generate_meta_title("<p>content</p>", ["youth"])) == META_TITLE_MAX
        prompt = client.generate_text.call_args.args[0]
        assert "Primary keywords: youth" in prompt
        assert "<p>" not in prompt

    def test_meta_description_truncated(self, generator, client):
        """Test that descriptions are capped at 160 characters."""
        client.generate_text.return_value = "D" * 200
        assert len(generator.generate_meta_description("content")) == META_DESCRIPTION_MAX

    def test_alt_text(self, generator, client):
        """Test that alt text is trimmed to 125 characters."""
        client.generate_text.return_value = "A" * 130
        assert len(generator.generate_alt_text("/x.png", "Summit")) == 125

    def test_open_graph_image_override(self, generator):
        """Test that the supplied image URL replaces the generated one."""
        tags = generator.generate_open_graph_tags("content", image_url="/conference-fliers/a.png")
        assert tags.image == "/conference-fliers/a.png"

    def test_generate_meta_only(self, generator):
        """Test that without data only meta tags are returned."""
        result = generator.generate("content", "page", keywords="youth, Lagos")

        assert result == {"metaTags": TAGS}

    def test_generate_complete(self, generator):
        """Test that data adds Open Graph and Event schema."""
        result = generator.generate(
            "content", "conference", data={"title": "Summit", "imageUrl": "/flier.png"},
        )

        assert result["metaTags"] == TAGS
        assert result["openGraph"]["image"] == "/flier.png"
        assert result["schema"]["@type"] == "Event"

    def test_generate_page_uses_article(self, generator):
        """Test that pages get Article schema."""
        result = generator.generate("content", "page", data={"title": "About"})
        assert result["schema"]["@type"] == "Article"

    @pytest.mark.parametrize("content,type_", [("", "page"), ("content", None)])
    def test_generate_missing_fields(self, generator, content, type_):
        """Test that content and type are required."""
        with pytest.raises(ValidationError, match="Missing required fields"):
            generator.generate(content, type_)

    def test_generate_invalid_type(self, generator):
        """Test that only conference and page are accepted."""
        with pytest.raises(ValidationError, match="Invalid type"):
            generator.generate("content", "product")

    def test_run_sample(self, generator):
        """Test the sample run statistics."""
        result = generator.run_sample()

        assert result["stats"] == {
            "titleLength": len(TAGS["metaTitle"]),
            "descriptionLength": len(TAGS["metaDescription"]),
            "keywordCount": 3,
        }
        assert result["schema"]["location"]["address"] == "Lagos, Nigeria"


class TestScoring:
    """Tests for score_seo and seo_suggestions."""

    def test_perfect_score(self):
        """Test that ideal lengths and counts score 100."""
        score = score_seo("T" * 55, "D" * 155, ["a", "b", "c", "d", "e"], "C" * 250)
        assert score == 100

    def test_empty_score(self):
        """Test that nothing filled in scores 0."""
        assert score_seo("", "", None, "") == 0

    def test_partial_score(self):
        """Test near-miss bands."""
        # title 15, description 10, keywords 5, content 10, completeness 30
        assert score_seo("T" * 45, "D" * 50, "a, b", "C" * 150) == 70

    def test_suggestions(self):
        """Test suggestions for short fields."""
        suggestions = seo_suggestions("Short", "Short", "a")

        assert "Meta title is too short. Aim for 50-60 characters." in suggestions
        assert "Meta description is too short. Aim for 150-160 characters." in suggestions
        assert "Add more keywords. Aim for 5-10 relevant keywords." in suggestions
        assert "Consider including location or topic keywords in description." in suggestions

    def test_no_suggestions_when_ideal(self):
        """Test that an ideal entry needs no changes."""
        description = "Join young Nigerians for civic workshops. " + "x" * 115
        assert seo_suggestions("T" * 55, description, ["a", "b", "c", "d", "e"]) == []
