"""
SEO metadata generation for conferences and content pages.

Meta tags, Open Graph tags and alt text are written by the configured LLM;
schema.org markup and the admin SEO score are computed locally.
"""

import logging
from typing import Optional

from bs4 import BeautifulSoup

from .errors import ValidationError
from .llm_client import LLMClient
from .models import OpenGraphTags, SEOMetaTags

logger = logging.getLogger(__name__)

SEO_TYPES = ("conference", "page")

META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 160
ALT_TEXT_MAX = 125

ORGANIZATION_DESCRIPTION = "Youth Civic Engagement Platform in Nigeria"

SEO_TAGS_SCHEMA = """{
  "metaTitle": "string (50-60 chars)",
  "metaDescription": "string (150-160 chars)",
  "keywords": ["array", "of", "keywords"]
}"""

OPEN_GRAPH_SCHEMA = """{
  "title": "string (compelling social media title)",
  "description": "string (engaging description)",
  "type": "string (website or article)",
  "image": "string (image URL)"
}"""

SAMPLE_CONTENT = """
Join us for the Youth Civic Engagement Summit 2026 in Lagos, Nigeria.

This groundbreaking event brings together 500+ young Nigerian leaders, activists, and changemakers for three days of learning, networking, and action planning.

Learn about democratic participation, community organizing, and civic responsibility. Participate in interactive workshops led by experienced civic leaders. Network with fellow young Nigerians passionate about shaping our nation's future.

Topics include:
- Understanding Nigerian democracy and governance
- Effective community organizing strategies
- Youth participation in electoral processes
- Holding leaders accountable
- Building sustainable civic movements

Whether you're a student, young professional, or community organizer, this summit will equip you with the knowledge and connections to make a real impact in your community.

Register now and be part of the movement to build a better Nigeria!
"""

SAMPLE_KEYWORDS = ["civic engagement", "youth", "Lagos", "Nigeria"]

SAMPLE_CONFERENCE = {
    "title": "Youth Civic Engagement Summit 2026",
    "description": SAMPLE_CONTENT,
    "date": "2026-03-15",
    "venue": "Lagos Continental Hotel",
    "location": "Lagos, Nigeria",
    "imageUrl": "/conference-fliers/youth-summit.jpg",
}


def plain_text(content: str) -> str:
    """Strip HTML tags and collapse whitespace. Plain text passes through."""
    if not content:
        return ""
    if "<" not in content:
        return " ".join(content.split())
    soup = BeautifulSoup(content, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())


def parse_keywords(keywords) -> list[str]:
    """Accept a list or a comma-separated string of keywords."""
    if not keywords:
        return []
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    return [str(k).strip() for k in keywords if str(k).strip()]


def _keyword_line(label: str, keywords: Optional[list[str]]) -> str:
    return f"{label}: {', '.join(keywords)}" if keywords else ""


def build_schema_markup(
    data: dict,
    type: str,
    org_name: str = "NextGen",
    org_url: str = "https://nextgen.ng",
) -> dict:
    """
    Build schema.org JSON-LD for an Event, an Article or the Organization.

    Args:
        data: Conference or page fields (title, description, date, venue,
            location).
        type: "Event", "Article" or "Organization".
        org_name: Organizer/publisher name.
        org_url: Organizer URL.

    Returns:
        JSON-LD dict. Unknown types fall back to the Organization schema.
    """
    data = data or {}
    if type == "Event":
        return {
            "@context": "https://schema.org",
            "@type": "Event",
            "name": data.get("title"),
            "description": plain_text(data.get("description") or ""),
            "startDate": data.get("date"),
            "location": {
                "@type": "Place",
                "name": data.get("venue"),
                "address": data.get("location") or "Nigeria",
            },
            "organizer": {
                "@type": "Organization",
                "name": org_name,
                "url": org_url,
            },
        }

    if type == "Article":
        return {
            "@context": "https://schema.org",
            "@type": "Article",
            "headline": data.get("title"),
            "description": plain_text(data.get("description") or ""),
            "author": {"@type": "Organization", "name": org_name},
            "publisher": {"@type": "Organization", "name": org_name},
        }

    return {
        "@context": "https://schema.org",
        "@type": "Organization",
        "name": org_name,
        "description": ORGANIZATION_DESCRIPTION,
        "url": org_url,
    }


class SEOGenerator:
    """
    Generates SEO metadata with an LLM client.

    Attributes:
        client: LLM client used for every generated field.
        org_name: Organization named in schema.org markup.
        org_url: Organization URL in schema.org markup.
    """

    def __init__(self, client: LLMClient, org_name: str = "NextGen", org_url: str = "https://nextgen.ng"):
        self.client = client
        self.org_name = org_name
        self.org_url = org_url

    def generate_meta_title(self, content: str, keywords: Optional[list[str]] = None) -> str:
        prompt = f"""Generate an SEO-optimized meta title for this content about civic engagement in Nigeria:

Content: {plain_text(content)[:500]}
{_keyword_line("Primary keywords", keywords)}

Requirements:
- 50-60 characters (strict limit)
- Include primary keyword naturally
- Compelling and click-worthy
- Relevant to Nigerian youth and civic engagement
- Action-oriented when possible

Return ONLY the title, no quotes or explanation."""

        title = self.client.generate_text(prompt, temperature=0.7)
        return title.strip()[:META_TITLE_MAX]

    def generate_meta_description(self, content: str, keywords: Optional[list[str]] = None) -> str:
        prompt = f"""Generate an SEO-optimized meta description for this content:

Content: {plain_text(content)[:500]}
{_keyword_line("Keywords to include", keywords)}

Requirements:
- 150-160 characters (strict limit)
- Include a call-to-action
- Keyword-rich but natural
- Compelling and informative
- Relevant to Nigerian civic engagement

Return ONLY the description, no quotes or explanation."""

        description = self.client.generate_text(prompt, temperature=0.7)
        return description.strip()[:META_DESCRIPTION_MAX]

    def generate_seo_tags(
        self,
        content: str,
        type: str,
        keywords: Optional[list[str]] = None,
    ) -> SEOMetaTags:
        """
        Generate meta title, description and keywords in one call.

        Args:
            content: Page body or conference description (HTML allowed).
            type: "conference" or "page".
            keywords: Focus keywords to steer the model.

        Returns:
            Parsed meta tags. Title and description are not truncated here;
            the admin score flags lengths outside the target ranges.
        """
        prompt = f"""Generate complete SEO meta tags for this {type}:

Content: {plain_text(content)[:800]}
{_keyword_line("Focus keywords", keywords)}

Context: This is for a Nigerian civic engagement platform focused on youth participation.

Requirements:
- Meta title: 50-60 characters, compelling, keyword-rich
- Meta description: 150-160 characters, includes CTA, informative
- Keywords: 5-10 relevant keywords for Nigerian civic engagement

Generate tags that will rank well for searches related to civic engagement, youth participation, and community organizing in Nigeria."""

        return SEOMetaTags.from_dict(self.client.generate_json(prompt, SEO_TAGS_SCHEMA))

    def generate_open_graph_tags(self, content: str, image_url: Optional[str] = None) -> OpenGraphTags:
        image_line = f"Image URL: {image_url}" if image_url else ""
        prompt = f"""Generate Open Graph tags for social media sharing:

Content: {plain_text(content)[:500]}
{image_line}

Requirements:
- Title: Compelling for social media (different from meta title)
- Description: Engaging and shareable
- Type: "website" for pages, "article" for content
- Optimized for Facebook, Twitter, LinkedIn sharing

Make it attention-grabbing and shareable!"""

        tags = OpenGraphTags.from_dict(self.client.generate_json(prompt, OPEN_GRAPH_SCHEMA))
        if image_url:
            tags.image = image_url
        return tags

    def generate_schema_markup(self, data: dict, type: str) -> dict:
        return build_schema_markup(data, type, self.org_name, self.org_url)

    def generate_alt_text(self, image_url: str, context: str) -> str:
        prompt = f"""Generate descriptive alt text for an image in this context:

Context: {plain_text(context)}
Image URL: {image_url}

Requirements:
- Descriptive and specific
- Include relevant keywords naturally
- Accessible for screen readers
- 125 characters or less
- No "image of" or "picture of" prefix

Return ONLY the alt text."""

        alt_text = self.client.generate_text(prompt, temperature=0.5)
        return alt_text.strip()[:ALT_TEXT_MAX]

    def generate_complete_seo(
        self,
        content: str,
        type: str,
        data: dict,
        keywords: Optional[list[str]] = None,
    ) -> dict:
        """Meta tags, Open Graph tags and schema markup for one item."""
        meta_tags = self.generate_seo_tags(content, type, keywords)
        open_graph = self.generate_open_graph_tags(content, (data or {}).get("imageUrl"))
        schema = self.generate_schema_markup(data, "Event" if type == "conference" else "Article")
        return {
            "metaTags": meta_tags.to_dict(),
            "openGraph": open_graph.to_dict(),
            "schema": schema,
        }

    def generate(
        self,
        content: Optional[str],
        type: Optional[str],
        data: Optional[dict] = None,
        keywords=None,
    ) -> dict:
        """
        Entry point for the generate endpoint.

        With `data` the complete package is returned, otherwise only the
        meta tags.
        """
        if not content or not type:
            raise ValidationError("Missing required fields: content and type")
        if type not in SEO_TYPES:
            raise ValidationError('Invalid type. Must be "conference" or "page"')

        keyword_list = parse_keywords(keywords) or None
        logger.info(f"Generating {'complete' if data else 'meta tag'} SEO for a {type}")
        if data:
            return self.generate_complete_seo(content, type, data, keyword_list)
        return {"metaTags": self.generate_seo_tags(content, type, keyword_list).to_dict()}

    def run_sample(self) -> dict:
        """Generate tags and a complete package for a fixed sample conference."""
        tags = self.generate_seo_tags(SAMPLE_CONTENT, "conference", SAMPLE_KEYWORDS)
        complete = self.generate_complete_seo(
            SAMPLE_CONTENT,
            "conference",
            SAMPLE_CONFERENCE,
            ["civic engagement", "youth", "Lagos"],
        )
        return {
            "metaTags": tags.to_dict(),
            "openGraph": complete["openGraph"],
            "schema": complete["schema"],
            "stats": {
                "titleLength": len(tags.meta_title),
                "descriptionLength": len(tags.meta_description),
                "keywordCount": len(tags.keywords),
            },
        }


def score_seo(meta_title: str, meta_description: str, keywords, content: str) -> int:
    """
    Score SEO completeness from 0 to 100.

    Title and description length are worth 20 each, keyword count 10,
    content length 20, and having all three fields filled in 30.
    """
    meta_title = meta_title or ""
    meta_description = meta_description or ""
    content = content or ""
    keyword_list = parse_keywords(keywords)
    points = 0

    title_len = len(meta_title)
    if 50 <= title_len <= 60:
        points += 20
    elif 40 <= title_len <= 70:
        points += 15
    elif title_len > 0:
        points += 10

    desc_len = len(meta_description)
    if 150 <= desc_len <= 160:
        points += 20
    elif 120 <= desc_len <= 170:
        points += 15
    elif desc_len > 0:
        points += 10

    if 5 <= len(keyword_list) <= 10:
        points += 10
    elif keyword_list:
        points += 5

    if len(content) > 200:
        points += 20
    elif len(content) > 100:
        points += 10

    if meta_title and meta_description and keyword_list:
        points += 30

    return points


def seo_suggestions(meta_title: str, meta_description: str, keywords) -> list[str]:
    """Concrete fixes that would raise the SEO score."""
    meta_title = meta_title or ""
    meta_description = meta_description or ""
    suggestions = []

    if len(meta_title) < 50:
        suggestions.append("Meta title is too short. Aim for 50-60 characters.")
    elif len(meta_title) > 60:
        suggestions.append("Meta title is too long. Keep it under 60 characters.")

    if len(meta_description) < 150:
        suggestions.append("Meta description is too short. Aim for 150-160 characters.")
    elif len(meta_description) > 160:
        suggestions.append("Meta description is too long. Keep it under 160 characters.")

    if len(parse_keywords(keywords)) < 5:
        suggestions.append("Add more keywords. Aim for 5-10 relevant keywords.")

    if "Nigeria" not in meta_description and "civic" not in meta_description:
        suggestions.append("Consider including location or topic keywords in description.")

    return suggestions
