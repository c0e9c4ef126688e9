"""Blog posts from uploaded HTML documents.

An HTML file is reduced to its body, converted to Markdown, and given a
title, excerpt and slug pulled from the document. Published posts store the
Markdown plus a sanitized HTML rendering of it.
"""

import re
import time
from datetime import date, datetime, timezone
from typing import Optional

import markdown as md
import nh3
from bs4 import BeautifulSoup
from markdownify import markdownify
from slugify import slugify

from deals.config import EXCERPT_LENGTH, SLUG_MAX_LENGTH
from deals.logging_config import get_logger, log_deal_event
from deals.models import BlogPost

__all__ = [
    "ALLOWED_TAGS",
    "ALLOWED_ATTRIBUTES",
    "is_html_upload",
    "extract_body",
    "html_to_markdown",
    "extract_title",
    "extract_excerpt",
    "make_slug",
    "render_markdown",
    "build_post",
    "generate_unique_slug",
    "publish_post",
]

logger = get_logger("blog")

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6", "p", "br", "hr",
    "ul", "ol", "li", "blockquote", "pre", "code",
    "em", "strong", "del", "a", "img", "table", "thead",
    "tbody", "tr", "th", "td", "div", "span",
}
ALLOWED_ATTRIBUTES = {"*": {"href", "src", "alt", "title", "class", "id"}}

# Tags whose contents never become part of a post
DROPPED_TAGS = ("script", "style", "head")

# Structure tags that can survive Markdown conversion as raw HTML
LEFTOVER_TAG_PATTERNS = (
    re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE),
    re.compile(r"<html[^>]*>", re.IGNORECASE),
    re.compile(r"</html>", re.IGNORECASE),
    re.compile(r"<head>[\s\S]*?</head>", re.IGNORECASE),
    re.compile(r"<body[^>]*>", re.IGNORECASE),
    re.compile(r"</body>", re.IGNORECASE),
)

MD_HEADING_RE = re.compile(r"^#\s*(.+)$", re.MULTILINE)
MD_FIRST_TEXT_LINE_RE = re.compile(r"^(?![#>])[^\n]+", re.MULTILINE)


def is_html_upload(filename: str, mimetype: Optional[str] = None) -> bool:
    """Accept ``text/html`` uploads and ``.html`` files."""
    return mimetype == "text/html" or (filename or "").lower().endswith(".html")


def extract_body(html: str) -> str:
    """Inner HTML of ``<body>`` (the whole document if there is none),
    without scripts, styles or head."""
    soup = BeautifulSoup(html, "html.parser")
    for name in DROPPED_TAGS:
        for tag in soup.find_all(name):
            tag.decompose()
    body = soup.body
    if body is None:
        return str(soup)
    return body.decode_contents()


def html_to_markdown(body_html: str) -> str:
    """Convert body HTML to Markdown with ATX headings and ``-`` bullets."""
    markdown_text = markdownify(
        body_html,
        heading_style="ATX",
        bullets="-",
    )
    for pattern in LEFTOVER_TAG_PATTERNS:
        markdown_text = pattern.sub("", markdown_text)
    # Collapse the blank-line runs markdownify leaves between blocks
    markdown_text = re.sub(r"\n{3,}", "\n\n", markdown_text)
    return markdown_text.strip()


def extract_title(html: str, markdown_text: str = "") -> str:
    """Title from ``<title>``, else the first ``<h1>``, else the first ``#``
    heading. Empty string if none is found."""
    soup = BeautifulSoup(html, "html.parser")

    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)

    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(strip=True)

    m = MD_HEADING_RE.search(markdown_text or "")
    if m:
        return m.group(1).strip()
    return ""


def extract_excerpt(html: str, markdown_text: str = "") -> str:
    """First paragraph text, truncated. Empty string if none is found."""
    soup = BeautifulSoup(html, "html.parser")
    first_p = soup.find("p")
    if first_p and first_p.get_text(strip=True):
        return first_p.get_text(strip=True)[:EXCERPT_LENGTH]

    m = MD_FIRST_TEXT_LINE_RE.search(markdown_text or "")
    if m and m.group(0).strip():
        return m.group(0).strip()[:EXCERPT_LENGTH]
    return ""


def make_slug(title: str, now_ms: Optional[int] = None) -> str:
    """URL slug for a title; ``post-<epoch ms>`` when the title has none."""
    slug = slugify((title or "").lower(), max_length=SLUG_MAX_LENGTH) if title else ""
    if slug:
        return slug
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"post-{now_ms}"


def render_markdown(markdown_text: str) -> str:
    """Render Markdown to HTML and strip anything outside the allow-list."""
    html = md.markdown(markdown_text or "", extensions=["tables", "fenced_code"])
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def build_post(
    html: str,
    post_date: Optional[str] = None,
    featured_image: Optional[str] = None,
) -> BlogPost:
    """Convert an uploaded HTML document into an unpublished BlogPost.

    Args:
        html: Full HTML document text
        post_date: ISO date for the post (default: today)
        featured_image: Optional image URL

    Returns:
        BlogPost with Markdown content, metadata and rendered HTML
    """
    body = extract_body(html)
    markdown_text = html_to_markdown(body)

    title = extract_title(html, markdown_text)
    excerpt = extract_excerpt(html, markdown_text)

    return BlogPost(
        slug=make_slug(title),
        title=title or "Untitled Post",
        date=post_date or date.today().isoformat(),
        content=markdown_text,
        html_content=render_markdown(markdown_text),
        excerpt=excerpt or "No excerpt available",
        featured_image=featured_image or None,
    )


def generate_unique_slug(store, slug: str) -> str:
    """Append ``-1``, ``-2``, ... until no stored post uses the slug."""
    candidate = slug
    counter = 1
    while store.find_post_by_slug(candidate) is not None:
        candidate = f"{slug}-{counter}"
        counter += 1
    return candidate


def publish_post(store, post: BlogPost) -> BlogPost:
    """Store a post under a unique slug.

    Args:
        store: DealStore to write to
        post: Post built by ``build_post`` (possibly edited)

    Returns:
        The stored post

    Raises:
        ValueError: If title or content is missing
        StoreError: If the insert fails
    """
    if not post.title or not post.content:
        raise ValueError("Title and content are required")

    post.slug = generate_unique_slug(store, post.slug or make_slug(post.title))
    post.html_content = render_markdown(post.content)
    if not post.excerpt:
        post.excerpt = post.content[:EXCERPT_LENGTH]
    post.created_at = datetime.now(timezone.utc).isoformat()

    stored = store.insert_post(post)
    log_deal_event("post_published", {
        "message": f"Published blog post: {stored.slug}",
        "slug": stored.slug,
        "title": stored.title,
    })
    logger.info(f"Published blog post '{stored.title}' at /blog/{stored.slug}")
    return stored
