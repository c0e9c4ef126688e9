"""URL validation and affiliate-link utilities.

Every deal link that leaves the site goes through here: uploads are reduced
to a canonical ``/dp/<id>`` link, and click-time links get the site's
affiliate tag re-applied.
"""

import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from deals.config import AFFILIATE_ID, MARKETPLACE_DOMAIN, MARKETPLACE_HOST, PRODUCT_ID_PATTERN

__all__ = [
    "URLValidationError",
    "sanitize_url",
    "is_marketplace_url",
    "extract_product_id",
    "clean_deal_url",
    "ensure_affiliate_tag",
    "canonical_deal_url",
]


class URLValidationError(ValueError):
    """Raised when a deal URL cannot be turned into an affiliate link."""
    pass


PRODUCT_ID_RE = re.compile(PRODUCT_ID_PATTERN)
PRODUCT_ID_ANY_CASE_RE = re.compile(PRODUCT_ID_PATTERN, re.IGNORECASE)

# Query parameter carrying the affiliate tag
TAG_PARAM = "tag"

# Dangerous URL schemes to reject
DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}


def sanitize_url(url: str) -> str:
    """Sanitize a URL by stripping whitespace and control characters.

    Args:
        url: Raw URL string

    Returns:
        Sanitized URL string
    """
    if not url:
        return ""

    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    url = url.replace("%00", "")

    return url


def is_marketplace_url(url: str) -> bool:
    """True if the URL's host is the marketplace domain or one of its subdomains."""
    try:
        host = (urlparse(sanitize_url(url)).hostname or "").lower()
    except ValueError:
        return False
    return host == MARKETPLACE_DOMAIN or host.endswith(f".{MARKETPLACE_DOMAIN}")


def _path_segments(path: str) -> List[str]:
    return path.split("/")


def _segment_after(segments: List[str], *marker: str) -> Optional[str]:
    """Return the segment that follows the given run of segments, if any."""
    width = len(marker)
    for i in range(len(segments) - width):
        if tuple(segments[i:i + width]) == marker:
            candidate = segments[i + width]
            if candidate and PRODUCT_ID_ANY_CASE_RE.match(candidate):
                return candidate.upper()
            return None
    return None


def extract_product_id(url: str) -> Optional[str]:
    """Extract the 10-character product identifier (ASIN) from a marketplace URL.

    Tried in order:
        1. the segment following ``/dp/``
        2. the segment following ``/gp/product/``
        3. an ``ASIN`` / ``asin`` query parameter
        4. the first upper-case 10-character alphanumeric path segment

    Args:
        url: Product page URL

    Returns:
        Upper-cased identifier, or None if the URL is not a marketplace
        product URL.
    """
    url = sanitize_url(url)
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if MARKETPLACE_DOMAIN not in (parsed.hostname or "").lower():
        return None

    segments = _path_segments(parsed.path)

    asin = _segment_after(segments, "dp") or _segment_after(segments, "gp", "product")
    if asin:
        return asin

    for key, value in parse_qsl(parsed.query):
        if key in ("ASIN", "asin") and PRODUCT_ID_ANY_CASE_RE.match(value):
            return value.upper()

    for part in segments:
        if part and PRODUCT_ID_RE.match(part):
            return part

    return None


def canonical_deal_url(product_id: str, affiliate_id: str = AFFILIATE_ID) -> str:
    """Build the canonical product link carrying our affiliate tag."""
    return f"https://{MARKETPLACE_HOST}/dp/{product_id}?{TAG_PARAM}={affiliate_id}"


def clean_deal_url(url: str, affiliate_id: str = AFFILIATE_ID) -> str:
    """Validate a deal URL and reduce it to ``https://www.amazon.com/dp/<id>?tag=<ours>``.

    Any affiliate tag already present is discarded; the returned link always
    carries ``affiliate_id``. Cleaning an already-clean URL returns it unchanged.

    Args:
        url: Deal URL as uploaded
        affiliate_id: Affiliate tag to apply

    Returns:
        Canonical affiliate URL

    Raises:
        URLValidationError: If the URL is not a marketplace product URL
    """
    url = sanitize_url(url)
    if not url:
        raise URLValidationError("Invalid Amazon URL: URL is empty")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise URLValidationError(f"Invalid Amazon URL: {e}") from e

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Invalid Amazon URL: dangerous URL scheme: {scheme}")

    if MARKETPLACE_DOMAIN not in (parsed.hostname or "").lower():
        raise URLValidationError("Invalid Amazon URL: Not an Amazon URL")

    asin = extract_product_id(url)
    if not asin:
        raise URLValidationError("Invalid Amazon URL: Could not find valid ASIN in Amazon URL")

    return canonical_deal_url(asin, affiliate_id)


def ensure_affiliate_tag(url: str, affiliate_id: str = AFFILIATE_ID) -> str:
    """Replace any affiliate tag on a marketplace URL with ours.

    Other query parameters are kept in order. Non-marketplace URLs are
    returned untouched. Applying it twice gives the same URL.

    Args:
        url: Deal URL
        affiliate_id: Affiliate tag to apply

    Returns:
        URL carrying exactly one ``tag`` parameter
    """
    url = sanitize_url(url)
    try:
        parsed = urlparse(url)
    except ValueError:
        # Unparseable: patch the query string textually
        if "?" in url:
            if f"{TAG_PARAM}=" in url:
                return re.sub(r"tag=[^&]+", f"{TAG_PARAM}={affiliate_id}", url)
            return f"{url}&{TAG_PARAM}={affiliate_id}"
        return f"{url}?{TAG_PARAM}={affiliate_id}"

    if MARKETPLACE_DOMAIN not in (parsed.hostname or "").lower():
        return url

    params = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != TAG_PARAM]
    params.append((TAG_PARAM, affiliate_id))
    return urlunparse(parsed._replace(query=urlencode(params)))
