"""Tests for deal URL cleaning and affiliate tagging."""

import pytest

from deals.url_validation import (
    URLValidationError,
    clean_deal_url,
    ensure_affiliate_tag,
    extract_product_id,
    is_marketplace_url,
    sanitize_url,
)

AFF = "ndmlabs-20"


class TestExtractProductId:
    """Tests for ASIN extraction."""

    def test_dp_segment(self):
        url = "https://www.amazon.com/Roborock-Q7-Max/dp/B0BXYZ1234/ref=sr_1_3?tag=other-20"
        assert extract_product_id(url) == "B0BXYZ1234"

    def test_dp_segment_lowercase_is_uppercased(self):
        assert extract_product_id("https://www.amazon.com/dp/b0bxyz1234") == "B0BXYZ1234"

    def test_gp_product_segment(self):
        assert extract_product_id("https://www.amazon.com/gp/product/B0ABCDEF12/") == "B0ABCDEF12"

    def test_asin_query_param(self):
        assert extract_product_id("https://www.amazon.com/offers?ASIN=B012345678") == "B012345678"

    def test_path_segment_scan(self):
        assert extract_product_id("https://www.amazon.com/Roborock/B0BXYZ1234") == "B0BXYZ1234"

    def test_no_identifier(self):
        assert extract_product_id("https://www.amazon.com/s?k=robot+vacuum") is None

    def test_other_domain(self):
        assert extract_product_id("https://example.com/dp/B0BXYZ1234") is None

    def test_empty(self):
        assert extract_product_id("") is None


class TestCleanDealUrl:
    """Tests for canonical affiliate URL generation."""

    def test_canonical_form(self):
        url = "https://www.amazon.com/Roborock-Q7-Max/dp/B0BXYZ1234/ref=sr_1_3?tag=other-20&th=1"
        assert clean_deal_url(url, AFF) == "https://www.amazon.com/dp/B0BXYZ1234?tag=ndmlabs-20"

    def test_foreign_tag_replaced(self):
        cleaned = clean_deal_url("https://amazon.com/dp/B0BXYZ1234?tag=someone-else-21", AFF)
        assert "someone-else-21" not in cleaned
        assert cleaned.endswith("?tag=ndmlabs-20")

    def test_idempotent(self):
        once = clean_deal_url("https://smile.amazon.com/gp/product/B0ABCDEF12?psc=1", AFF)
        assert clean_deal_url(once, AFF) == once

    def test_whitespace_is_stripped(self):
        assert clean_deal_url("  https://www.amazon.com/dp/B0BXYZ1234\n", AFF).endswith("B0BXYZ1234?tag=ndmlabs-20")

    def test_empty_rejected(self):
        with pytest.raises(URLValidationError, match="URL is empty"):
            clean_deal_url("", AFF)

    def test_other_domain_rejected(self):
        with pytest.raises(URLValidationError, match="Not an Amazon URL"):
            clean_deal_url("https://example.com/dp/B0BXYZ1234", AFF)

    def test_missing_identifier_rejected(self):
        with pytest.raises(URLValidationError, match="Could not find valid ASIN"):
            clean_deal_url("https://www.amazon.com/s?k=robot+vacuum", AFF)

    def test_dangerous_scheme_rejected(self):
        with pytest.raises(URLValidationError, match="dangerous URL scheme"):
            clean_deal_url("javascript:alert(1)", AFF)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            clean_deal_url("not a url", AFF)


class TestEnsureAffiliateTag:
    """Tests for click-time re-tagging."""

    def test_replaces_existing_tag(self):
        url = "https://www.amazon.com/dp/B0BXYZ1234?tag=other-20&th=1"
        assert ensure_affiliate_tag(url, AFF) == "https://www.amazon.com/dp/B0BXYZ1234?th=1&tag=ndmlabs-20"

    def test_adds_missing_tag(self):
        url = "https://www.amazon.com/dp/B0BXYZ1234"
        assert ensure_affiliate_tag(url, AFF) == "https://www.amazon.com/dp/B0BXYZ1234?tag=ndmlabs-20"

    def test_idempotent(self):
        url = "https://www.amazon.com/dp/B0BXYZ1234?tag=other-20&psc=1"
        once = ensure_affiliate_tag(url, AFF)
        assert ensure_affiliate_tag(once, AFF) == once
        assert once.count("tag=") == 1

    def test_other_domain_untouched(self):
        url = "https://example.com/item?tag=abc"
        assert ensure_affiliate_tag(url, AFF) == url


class TestHelpers:
    def test_sanitize_removes_control_chars(self):
        assert sanitize_url(" https://amazon.com/\x00dp\x1f ") == "https://amazon.com/dp"

    def test_is_marketplace_url(self):
        assert is_marketplace_url("https://www.amazon.com/dp/B0BXYZ1234")
        assert not is_marketplace_url("https://example.com/")

    def test_is_marketplace_url_rejects_look_alike_hosts(self):
        assert is_marketplace_url("https://amazon.com/dp/B0BXYZ1234")
        assert is_marketplace_url("https://smile.AMAZON.com/dp/B0BXYZ1234")
        assert not is_marketplace_url("https://www.amazon.com.evil.example/dp/B0BXYZ1234")
        assert not is_marketplace_url("https://notamazon.com/dp/B0BXYZ1234")
