"""Tests for scrape target URL validation."""

import socket
from unittest.mock import patch

import pytest

from scraper.irl_events.sources.url_validator import UnsafeURLError, validate_scrape_url

RESOLVE = "scraper.irl_events.sources.url_validator._resolve"


class TestValidateScrapeUrl:
    """Tests for validate_scrape_url."""

    def test_accepts_public_https(self):
        with patch(RESOLVE, return_value={"93.184.216.34"}):
            assert validate_scrape_url(" https://example.com/events ") == "https://example.com/events"

    @pytest.mark.parametrize(
        "url",
        ["http://example.com/events", "ftp://example.com/file", "file:///etc/passwd", ""],
    )
    def test_rejects_non_https(self, url):
        with pytest.raises(UnsafeURLError, match="Only HTTPS"):
            validate_scrape_url(url, resolve_dns=False)

    @pytest.mark.parametrize(
        "url",
        ["https://localhost/admin", "https://app.localhost/", "https://LOCALHOST:8443/"],
    )
    def test_blocks_localhost(self, url):
        with pytest.raises(UnsafeURLError, match="blocked"):
            validate_scrape_url(url, resolve_dns=False)

    @pytest.mark.parametrize(
        "url",
        [
            "https://10.0.0.1/",
            "https://172.16.5.4/",
            "https://192.168.1.1/",
            "https://127.0.0.1/",
            "https://169.254.169.254/latest/meta-data/",
            "https://[::1]/",
            "https://0.0.0.0/",
        ],
    )
    def test_blocks_non_public_literals(self, url):
        with pytest.raises(UnsafeURLError, match="non-public"):
            validate_scrape_url(url, resolve_dns=False)

    def test_allows_public_literal(self):
        assert validate_scrape_url("https://8.8.8.8/", resolve_dns=False) == "https://8.8.8.8/"

    def test_blocks_hostname_resolving_to_private(self):
        with patch(RESOLVE, return_value={"93.184.216.34", "10.1.2.3"}):
            with pytest.raises(UnsafeURLError, match="resolves to non-public"):
                validate_scrape_url("https://rebind.example.com/")

    def test_unresolvable_host_passes(self):
        """DNS failures are left to the HTTP client."""
        with patch(RESOLVE, side_effect=socket.gaierror("no such host")):
            assert validate_scrape_url("https://nowhere.invalid/") == "https://nowhere.invalid/"

    def test_dns_skipped_when_disabled(self):
        with patch(RESOLVE) as resolve:
            validate_scrape_url("https://example.com/", resolve_dns=False)
        resolve.assert_not_called()


class TestAllowedDomains:
    """Tests for the optional domain whitelist."""

    def test_exact_and_subdomain_match(self):
        allowed = {"example.com"}
        assert validate_scrape_url("https://example.com/", allowed, resolve_dns=False)
        assert validate_scrape_url("https://events.example.com/", allowed, resolve_dns=False)

    def test_lookalike_rejected(self):
        with pytest.raises(UnsafeURLError, match="not in the allowed list"):
            validate_scrape_url("https://notexample.com/", {"example.com"}, resolve_dns=False)
