"""Tests for registered-domain extraction."""

import pytest

from core.urls import extract_domain


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://example.com", "example.com"),
        ("http://www.example.com/a?b=c", "example.com"),
        ("https://accounts.google.co.uk/login", "google.co.uk"),
        ("HTTPS://News.BBC.co.uk", "bbc.co.uk"),
        ("http://user:pw@mail.example.org:8080/", "example.org"),
        ("http://192.168.1.1/admin", "192.168.1.1"),
        ("example.net/path", "example.net"),
        ("http://localhost:3000/", "localhost"),
    ],
)
def test_extract_domain(url: str, expected: str) -> None:
    assert extract_domain(url) == expected


@pytest.mark.parametrize("url", ["", "file:///C:/Users/alice/doc.html", "http://", "http://exa mple.com/"])
def test_extract_domain_without_host(url: str) -> None:
    assert extract_domain(url) == ""
