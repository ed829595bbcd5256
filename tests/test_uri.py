from __future__ import annotations

import unittest

from mailscrub.uri import (
    ALLOWED_SCHEMES,
    UriClass,
    classify,
    is_image_data_uri,
    is_safe_uri,
    normalize_uri,
    scheme_of,
)


class TestSchemeOf(unittest.TestCase):
    def test_relative_references_have_no_scheme(self) -> None:
        for uri in ["", "/path", "./a/b", "page.html", "?q=1", "#top", "//example.com/x", "a/b:c", "?x=a:b", "#a:b"]:
            assert scheme_of(uri) is None, uri

    def test_scheme_is_lowercased(self) -> None:
        assert scheme_of("HTTPS://example.com") == "https"
        assert scheme_of("MailTo:a@b.c") == "mailto"

    def test_whitespace_and_controls_are_ignored(self) -> None:
        assert scheme_of("  java\tscript:alert(1)") == "javascript"
        assert scheme_of("\x00\x1fjavascript:alert(1)") == "javascript"
        assert scheme_of("jav\nascript:x") == "javascript"

    def test_malformed_scheme_raises(self) -> None:
        with self.assertRaises(ValueError):
            scheme_of("java\x00script:alert(1)")
        with self.assertRaises(ValueError):
            scheme_of("java script:alert(1)")

    def test_prefix_without_leading_letter_is_a_path(self) -> None:
        for uri in ["2024:report.png", "1http://x", ":nothing", "_a:b", "\u00e9t\u00e9:x"]:
            assert scheme_of(uri) is None, uri
            assert classify(uri) is UriClass.SAFE, uri


class TestImageDataUri(unittest.TestCase):
    def test_image_media_types(self) -> None:
        assert is_image_data_uri("data:image/png;base64,AAAA")
        assert is_image_data_uri("DATA:Image/GIF,xyz")
        assert is_image_data_uri("data:image/svg+xml;utf8,<svg/>")

    def test_other_media_types(self) -> None:
        assert not is_image_data_uri("data:text/html,<script>alert(1)</script>")
        assert not is_image_data_uri("data:,hello")
        assert not is_image_data_uri("data:image/,x")
        assert not is_image_data_uri("https://example.com/a.png")


class TestClassify(unittest.TestCase):
    def test_allowed_schemes_are_safe(self) -> None:
        for uri in [
            "http://example.com",
            "https://example.com",
            "mailto:a@example.com",
            "tel:+123",
            "callto:someone",
            "cid:part1@example.com",
            "xmpp:a@example.com",
        ]:
            assert classify(uri) is UriClass.SAFE, uri

    def test_relative_urls_are_safe(self) -> None:
        assert classify("/images/a.png") is UriClass.SAFE
        assert classify("#section") is UriClass.SAFE
        assert classify("//cdn.example.com/a.png") is UriClass.SAFE

    def test_script_schemes_are_unsafe(self) -> None:
        for uri in [
            "javascript:alert(1)",
            "JaVaScRiPt:alert(1)",
            " \tjavascript:alert(1)",
            "java\nscript:alert(1)",
            "vbscript:msgbox(1)",
            "livescript:x",
            "java\x00script:alert(1)",
        ]:
            assert classify(uri) is UriClass.UNSAFE, repr(uri)

    def test_denied_schemes_cannot_be_allowed(self) -> None:
        assert classify("javascript:alert(1)", allowed_schemes={"javascript"}) is UriClass.UNSAFE

    def test_unknown_schemes_are_unsafe(self) -> None:
        assert classify("file:///etc/passwd") is UriClass.UNSAFE
        assert classify("ftp://example.com") is UriClass.UNSAFE
        assert classify("blob:https://example.com/x") is UriClass.UNSAFE

    def test_data_only_for_images(self) -> None:
        assert classify("data:image/png;base64,AAAA") is UriClass.SAFE
        assert classify("data:text/html;base64,PHNjcmlwdD4=") is UriClass.UNSAFE
        assert classify("data:image/png;base64,AAAA", allowed_schemes={"https"}) is UriClass.UNSAFE

    def test_custom_allowed_schemes(self) -> None:
        assert is_safe_uri("https://x", allowed_schemes={"https"})
        assert not is_safe_uri("http://x", allowed_schemes={"https"})
        assert "https" in ALLOWED_SCHEMES

    def test_normalize_uri(self) -> None:
        assert normalize_uri(" \x01ht\ttp://a\n ") == "http://a"


if __name__ == "__main__":
    unittest.main()
