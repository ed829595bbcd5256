from __future__ import annotations

import sys
import unittest
from unittest import mock

from mailscrub import DEFAULT_POLICY, sanitize
from mailscrub.darkmode import DARK_MODE_MARKER, DARK_MODE_STYLE
from mailscrub.parser import parse_html
from mailscrub.sanitize import sanitize_tree
from mailscrub.serialize import to_html

HARDENED = 'target="_blank" rel="noopener noreferrer"'

# Inputs that exercise parser error recovery, foreign content and raw-text
# elements; sanitizing any of them twice must give the same result.
TRICKY_INPUTS = [
    '<a href="javascript:alert(1)">x</a>',
    "<table><tr><td>a<p>b</td></tr></table>",
    "<table><td>x</td><style>a{}</style></table>",
    "<p><div>x</div></p>",
    "<b><i>x</b>y</i>",
    "<h1><foo><h2>x</h2></foo></h1>",
    '<svg><style><img src=x onerror=alert(1)></style></svg>',
    '<noscript><p title="</noscript><img src=x onerror=alert(1)>"></noscript>',
    "<style>a{}</style><!--<style>--><p>x</p>",
    "<form><input></form><select><option>x</select>",
    "<math><mtext><table><mglyph><style><img src=x onerror=alert(1)>",
    "<xmp><p>x</p></xmp>",
    "<plaintext><p>x",
    '<div title="<html>">x</div>',
    "<select><style>a{}</style></select>",
    "<template><p>x</p></template><p>y</p>",
    '<a href="https://x"><a href="https://y">y</a></a>',
    "<body onload=alert(1)><p>x</p>",
    '<p style="a:b;color:red">x</p><style>p{color:"</style>',
    "<!DOCTYPE html><title>T</title><p>x",
    '<div style="background:url(\'javascript:x\')">x</div>',
    "<ul><li>a<li>b</ul><dl><dt>c<dd>d</dl>",
    "<pre>\n\n\n\n\nx</pre>",
    "<pre>\nx</pre><listing>\n\ny</listing>",
]


def _collect(messages: list[str]):
    def report(msg: str, *, node=None) -> None:
        messages.append(msg)

    return report


class TestSanitizeBasics(unittest.TestCase):
    def test_safe_markup_is_preserved(self) -> None:
        assert sanitize("<p>Hello <b>world</b></p>") == "<p>Hello <b>world</b></p>"
        assert sanitize("<p>a<br>b</p>") == "<p>a<br>b</p>"

    def test_none_and_empty_input(self) -> None:
        assert sanitize(None) == ""
        assert sanitize("") == ""

    def test_plain_text_is_escaped(self) -> None:
        assert sanitize("a < b & c") == "a &lt; b &amp; c"
        assert sanitize("<p>&lt;script&gt;</p>") == "<p>&lt;script&gt;</p>"

    def test_attribute_values_are_escaped(self) -> None:
        assert sanitize('<div title="<b>&quot;">x</div>') == '<div title="&lt;b&gt;&quot;">x</div>'

    def test_boolean_attributes(self) -> None:
        out = sanitize("<details open><summary>s</summary>x</details>")
        assert out == '<details open=""><summary>s</summary>x</details>'

    def test_comments_are_dropped(self) -> None:
        assert sanitize("<p>a<!-- secret --></p>") == "<p>a</p>"

    def test_comments_can_be_kept(self) -> None:
        policy = DEFAULT_POLICY.with_changes(drop_comments=False)
        assert sanitize("<p>a<!-- note --></p>", policy=policy) == "<p>a<!-- note --></p>"

    def test_data_and_aria_attributes(self) -> None:
        html = '<div data-id="1" aria-label="x">y</div>'
        assert sanitize(html) == html


class TestSanitizeScripts(unittest.TestCase):
    def test_script_is_dropped_with_content(self) -> None:
        assert sanitize("<script>alert(1)</script><p>x</p>") == "<p>x</p>"

    def test_event_handlers_are_dropped(self) -> None:
        assert sanitize('<img src="x" onerror="alert(1)">') == '<img src="x">'
        assert sanitize('<div onclick="x" ONMOUSEOVER="y">z</div>') == "<div>z</div>"

    def test_javascript_href_is_dropped(self) -> None:
        out = sanitize('<a href="javascript:alert(1)">x</a>')
        assert out == f"<a {HARDENED}>x</a>"

    def test_obfuscated_javascript_href_is_dropped(self) -> None:
        for href in ["JaVaScRiPt:alert(1)", " java\tscript:alert(1)", "&#106;avascript:alert(1)", "java&#0;script:x"]:
            out = sanitize(f'<a href="{href}">x</a>')
            assert "href" not in out, href

    def test_dangerous_containers_are_dropped(self) -> None:
        html = (
            '<iframe src="https://evil"></iframe><object data="x"></object><embed src="x">'
            '<form action="https://evil"><input name="a"><button>go</button></form><p>after</p>'
        )
        assert sanitize(html) == "<p>after</p>"

    def test_foreign_content_is_dropped(self) -> None:
        assert sanitize("<svg><script>alert(1)</script></svg><p>x</p>") == "<p>x</p>"
        assert sanitize("<math><mi>x</mi></math>") == ""

    def test_svg_style_breakout(self) -> None:
        assert sanitize("<svg><style><img src=x onerror=alert(1)></style></svg>") == '<img src="x">'

    def test_noscript_attribute_breakout(self) -> None:
        assert sanitize('<noscript><p title="</noscript><img src=x onerror=alert(1)>"></noscript>') == ""

    def test_srcset_is_checked_per_candidate(self) -> None:
        good = '<img srcset="a.png 1x, https://example.com/b.png 2x">'
        assert sanitize(good) == good
        assert sanitize('<img srcset="a.png 1x, javascript:alert(1) 2x">') == "<img>"

    def test_data_urls(self) -> None:
        img = '<img src="data:image/png;base64,AAAA">'
        assert sanitize(img) == img
        assert sanitize('<img src="data:text/html;base64,PHNjcmlwdD4=">') == "<img>"
        assert "href" not in sanitize('<a href="data:text/html,x">x</a>')

    def test_reserved_marker_is_stripped(self) -> None:
        assert sanitize(f'<style {DARK_MODE_MARKER}="">a{{}}</style>') == "<style>a{}</style>"

    def test_no_script_survives(self) -> None:
        for html in [
            "<script>alert(1)</script>",
            '<img src=x onerror="alert(1)">',
            '<a href="javascript:alert(1)">x</a>',
            "<body onload=alert(1)><p>x</p>",
            '<svg onload="alert(1)"><a xlink:href="javascript:alert(1)">x</a></svg>',
            '<iframe srcdoc="<script>alert(1)</script>"></iframe>',
            '<meta http-equiv="refresh" content="0;url=javascript:alert(1)">',
            '<base href="javascript:alert(1)//">',
        ]:
            out = sanitize(html).lower()
            assert "<script" not in out, html
            assert "onerror" not in out, html
            assert "onload" not in out, html
            assert "javascript:" not in out, html


class TestSanitizeCss(unittest.TestCase):
    def test_style_exfiltration_is_blocked(self) -> None:
        html = "<style>@import url(http://evil/x.css); a{background:url(javascript:alert(1))} p{color:red}</style><p>x</p>"
        out = sanitize(html)
        assert "@import" not in out
        assert "javascript:" not in out
        assert "p{color:red}" in out
        assert out.endswith("<p>x</p>")

    def test_inline_style_is_preserved(self) -> None:
        html = '<table><tr><td style="color:red">Hi</td></tr></table>'
        assert sanitize(html) == '<table><tbody><tr><td style="color:red">Hi</td></tr></tbody></table>'

    def test_inline_style_is_sanitized(self) -> None:
        out = sanitize('<div style="width:expression(alert(1));color:red">x</div>')
        assert out == '<div style="width:/* removed */;color:red">x</div>'

        out = sanitize('<div style="width:expression (alert(1))">x</div>')
        assert out == '<div style="width:/* removed */">x</div>'

    def test_empty_style_attribute_is_dropped(self) -> None:
        assert sanitize('<p style="">x</p>') == "<p>x</p>"

    def test_style_text_cannot_close_its_element(self) -> None:
        out = sanitize('<style>p{content:"\\3c/style><script>alert(1)</script>"}</style>')
        assert out.count("<") == 2
        assert out.startswith("<style>")
        assert out.endswith("</style>")

    def test_custom_css_sanitizer(self) -> None:
        policy = DEFAULT_POLICY.with_changes(css_sanitizer=lambda css, *, report=None: "")
        assert sanitize('<p style="color:red">x</p><style>p{}</style>', policy=policy) == "<p>x</p><style></style>"


class TestSanitizeStructure(unittest.TestCase):
    def test_unknown_tag_keeps_content(self) -> None:
        assert sanitize("<foo><b>bar</b></foo>") == "<b>bar</b>"
        assert sanitize("<custom-card><p>a</p></custom-card>") == "<p>a</p>"

    def test_nested_unknown_tags(self) -> None:
        assert sanitize("<x1><x2><x3>deep</x3></x2></x1>") == "deep"

    def test_email_layout_survives(self) -> None:
        html = (
            '<center><table width="600" cellpadding="0" bgcolor="#ffffff"><tbody><tr>'
            '<td align="center" valign="top"><font face="Arial" color="#333">Hi</font></td>'
            "</tr></tbody></table></center>"
        )
        assert sanitize(html) == html

    def test_link_hardening(self) -> None:
        out = sanitize('<a href="https://example.com">x</a>')
        assert out == f'<a href="https://example.com" {HARDENED}>x</a>'

    def test_link_hardening_overrides_sender_values(self) -> None:
        out = sanitize('<a href="/x" target="_self" rel="opener">x</a>')
        assert out == f'<a href="/x" {HARDENED}>x</a>'

    def test_area_is_hardened(self) -> None:
        out = sanitize('<map name="m"><area href="https://example.com" shape="rect"></map>')
        assert out == f'<map name="m"><area href="https://example.com" shape="rect" {HARDENED}></map>'

    def test_cid_links_are_kept(self) -> None:
        out = sanitize('<a href="cid:part1@example.com">attachment</a>')
        assert out == f'<a href="cid:part1@example.com" {HARDENED}>attachment</a>'

    def test_pre_keeps_leading_newlines(self) -> None:
        assert sanitize("<pre>\n\nx</pre>") == "<pre>\n\nx</pre>"
        assert sanitize("<pre>\n\n\n\n\nx</pre>") == "<pre>\n\n\n\n\nx</pre>"
        # The first newline belongs to the markup, not the content.
        assert sanitize("<pre>\nx</pre>") == "<pre>x</pre>"
        assert sanitize("<pre>x\n</pre>") == "<pre>x\n</pre>"

    def test_document_mode(self) -> None:
        html = (
            "<!DOCTYPE html><html><head>"
            '<meta http-equiv="refresh" content="0;url=https://evil">'
            '<link rel="stylesheet" href="https://example.com/a.css">'
            '<link rel="prefetch" href="https://evil/x">'
            "</head><body><p>Hi</p></body></html>"
        )
        expected = (
            "<!DOCTYPE html><html><head>"
            '<link rel="stylesheet" href="https://example.com/a.css">'
            "</head><body><p>Hi</p></body></html>"
        )
        assert sanitize(html) == expected

    def test_body_only_document(self) -> None:
        assert sanitize("<body><p>x</p></body>") == "<html><head></head><body><p>x</p></body></html>"

    def test_harmless_meta_is_kept(self) -> None:
        html = '<html><head><meta charset="utf-8"><meta name="viewport" content="width=device-width"></head><body></body></html>'
        assert sanitize(html) == html

    def test_sanitize_tree_in_place(self) -> None:
        root = parse_html('<p onclick="x">a<script>b</script></p>')
        sanitize_tree(root)
        assert to_html(root) == "<p>a</p>"


class TestSanitizeIdempotence(unittest.TestCase):
    def test_fixed_point(self) -> None:
        for html in TRICKY_INPUTS:
            once = sanitize(html)
            assert sanitize(once) == once, html

    def test_fixed_point_with_dark_mode(self) -> None:
        for html in TRICKY_INPUTS:
            once = sanitize(html, wrap_for_dark_mode=True)
            assert once.count(DARK_MODE_STYLE) == 1, html


class TestSanitizeReporting(unittest.TestCase):
    def test_report_callback(self) -> None:
        messages: list[str] = []
        sanitize('<div onclick="x"><script>y</script><foo>z</foo><!-- c --></div>', report=_collect(messages))
        assert "Unsafe attribute 'onclick'" in messages
        assert "Unsafe tag 'script' (dropped content)" in messages
        assert "Unsafe tag 'foo' (not allowed)" in messages
        assert "Dropped comment" in messages

    def test_report_receives_node(self) -> None:
        nodes = []
        sanitize('<a href="javascript:x">y</a>', report=lambda msg, *, node=None: nodes.append((msg, node)))
        assert [msg for msg, _ in nodes] == ["Unsafe URL in attribute 'href'"]
        assert nodes[0][1].name == "a"

    def test_css_findings_are_reported(self) -> None:
        messages: list[str] = []
        sanitize('<p style="behavior:url(x.htc)">x</p>', report=_collect(messages))
        assert "Unsafe CSS: behavior property" in messages

    def test_foreign_elements_are_reported(self) -> None:
        messages: list[str] = []
        sanitize("<svg></svg>", report=_collect(messages))
        assert messages == ["Dropped foreign element 'svg'"]

    def test_no_report_for_clean_input(self) -> None:
        messages: list[str] = []
        sanitize("<p>clean</p>", report=_collect(messages))
        assert messages == []


class TestSanitizeFailures(unittest.TestCase):
    def test_missing_parser_returns_empty(self) -> None:
        with mock.patch("mailscrub.parser.html5lib", None):
            with self.assertLogs("mailscrub.sanitize", level="WARNING"):
                assert sanitize("<p>x</p>") == ""

    def test_internal_error_returns_empty(self) -> None:
        def boom(css: str, *, report=None) -> str:
            raise RuntimeError("boom")

        policy = DEFAULT_POLICY.with_changes(css_sanitizer=boom)
        with self.assertLogs("mailscrub.sanitize", level="ERROR"):
            assert sanitize('<p style="color:red">x</p>', policy=policy) == ""

    def test_unsettled_output_returns_empty(self) -> None:
        outputs = iter(["<p>1</p>", "<p>2</p>", "<p>3</p>"])
        with mock.patch("mailscrub.sanitize._sanitize_once", side_effect=lambda html, policy, report: next(outputs)):
            with self.assertLogs("mailscrub.sanitize", level="WARNING") as logs:
                assert sanitize("<p>0</p>") == ""
        assert "still changing" in logs.output[0]

    def test_output_settling_on_last_pass_is_kept(self) -> None:
        outputs = iter(["<p>1</p>", "<p>2</p>", "<p>2</p>"])
        with mock.patch("mailscrub.sanitize._sanitize_once", side_effect=lambda html, policy, report: next(outputs)):
            assert sanitize("<p>0</p>") == "<p>2</p>"

    def test_moderate_nesting_survives(self) -> None:
        html = "<div>" * 100 + "x" + "</div>" * 100
        assert sanitize(html) == html

    def test_nesting_beyond_recursion_limit_returns_empty(self) -> None:
        depth = sys.getrecursionlimit() + 100
        with self.assertLogs("mailscrub.sanitize", level="ERROR"):
            assert sanitize("<div>" * depth + "x") == ""


if __name__ == "__main__":
    unittest.main()
