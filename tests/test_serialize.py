from __future__ import annotations

import unittest

from mailscrub.node import CommentNode, Doctype, DoctypeNode, ElementNode, SimpleDomNode, TextNode
from mailscrub.serialize import serialize_doctype, serialize_end_tag, serialize_start_tag, to_html


class TestSerialize(unittest.TestCase):
    def test_start_and_end_tags(self) -> None:
        assert serialize_start_tag("p", None) == "<p>"
        assert serialize_start_tag("td", {"colspan": "2", "nowrap": None}) == '<td colspan="2" nowrap="">'
        assert serialize_start_tag("div", {"title": 'a"b<c>&'}) == '<div title="a&quot;b&lt;c&gt;&amp;">'
        assert serialize_end_tag("p") == "</p>"

    def test_text_is_escaped(self) -> None:
        root = SimpleDomNode("#document-fragment")
        p = ElementNode("p")
        p.append_child(TextNode("1 < 2 & 3 > 0"))
        root.append_child(p)
        assert to_html(root) == "<p>1 &lt; 2 &amp; 3 &gt; 0</p>"

    def test_style_text_is_literal(self) -> None:
        style = ElementNode("style")
        style.append_child(TextNode("a > b { content: '&' }"))
        assert to_html(style) == "<style>a > b { content: '&' }</style>"

    def test_void_elements(self) -> None:
        root = SimpleDomNode("#document-fragment")
        root.append_child(ElementNode("br"))
        root.append_child(ElementNode("img", {"src": "a.png"}))
        assert to_html(root) == '<br><img src="a.png">'

    def test_leading_newline_survives_reparsing(self) -> None:
        for tag in ["pre", "textarea", "listing"]:
            node = ElementNode(tag)
            node.append_child(TextNode("\nx"))
            assert to_html(node) == f"<{tag}>\n\nx</{tag}>"

        pre = ElementNode("pre")
        pre.append_child(TextNode("x\n"))
        assert to_html(pre) == "<pre>x\n</pre>"

        pre = ElementNode("pre")
        code = ElementNode("code")
        code.append_child(TextNode("\nx"))
        pre.append_child(code)
        assert to_html(pre) == "<pre><code>\nx</code></pre>"

    def test_comments(self) -> None:
        assert to_html(CommentNode(" x ")) == "<!-- x -->"

    def test_doctypes(self) -> None:
        assert serialize_doctype(None) == "<!DOCTYPE html>"
        assert serialize_doctype(Doctype("html")) == "<!DOCTYPE html>"
        assert (
            serialize_doctype(Doctype("html", "-//W3C//DTD HTML 4.01//EN", "http://www.w3.org/TR/html4/strict.dtd"))
            == '<!DOCTYPE html PUBLIC "-//W3C//DTD HTML 4.01//EN" "http://www.w3.org/TR/html4/strict.dtd">'
        )
        assert serialize_doctype(Doctype("html", None, "about:legacy-compat")) == '<!DOCTYPE html SYSTEM "about:legacy-compat">'
        assert serialize_doctype(Doctype("html", 'a"b')) == "<!DOCTYPE html PUBLIC 'a\"b'>"

    def test_document(self) -> None:
        root = SimpleDomNode("#document")
        root.append_child(DoctypeNode(Doctype("html")))
        html = ElementNode("html")
        html.append_child(ElementNode("head"))
        body = ElementNode("body")
        body.append_child(TextNode("x"))
        html.append_child(body)
        root.append_child(html)
        assert to_html(root) == "<!DOCTYPE html><html><head></head><body>x</body></html>"


if __name__ == "__main__":
    unittest.main()
